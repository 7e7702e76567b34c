import asyncio
import enum
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable

from playwright.async_api import async_playwright, Browser, BrowserContext, Page

from dramascout.config import settings
from dramascout.core.exceptions import SessionClosedError, SessionInitError
from dramascout.core.metrics import active_browser_sessions

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Realistic fingerprint data, rotated per session
# ---------------------------------------------------------------------------

CHROME_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/138.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/137.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/138.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36",
]

VIEWPORTS = [
    {"width": 1920, "height": 1080},
    {"width": 1366, "height": 768},
    {"width": 1440, "height": 900},
    {"width": 1536, "height": 864},
    {"width": 1680, "height": 1050},
]

# Realistic WebGL renderer strings per GPU vendor
WEBGL_RENDERERS = [
    (
        "Google Inc. (NVIDIA)",
        "ANGLE (NVIDIA, NVIDIA GeForce RTX 3060 Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    (
        "Google Inc. (NVIDIA)",
        "ANGLE (NVIDIA, NVIDIA GeForce GTX 1660 SUPER Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    (
        "Google Inc. (Intel)",
        "ANGLE (Intel, Intel(R) UHD Graphics 630 Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    (
        "Google Inc. (AMD)",
        "ANGLE (AMD, AMD Radeon RX 6600 Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    ("Google Inc. (Apple)", "ANGLE (Apple, Apple M1, OpenGL 4.1)"),
]

COLOR_DEPTHS = [24, 24, 24, 30]

# Resource types never needed for extraction
DEFAULT_BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "media"})

_CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
    "--disable-extensions",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-background-networking",
    "--disable-sync",
    "--disable-gpu",
    "--renderer-process-limit=2",
]


@dataclass
class IdentityProfile:
    """One consistent browser fingerprint, drawn once per session."""

    user_agent: str
    viewport: dict[str, int]
    webgl_vendor: str
    webgl_renderer: str
    color_depth: int
    hw_concurrency: int
    device_mem: int

    @classmethod
    def random(cls, user_agents: list[str] | None = None) -> "IdentityProfile":
        vendor, renderer = random.choice(WEBGL_RENDERERS)
        return cls(
            user_agent=random.choice(user_agents or CHROME_USER_AGENTS),
            viewport=dict(random.choice(VIEWPORTS)),
            webgl_vendor=vendor,
            webgl_renderer=renderer,
            color_depth=random.choice(COLOR_DEPTHS),
            hw_concurrency=random.choice([4, 8, 12, 16]),
            device_mem=random.choice([4, 8, 16]),
        )

    @property
    def platform_hint(self) -> str:
        if "Win" in self.user_agent:
            return '"Windows"'
        if "Mac" in self.user_agent:
            return '"macOS"'
        return '"Linux"'


@dataclass
class SessionConfig:
    """Per-source session tunables. Defaults come from settings."""

    headless: bool = field(default_factory=lambda: settings.BROWSER_HEADLESS)
    locale: str = field(default_factory=lambda: settings.BROWSER_LOCALE)
    timezone: str = field(default_factory=lambda: settings.BROWSER_TIMEZONE)
    launch_timeout_ms: int = field(default_factory=lambda: settings.BROWSER_LAUNCH_TIMEOUT)
    start_retries: int = field(default_factory=lambda: settings.SESSION_START_RETRIES)
    backoff_ms: int = field(default_factory=lambda: settings.SESSION_START_BACKOFF)
    backoff_step_ms: int = field(default_factory=lambda: settings.SESSION_START_BACKOFF_STEP)
    blocked_resource_types: frozenset[str] = DEFAULT_BLOCKED_RESOURCE_TYPES
    # Substrings of request URLs to abort (e.g. mobile redirect targets)
    blocked_url_patterns: tuple[str, ...] = ()
    # Called at open time so cookie values (timestamps) are fresh per session
    cookies: Callable[[], list[dict[str, Any]]] | None = None
    extra_headers: dict[str, str] = field(default_factory=dict)
    user_agents: list[str] | None = None

    def backoff_for(self, failures: int) -> float:
        """Seconds to wait after the given number of failed start attempts."""
        return (self.backoff_ms + failures * self.backoff_step_ms) / 1000


# ---------------------------------------------------------------------------
# Request interception
# ---------------------------------------------------------------------------


async def _setup_route_blocking(
    context: BrowserContext,
    blocked_types: frozenset[str],
    blocked_patterns: tuple[str, ...] = (),
):
    """Abort requests for heavy resource types and blocked URL patterns."""

    async def _route_handler(route, request):
        if request.resource_type in blocked_types:
            await route.abort()
            return
        url = request.url
        for pattern in blocked_patterns:
            if pattern in url:
                logger.debug(f"Blocked request to {url} (pattern {pattern!r})")
                await route.abort()
                return
        await route.continue_()

    await context.route("**/*", _route_handler)


# ---------------------------------------------------------------------------
# Stealth init script
# ---------------------------------------------------------------------------


def _build_stealth_script(identity: IdentityProfile) -> str:
    """Build a parameterized stealth script for one session's fingerprint."""
    return f"""
// navigator.webdriver
Object.defineProperty(navigator, 'webdriver', {{ get: () => undefined }});

// navigator.languages matches the zh-CN locale
Object.defineProperty(navigator, 'languages', {{ get: () => ['zh-CN', 'zh', 'en'] }});

// Hardware fingerprint, consistent per session
Object.defineProperty(navigator, 'hardwareConcurrency', {{ get: () => {identity.hw_concurrency} }});
Object.defineProperty(navigator, 'deviceMemory', {{ get: () => {identity.device_mem} }});
Object.defineProperty(screen, 'colorDepth', {{ get: () => {identity.color_depth} }});

// Plugins (empty in headless)
Object.defineProperty(navigator, 'plugins', {{
    get: () => {{
        const plugins = [
            {{ name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer', description: 'Portable Document Format' }},
            {{ name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', description: '' }},
            {{ name: 'Native Client', filename: 'internal-nacl-plugin', description: '' }},
        ];
        plugins.item = (i) => plugins[i];
        plugins.namedItem = (n) => plugins.find((p) => p.name === n);
        plugins.refresh = () => {{}};
        return plugins;
    }},
}});

// window.chrome runtime (missing in headless)
window.chrome = {{
    runtime: {{ connect: function() {{}}, sendMessage: function() {{}}, id: undefined }},
    loadTimes: function() {{ return {{}}; }},
    csi: function() {{ return {{}}; }},
}};

// Permissions API: notifications query reflects Notification.permission
const originalQuery = window.navigator.permissions && window.navigator.permissions.query;
if (originalQuery) {{
    window.navigator.permissions.query = (parameters) => (
        parameters.name === 'notifications'
            ? Promise.resolve({{ state: Notification.permission }})
            : originalQuery(parameters)
    );
}}

// WebGL vendor / renderer
const getParameter = WebGLRenderingContext.prototype.getParameter;
WebGLRenderingContext.prototype.getParameter = function(parameter) {{
    if (parameter === 37445) return '{identity.webgl_vendor}';
    if (parameter === 37446) return '{identity.webgl_renderer}';
    return getParameter.call(this, parameter);
}};
"""


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class SessionState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSED = "closed"


class CrawlSession:
    """One browser, one context and one page, owned by a single adapter run.

    Lifecycle is uninitialized -> ready -> closed. A closed session is
    never reopened; ask the SessionManager for a fresh one.
    """

    def __init__(
        self,
        source: str,
        config: SessionConfig | None = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ):
        self.source = source
        self.config = config or SessionConfig()
        self._playwright_factory = playwright_factory
        self._playwright = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self.identity: IdentityProfile | None = None
        self.state = SessionState.UNINITIALIZED

    @property
    def is_ready(self) -> bool:
        return self.state == SessionState.READY

    @property
    def page(self) -> Page:
        if self.state != SessionState.READY or self._page is None:
            raise SessionClosedError(
                f"[{self.source}] session is {self.state.value}, no page available"
            )
        return self._page

    @property
    def context(self) -> BrowserContext:
        if self.state != SessionState.READY or self._context is None:
            raise SessionClosedError(
                f"[{self.source}] session is {self.state.value}, no context available"
            )
        return self._context

    async def start(self):
        """Launch the browser with bounded timeout and linear backoff retries."""
        if self.state == SessionState.READY:
            return
        if self.state == SessionState.CLOSED:
            raise SessionClosedError(f"[{self.source}] session already closed")

        attempts = max(1, self.config.start_retries)
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            logger.info(f"[{self.source}] starting browser (attempt {attempt}/{attempts})")
            try:
                await asyncio.wait_for(
                    self._launch(), timeout=self.config.launch_timeout_ms / 1000
                )
            except Exception as e:
                last_error = e
                logger.warning(
                    f"[{self.source}] browser start failed (attempt {attempt}/{attempts}): {e!r}"
                )
                await self._release()
                if attempt < attempts:
                    await asyncio.sleep(self.config.backoff_for(attempt))
                continue

            self.state = SessionState.READY
            active_browser_sessions.inc()
            logger.info(f"[{self.source}] browser session ready")
            return

        raise SessionInitError(
            self.source, attempts, reason=repr(last_error) if last_error else ""
        ) from last_error

    async def _launch(self):
        self.identity = IdentityProfile.random(self.config.user_agents)
        identity = self.identity

        self._playwright = await self._playwright_factory().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.config.headless,
            args=_CHROMIUM_ARGS,
        )

        headers = {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
            "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
            "Accept-Encoding": "gzip, deflate, br",
            "Sec-Ch-Ua-Mobile": "?0",
            "Sec-Ch-Ua-Platform": identity.platform_hint,
            "Upgrade-Insecure-Requests": "1",
        }
        headers.update(self.config.extra_headers)

        self._context = await self._browser.new_context(
            user_agent=identity.user_agent,
            viewport=identity.viewport,
            locale=self.config.locale,
            timezone_id=self.config.timezone,
            ignore_https_errors=True,
            java_script_enabled=True,
            has_touch=False,
            is_mobile=False,
            extra_http_headers=headers,
        )

        await _setup_route_blocking(
            self._context,
            self.config.blocked_resource_types,
            self.config.blocked_url_patterns,
        )
        await self._context.add_init_script(_build_stealth_script(identity))

        if self.config.cookies:
            cookies = self.config.cookies()
            if cookies:
                await self._context.add_cookies(cookies)
                logger.debug(f"[{self.source}] installed {len(cookies)} session cookies")

        self._page = await self._context.new_page()

    async def _release(self):
        """Close page, context, browser and driver; errors are logged only."""
        for name, resource, method in (
            ("page", self._page, "close"),
            ("context", self._context, "close"),
            ("browser", self._browser, "close"),
            ("playwright", self._playwright, "stop"),
        ):
            if resource is None:
                continue
            try:
                await getattr(resource, method)()
            except Exception as e:
                logger.warning(f"[{self.source}] error closing {name}: {e}")
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

    async def close(self):
        if self.state == SessionState.CLOSED:
            return
        was_ready = self.state == SessionState.READY
        await self._release()
        self.state = SessionState.CLOSED
        if was_ready:
            active_browser_sessions.dec()
        logger.info(f"[{self.source}] browser session closed")


class SessionManager:
    """Hands out one CrawlSession per source and guarantees release."""

    def __init__(
        self,
        config: SessionConfig | None = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ):
        self.config = config or SessionConfig()
        self._playwright_factory = playwright_factory
        self._session: CrawlSession | None = None

    @property
    def session(self) -> CrawlSession | None:
        return self._session

    async def open(self, source: str) -> CrawlSession:
        """Return the ready session, starting a fresh one when needed."""
        if self._session is not None and self._session.is_ready:
            return self._session
        session = CrawlSession(source, self.config, self._playwright_factory)
        self._session = session
        await session.start()
        return session

    async def close(self, session: CrawlSession | None = None):
        session = session or self._session
        if session is None:
            return
        await session.close()
        if session is self._session:
            self._session = None
