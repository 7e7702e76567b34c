"""Blocking/challenge detection and in-place mitigation.

The detector never raises: if probing the page itself fails, that is
reported as "no signal" and the crawl carries on. Mitigation is best
effort: human-like mouse and scroll activity, a long random pause and an
optional single reload.
"""

import logging
import random
from dataclasses import dataclass, field
from urllib.parse import urlparse

from playwright.async_api import Page

from dramascout.config import settings
from dramascout.core.events import EventStream, event_stream
from dramascout.core.metrics import anti_bot_signals_total
from dramascout.services.browser import CrawlSession
from dramascout.services.navigation import DelayRange, random_delay

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Default signal lists
# ---------------------------------------------------------------------------

CHALLENGE_SELECTORS = [
    '[id*="captcha"]',
    '[class*="captcha"]',
    '[id*="verify"]',
    '[class*="verify"]',
    ".slider-verify",
    "#nc_1_n1z",
    ".geetest_radar_tip",
    '[class*="robot"]',
    '[id*="robot"]',
    ".anti-bot",
    ".security-check",
    '[class*="challenge"]',
]

REDIRECT_PATTERNS = ["login", "pay", "verify", "captcha", "security", "error", "403"]

BLOCKING_KEYWORDS = [
    "验证码",
    "人机验证",
    "安全验证",
    "访问被拒绝",
    "captcha",
    "access denied",
]

_BODY_TEXT_JS = "() => document.body ? document.body.innerText : ''"


@dataclass
class AntiBotSignal:
    kind: str  # markup | redirect | short_content | keyword
    detail: str
    count: int = 1


@dataclass
class DetectionConfig:
    selectors: list[str] = field(default_factory=lambda: list(CHALLENGE_SELECTORS))
    redirect_patterns: list[str] = field(default_factory=lambda: list(REDIRECT_PATTERNS))
    keywords: list[str] = field(default_factory=lambda: list(BLOCKING_KEYWORDS))
    # 0 disables the short-content check
    min_content_length: int = field(default_factory=lambda: settings.MIN_CONTENT_LENGTH)
    reload_on_signal: bool = True
    reload_timeout_ms: int = field(default_factory=lambda: settings.DEFAULT_TIMEOUT)
    mitigation_delay: DelayRange = field(
        default_factory=lambda: DelayRange(
            settings.MITIGATION_DELAY_MIN, settings.MITIGATION_DELAY_MAX
        )
    )
    settle_delay: DelayRange = field(default_factory=lambda: DelayRange(2000, 4000))
    # Pause between simulated mouse moves / scroll steps
    humanize_delay: DelayRange = field(default_factory=lambda: DelayRange(200, 800))


# ---------------------------------------------------------------------------
# Human activity simulation
# ---------------------------------------------------------------------------


async def simulate_mouse_movement(page: Page, step_delay: DelayRange, moves: int | None = None):
    """Move the mouse to a few random points inside the viewport."""
    try:
        viewport = page.viewport_size or {"width": 1366, "height": 768}
        for _ in range(moves or random.randint(3, 7)):
            x = random.randint(0, viewport["width"] - 1)
            y = random.randint(0, viewport["height"] - 1)
            await page.mouse.move(x, y)
            await random_delay(step_delay)
    except Exception as e:
        logger.debug(f"Mouse simulation failed: {e}")


async def simulate_human_scroll(page: Page, step_delay: DelayRange, steps: int | None = None):
    """Scroll down in uneven increments, occasionally back up, then to top."""
    try:
        for _ in range(steps or random.randint(3, 8)):
            await page.evaluate(f"window.scrollBy(0, {random.randint(200, 800)})")
            await random_delay(step_delay)
            if random.random() < 0.3:
                await page.evaluate(f"window.scrollBy(0, -{random.randint(50, 200)})")
                await random_delay(step_delay)
        await page.evaluate("window.scrollTo({top: 0, behavior: 'smooth'})")
    except Exception as e:
        logger.debug(f"Scroll simulation failed: {e}")


class AntiBotDetector:
    def __init__(
        self,
        source: str,
        config: DetectionConfig | None = None,
        events: EventStream | None = None,
    ):
        self.source = source
        self.config = config or DetectionConfig()
        self.events = events if events is not None else event_stream

    async def scan(self, page: Page) -> list[AntiBotSignal]:
        """Collect every blocking signal visible on the page. Never raises."""
        signals: list[AntiBotSignal] = []
        try:
            for selector in self.config.selectors:
                if await page.query_selector(selector):
                    signals.append(AntiBotSignal("markup", selector))

            url = page.url or ""
            title = await page.title() or ""
            path = urlparse(url).path.lower() + "?" + urlparse(url).query.lower()
            for pattern in self.config.redirect_patterns:
                needle = pattern.lower()
                if needle in path or needle in title.lower():
                    signals.append(AntiBotSignal("redirect", f"{pattern} in {url} / {title}"))
                    break

            text = await page.evaluate(_BODY_TEXT_JS) or ""
            if self.config.min_content_length and len(text) < self.config.min_content_length:
                signals.append(AntiBotSignal("short_content", f"{len(text)} characters"))

            haystack = f"{text}\n{title}".lower()
            hits = [k for k in self.config.keywords if k.lower() in haystack]
            if hits:
                signals.append(AntiBotSignal("keyword", ", ".join(hits), count=len(hits)))
        except Exception as e:
            logger.warning(f"[{self.source}] anti-bot scan failed, assuming no signal: {e}")
            return []
        return signals

    async def detect(self, session: CrawlSession) -> bool:
        """Scan the session's page; on any signal, mitigate and return True."""
        try:
            page = session.page
        except Exception as e:
            logger.warning(f"[{self.source}] anti-bot detection skipped: {e}")
            return False

        signals = await self.scan(page)
        if not signals:
            self.events.debug(self.source, "no blocking signal detected")
            return False

        for signal in signals:
            anti_bot_signals_total.labels(platform=self.source, kind=signal.kind).inc()
        self.events.warning(
            self.source,
            f"detected {len(signals)} blocking signal(s), mitigating",
            signals=[{"kind": s.kind, "detail": s.detail, "count": s.count} for s in signals],
            url=getattr(page, "url", ""),
        )

        await self.mitigate(page)
        return True

    async def mitigate(self, page: Page):
        cfg = self.config
        await simulate_mouse_movement(page, cfg.humanize_delay)
        await simulate_human_scroll(page, cfg.humanize_delay)
        await random_delay(cfg.mitigation_delay)
        if not cfg.reload_on_signal:
            return
        try:
            await page.reload(wait_until="networkidle", timeout=cfg.reload_timeout_ms)
        except Exception as e:
            logger.warning(f"[{self.source}] reload after blocking signal failed: {e}")
            return
        await random_delay(cfg.settle_delay)
