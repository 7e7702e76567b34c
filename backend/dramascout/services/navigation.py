"""Paced, retried page navigation and plain HTTP requests.

Every navigation is preceded by a random human-like delay and bounded by
a timeout. Failed attempts are retried with a fresh random delay; when
all attempts fail a NavigationError is raised, chained to the last
underlying error.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any

import httpx
from playwright.async_api import Page

from dramascout.config import settings
from dramascout.core.exceptions import NavigationError
from dramascout.core.metrics import navigation_retries_total
from dramascout.services.browser import CHROME_USER_AGENTS, CrawlSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DelayRange:
    """Inclusive random delay bounds in milliseconds."""

    min_ms: int
    max_ms: int

    def __post_init__(self):
        if self.min_ms < 0 or self.max_ms < 0:
            raise ValueError("delay bounds must be non-negative")
        if self.min_ms > self.max_ms:
            raise ValueError(f"min_ms ({self.min_ms}) > max_ms ({self.max_ms})")

    def pick(self) -> float:
        """A random delay in seconds."""
        return random.randint(self.min_ms, self.max_ms) / 1000


async def random_delay(delay: DelayRange):
    seconds = delay.pick()
    if seconds > 0:
        await asyncio.sleep(seconds)


def default_request_delay() -> DelayRange:
    return DelayRange(settings.REQUEST_DELAY_MIN, settings.REQUEST_DELAY_MAX)


@dataclass
class NavigationPolicy:
    max_retries: int = field(default_factory=lambda: settings.MAX_RETRIES)
    request_delay: DelayRange = field(default_factory=default_request_delay)
    timeout_ms: int = field(default_factory=lambda: settings.DEFAULT_TIMEOUT)
    wait_until: str = "networkidle"
    request_timeout: float = field(default_factory=lambda: settings.HTTP_REQUEST_TIMEOUT)


class NavigationController:
    """Navigation and HTTP access for one source, with pacing and retries."""

    def __init__(
        self,
        source: str,
        policy: NavigationPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        user_agents: list[str] | None = None,
    ):
        self.source = source
        self.policy = policy or NavigationPolicy()
        self._transport = transport
        self._user_agents = user_agents or CHROME_USER_AGENTS

    async def safe_navigate(
        self,
        session: CrawlSession,
        url: str,
        *,
        timeout_ms: int | None = None,
        wait_until: str | None = None,
        max_retries: int | None = None,
    ):
        """Navigate the session's page to url, retrying transient failures."""
        page = session.page
        attempts = max(1, max_retries or self.policy.max_retries)
        timeout = timeout_ms or self.policy.timeout_ms
        wait = wait_until or self.policy.wait_until

        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            await random_delay(self.policy.request_delay)
            try:
                return await page.goto(url, wait_until=wait, timeout=timeout)
            except Exception as e:
                last_error = e
                navigation_retries_total.labels(platform=self.source).inc()
                logger.warning(
                    f"[{self.source}] navigation to {url} failed ({attempt}/{attempts}): {e}"
                )

        raise NavigationError(url, attempts, reason=str(last_error)) from last_error

    async def safe_request(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        max_retries: int | None = None,
    ) -> Any:
        """HTTP GET with the same retry policy; JSON is decoded when served."""
        attempts = max(1, max_retries or self.policy.max_retries)
        last_error: Exception | None = None

        async with httpx.AsyncClient(
            timeout=self.policy.request_timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            for attempt in range(1, attempts + 1):
                await random_delay(self.policy.request_delay)
                request_headers = {
                    "User-Agent": random.choice(self._user_agents),
                    "Accept": "application/json, text/plain, */*",
                    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
                    "Cache-Control": "no-cache",
                    "Pragma": "no-cache",
                }
                if headers:
                    request_headers.update(headers)
                try:
                    response = await client.get(url, headers=request_headers)
                    response.raise_for_status()
                except Exception as e:
                    last_error = e
                    navigation_retries_total.labels(platform=self.source).inc()
                    logger.warning(
                        f"[{self.source}] request to {url} failed ({attempt}/{attempts}): {e}"
                    )
                    continue

                if "json" in response.headers.get("content-type", ""):
                    return response.json()
                return response.text

        raise NavigationError(url, attempts, reason=str(last_error)) from last_error


async def wait_for_page_load(page: Page, timeout_ms: int = 10000) -> bool:
    """Best-effort wait for network idle. Never raises."""
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
        return True
    except Exception as e:
        logger.debug(f"wait_for_page_load timed out or failed: {e}")
        return False


async def wait_for_any(page: Page, selectors: list[str], timeout_ms: int = 5000) -> str | None:
    """Return the first selector that appears on the page, or None."""
    for selector in selectors:
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms)
            return selector
        except Exception:
            continue
    return None
