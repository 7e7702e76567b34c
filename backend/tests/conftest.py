"""Shared fakes: a scripted Playwright page, session and session manager."""

import dataclasses
from pathlib import Path

import pytest

from dramascout.core.events import EventStream
from dramascout.services.anti_bot import DetectionConfig
from dramascout.services.browser import SessionConfig
from dramascout.services.navigation import DelayRange, NavigationPolicy

NO_DELAY = DelayRange(0, 0)


class FakeMouse:
    def __init__(self):
        self.moves = []

    async def move(self, x, y):
        self.moves.append((x, y))


class FakePage:
    """Minimal stand-in for playwright's Page.

    goto() fails `goto_errors` times before succeeding; `redirects` maps a
    requested URL to the URL the page ends up on.
    """

    def __init__(self, html="", *, url="about:blank", title="", text=None,
                 present=(), goto_errors=0, redirects=None):
        self.html = html
        self.url = url
        self._title = title
        self.text = "正文内容" * 200 if text is None else text
        self.present = set(present)
        self.goto_errors = goto_errors
        self.redirects = redirects or {}
        self.goto_calls = []
        self.reloads = 0
        self.mouse = FakeMouse()
        self.viewport_size = {"width": 1280, "height": 720}
        self.screenshots = []

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append(url)
        if self.goto_errors:
            self.goto_errors -= 1
            raise TimeoutError(f"Timeout {timeout}ms exceeded navigating to {url}")
        self.url = self.redirects.get(url, url)

    async def content(self):
        return self.html

    async def title(self):
        return self._title

    async def evaluate(self, script, *args):
        if "innerText" in script:
            return self.text
        return None

    async def query_selector(self, selector):
        return object() if selector in self.present else None

    async def reload(self, wait_until=None, timeout=None):
        self.reloads += 1

    async def wait_for_selector(self, selector, timeout=None):
        return None

    async def wait_for_load_state(self, state=None, timeout=None):
        return None

    async def screenshot(self, path=None, full_page=False):
        self.screenshots.append(path)
        Path(path).write_bytes(b"\x89PNG")


class FakeSession:
    def __init__(self, page):
        self.page = page
        self.is_ready = True
        self.closed = False

    async def close(self):
        self.closed = True
        self.is_ready = False


class FakeSessionManager:
    def __init__(self, page):
        self.page = page
        self.config = SessionConfig()
        self.session = None
        self.opened = 0
        self.closed = 0

    async def open(self, source):
        if self.session is None or not self.session.is_ready:
            self.session = FakeSession(self.page)
            self.opened += 1
        return self.session

    async def close(self, session=None):
        session = session or self.session
        if session is not None:
            await session.close()
            self.closed += 1
        self.session = None


def fast(profile, **changes):
    """Copy of a source profile with every delay zeroed."""
    return dataclasses.replace(
        profile,
        navigation=dataclasses.replace(profile.navigation, request_delay=NO_DELAY),
        retry_delay=NO_DELAY,
        detection=dataclasses.replace(
            profile.detection,
            mitigation_delay=NO_DELAY,
            settle_delay=NO_DELAY,
            humanize_delay=NO_DELAY,
        ),
        **changes,
    )


@pytest.fixture
def events():
    return EventStream()


@pytest.fixture
def fast_policy():
    return NavigationPolicy(max_retries=3, request_delay=NO_DELAY, timeout_ms=1000)


@pytest.fixture
def quiet_detection():
    return DetectionConfig(
        min_content_length=0,
        mitigation_delay=NO_DELAY,
        settle_delay=NO_DELAY,
        humanize_delay=NO_DELAY,
    )
