"""Exception hierarchy for the crawl core.

Taxonomy:
- SessionInitError: browser/session could not start (fatal after retries)
- NavigationError: page/HTTP navigation failed after retries
  (LandingControlError: a landing page lacks its entry control)
- BlockedError: a blocking signal made the requested page unusable
- ExtractionError: no container locator produced a valid record
- ValidationFailedError: every record in a batch failed validation
"""

from __future__ import annotations

from typing import Any


class CrawlerError(Exception):
    """Base class for all crawl-core errors."""


class SessionInitError(CrawlerError):
    def __init__(self, source: str, attempts: int, reason: str = ""):
        self.source = source
        self.attempts = attempts
        super().__init__(
            f"[{source}] browser session failed to start after {attempts} attempts"
            + (f": {reason}" if reason else "")
        )


class SessionClosedError(CrawlerError):
    """Raised when a closed (or never opened) session is used."""


class NavigationError(CrawlerError):
    def __init__(self, url: str, attempts: int, reason: str = ""):
        self.url = url
        self.attempts = attempts
        super().__init__(
            f"Navigation to {url} failed after {attempts} attempts"
            + (f": {reason}" if reason else "")
        )


class LandingControlError(NavigationError):
    """A landing page lacks the control that leads to the listing."""

    def __init__(self, url: str, control: str):
        self.url = url
        self.attempts = 0
        self.control = control
        CrawlerError.__init__(self, f"Control {control!r} not found on {url}")


class BlockedError(CrawlerError):
    def __init__(self, source: str, url: str = ""):
        self.source = source
        self.url = url
        super().__init__(f"[{source}] blocking signal detected on {url or 'page'}")


class ExtractionError(CrawlerError):
    """No locator in the container list yielded any valid record."""

    def __init__(self, message: str = "no data extracted", attempts: list[Any] | None = None):
        self.attempts = attempts or []
        super().__init__(message)


class ValidationFailedError(ExtractionError):
    """Elements matched, but every candidate record failed validation."""

    def __init__(self, source: str, rejected: int, attempts: list[Any] | None = None):
        self.source = source
        self.rejected = rejected
        super().__init__(
            f"[{source}] all {rejected} extracted records failed validation", attempts
        )


class UnsupportedTaskError(CrawlerError):
    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Unsupported task kind: {kind}")


class UnknownSourceError(CrawlerError):
    def __init__(self, source: str, supported: list[str] | None = None):
        self.source = source
        msg = f"Unsupported source: {source}"
        if supported:
            msg += f". Supported: {', '.join(supported)}"
        super().__init__(msg)
