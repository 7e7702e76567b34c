"""Diagnostic artifacts for failed extractions.

The writer subscribes to the event stream and keeps the most recent
events per source. On capture it writes, into the debug directory:

  diag-<source>-<task>-<outcome>-<ts>.json    target URL, title, selector attempts, events
  screenshot-<source>-<task>-<outcome>-<ts>.png
  html-<source>-<task>-<outcome>-<ts>.html

Capturing never raises; every failure is logged and skipped.
"""

import json
import logging
from collections import defaultdict, deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dramascout.config import settings
from dramascout.core.events import CrawlEvent, EventStream, event_stream
from dramascout.services.browser import CrawlSession

logger = logging.getLogger(__name__)

RECENT_EVENTS_PER_SOURCE = 50


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace(":", "-").replace(".", "-").replace("+", "_")


def artifact_stem(source: str, task_kind: str, outcome: str, ts: str | None = None) -> str:
    return f"{source}-{task_kind}-{outcome}-{ts or _timestamp()}"


class DiagnosticsWriter:
    def __init__(
        self,
        debug_dir: str | Path | None = None,
        events: EventStream | None = None,
        enabled: bool | None = None,
    ):
        self.debug_dir = Path(debug_dir or settings.DEBUG_DIR)
        self.enabled = settings.DIAGNOSTICS_ENABLED if enabled is None else enabled
        self._recent: dict[str, deque[CrawlEvent]] = defaultdict(
            lambda: deque(maxlen=RECENT_EVENTS_PER_SOURCE)
        )
        self._events = events if events is not None else event_stream
        self._events.subscribe(self.record_event)

    def record_event(self, event: CrawlEvent):
        self._recent[event.source].append(event)

    def recent_events(self, source: str) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self._recent.get(source, ())]

    def detach(self):
        self._events.unsubscribe(self.record_event)

    async def capture(
        self,
        session: CrawlSession | None,
        source: str,
        task_kind: str,
        outcome: str,
        url: str = "",
        attempts: list[Any] | None = None,
        error: str = "",
    ) -> dict[str, str]:
        """Write the diagnostic record and page snapshots.

        Returns a mapping of artifact kind to written path.
        """
        written: dict[str, str] = {}
        if not self.enabled:
            return written

        stem = artifact_stem(source, task_kind, outcome)
        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"[{source}] cannot create debug dir {self.debug_dir}: {e}")
            return written

        page = None
        if session is not None and session.is_ready:
            page = session.page

        page_title = ""
        if page is not None:
            try:
                page_title = await page.title()
                url = url or page.url
            except Exception as e:
                logger.debug(f"[{source}] page title unavailable for diagnostics: {e}")

        record = {
            "source": source,
            "task": task_kind,
            "outcome": outcome,
            "url": url,
            "page_title": page_title,
            "error": error,
            "selector_attempts": [
                a.to_dict() if hasattr(a, "to_dict") else a for a in (attempts or [])
            ],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "recent_events": self.recent_events(source),
        }
        path = self.debug_dir / f"diag-{stem}.json"
        try:
            path.write_text(
                json.dumps(record, ensure_ascii=False, indent=2, default=str),
                encoding="utf-8",
            )
            written["record"] = str(path)
        except Exception as e:
            logger.error(f"[{source}] failed to write diagnostic record: {e}")

        if page is not None:
            path = self.debug_dir / f"screenshot-{stem}.png"
            try:
                await page.screenshot(path=str(path), full_page=True)
                written["screenshot"] = str(path)
            except Exception as e:
                logger.warning(f"[{source}] screenshot capture failed: {e}")

            path = self.debug_dir / f"html-{stem}.html"
            try:
                path.write_text(await page.content(), encoding="utf-8")
                written["html"] = str(path)
            except Exception as e:
                logger.warning(f"[{source}] HTML snapshot failed: {e}")

        if written:
            logger.info(f"[{source}] diagnostics saved: {', '.join(written.values())}")
        return written
