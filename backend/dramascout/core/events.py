"""Structured, leveled event stream for crawl runs.

Adapters emit events (info / warning / error) describing what they do:
state transitions, anti-bot signals, selector attempts, failures. Every
event is also written to the standard logger. Subscribers receive the
event objects; a failing subscriber is logged and skipped so it can never
break the crawl that emitted the event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from dramascout.core.context import get_task_id

logger = logging.getLogger(__name__)

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class CrawlEvent:
    level: str
    source: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    task_id: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "source": self.source,
            "message": self.message,
            "data": self.data,
            "task_id": self.task_id,
            "timestamp": self.timestamp.isoformat(),
        }


Subscriber = Callable[[CrawlEvent], None]


class EventStream:
    """Fan-out of crawl events to subscribers."""

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        if not callable(callback):
            raise TypeError(f"Subscriber must be callable, got {type(callback)}")
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers = [s for s in self._subscribers if s != callback]

    def emit(self, level: str, source: str, message: str, **data: Any) -> CrawlEvent:
        if level not in LEVELS:
            raise ValueError(f"Invalid event level: {level}")
        event = CrawlEvent(
            level=level,
            source=source,
            message=message,
            data=data,
            task_id=get_task_id(),
        )
        logger.log(LEVELS[level], "[%s] %s", source, message, extra={"event": data} if data else None)

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Event subscriber {getattr(callback, '__name__', callback)} failed: {e}")
        return event

    def info(self, source: str, message: str, **data: Any) -> CrawlEvent:
        return self.emit("info", source, message, **data)

    def warning(self, source: str, message: str, **data: Any) -> CrawlEvent:
        return self.emit("warning", source, message, **data)

    def error(self, source: str, message: str, **data: Any) -> CrawlEvent:
        return self.emit("error", source, message, **data)

    def debug(self, source: str, message: str, **data: Any) -> CrawlEvent:
        return self.emit("debug", source, message, **data)


# Process-wide stream; adapters default to it unless one is injected
event_stream = EventStream()
