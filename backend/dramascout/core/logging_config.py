"""Root logger setup for crawl runs.

LOG_FORMAT selects the line format: "json" emits one JSON object per line
(crawl events add their payload under "event"), "text" is for terminals.
Both carry the id of the crawl task that produced the line.
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from dramascout.core.context import get_task_id

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(task_id)s] %(message)s"


class TaskIDFilter(logging.Filter):
    """Tag each record with the current crawl task id."""

    def filter(self, record):
        record.task_id = get_task_id()
        return True


class PlaywrightPipeFilter(logging.Filter):
    """Drop the "pipe closed by peer" lines a dying browser context floods us with."""

    def filter(self, record):
        msg = record.getMessage() if hasattr(record, "getMessage") else str(record.msg)
        if "pipe closed by peer" in msg:
            return False
        return True


def configure_logging(log_format: str = "json", log_level: str = "INFO", stream=None):
    """Configure root logger with the specified format.

    Args:
        log_format: "json" or "text"
        log_level: Python log level name
        stream: where to write, stdout by default
    """
    root = logging.getLogger()
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(TaskIDFilter())
    handler.addFilter(PlaywrightPipeFilter())

    if log_format == "json":
        formatter = JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s %(task_id)s",
            rename_fields={
                "levelname": "level",
                "name": "logger",
                "asctime": "timestamp",
            },
            json_ensure_ascii=False,
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    logging.getLogger("playwright").setLevel(logging.ERROR)
    logging.getLogger("httpx").setLevel(logging.WARNING)
