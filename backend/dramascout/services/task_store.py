"""Bounded in-memory registry of crawl tasks.

Tasks live here only while the process runs. When the store is full the
oldest task (by insertion) is evicted; nothing is expired by time.
Callers that need durable task history must persist it themselves.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any

from dramascout.config import settings
from dramascout.schemas.crawl import CrawlOptions, CrawlTask, TaskKind, TaskStatus

logger = logging.getLogger(__name__)

STOPPED_BY_USER = "stopped by user"


class TaskStore:
    def __init__(self, max_size: int | None = None):
        self.max_size = max_size or settings.TASK_STORE_MAX_SIZE
        if self.max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._tasks: OrderedDict[str, CrawlTask] = OrderedDict()

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._tasks

    def create(
        self,
        sources: list[str],
        kind: TaskKind | str,
        options: CrawlOptions | None = None,
    ) -> CrawlTask:
        task = CrawlTask(sources=list(sources), kind=TaskKind(kind), options=options or CrawlOptions())
        self._tasks[task.id] = task
        while len(self._tasks) > self.max_size:
            evicted_id, evicted = self._tasks.popitem(last=False)
            logger.debug(f"Task store full, evicted task {evicted_id} ({evicted.status.value})")
        return task

    def get(self, task_id: str) -> CrawlTask | None:
        return self._tasks.get(task_id)

    def list(self, status: TaskStatus | str | None = None) -> list[CrawlTask]:
        tasks = list(self._tasks.values())
        if status is not None:
            tasks = [t for t in tasks if t.status == TaskStatus(status)]
        return tasks

    def discard(self, task_id: str) -> bool:
        return self._tasks.pop(task_id, None) is not None

    def update(self, task_id: str, **changes: Any) -> CrawlTask | None:
        """Apply changes unless the task is gone or already terminal."""
        task = self._tasks.get(task_id)
        if task is None or task.status.is_terminal:
            return None
        for key, value in changes.items():
            setattr(task, key, value)
        if task.status.is_terminal and task.ended_at is None:
            task.ended_at = datetime.now(timezone.utc)
        return task

    def stop(self, task_id: str) -> bool:
        """Mark a running/pending task failed. In-flight work is not interrupted,
        but its later transitions are ignored."""
        task = self._tasks.get(task_id)
        if task is None or task.status.is_terminal:
            return False
        task.status = TaskStatus.FAILED
        task.error = STOPPED_BY_USER
        task.ended_at = datetime.now(timezone.utc)
        logger.info(f"Task {task_id} stopped by user")
        return True

    def stats(self) -> dict[str, int]:
        counts = {s.value: 0 for s in TaskStatus}
        for task in self._tasks.values():
            counts[task.status.value] += 1
        counts["total"] = len(self._tasks)
        return counts
