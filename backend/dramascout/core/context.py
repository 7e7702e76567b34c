"""Crawl task context for log correlation.

The id of the crawl task currently executing is stored in a
contextvars.ContextVar so every log line emitted from inside a task
(adapters, navigation, detection) can be tagged with it, even when
several tasks run concurrently on the same event loop.
"""

import contextvars
from contextlib import contextmanager

# Context variable accessible from anywhere in the same async task
task_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "task_id", default=""
)


@contextmanager
def bind_task_id(task_id: str):
    token = task_id_var.set(task_id)
    try:
        yield task_id
    finally:
        task_id_var.reset(token)


def get_task_id() -> str:
    """Get the current task ID (empty string outside a task)."""
    return task_id_var.get()
