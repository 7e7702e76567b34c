"""Run a ranking crawl as a background task and follow its events."""

import asyncio

from dramascout.core.events import event_stream
from dramascout.services.orchestrator import CrawlerManager


def print_event(event):
    if event.level in ("warning", "error"):
        print(f"[{event.level}] {event.source}: {event.message}")


async def main():
    event_stream.subscribe(print_event)
    manager = CrawlerManager()

    task = manager.submit("all", "ranking", {"type": "hot", "limit": 20})
    print(f"Task {task.id} submitted for {', '.join(task.sources)}")

    while not task.status.is_terminal:
        await asyncio.sleep(2)
        print(f"  {task.status.value} {task.progress}%")

    if task.error:
        print(f"Task failed: {task.error}")
    else:
        summary = task.result.summary
        print(f"Done: {summary.total_data} records from {summary.successful} sources")


if __name__ == "__main__":
    asyncio.run(main())
