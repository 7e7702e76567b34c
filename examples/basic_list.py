"""Basic example: fetch the first page of short dramas from two sources."""

import asyncio

from dramascout.core.logging_config import configure_logging
from dramascout.services.orchestrator import CrawlerManager


async def main():
    configure_logging("text", "INFO")
    manager = CrawlerManager()

    result = await manager.get_drama_list(["iqiyi", "tencent"], page_size=10)

    for platform in result.results:
        if not platform.success:
            print(f"{platform.platform}: failed ({platform.error})")
            continue
        print(f"=== {platform.platform} ({platform.record_count} records) ===")
        for record in platform.data:
            print(f"  {record.title}  {record.source_url or ''}")

    print(f"\n{result.summary.successful}/{result.summary.total} sources, {result.summary.total_data} records")


if __name__ == "__main__":
    asyncio.run(main())
