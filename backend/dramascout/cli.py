"""CLI tool for DramaScout: run crawls from the command line.

Usage:
    python -m dramascout.cli sources
    python -m dramascout.cli run tencent iqiyi --kind drama_list --page-size 10
    python -m dramascout.cli run all --kind ranking --type new --limit 20
    python -m dramascout.cli detail iqiyi 19rrhb0ms9
    python -m dramascout.cli health
"""

import argparse
import asyncio
import json
import sys

from dramascout.config import settings
from dramascout.core.logging_config import configure_logging


def _print(payload):
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _options(args) -> dict:
    options = {}
    for key in ("page", "page_size", "limit", "type", "category", "timeout", "max_retries", "max_concurrency"):
        value = getattr(args, key, None)
        if value is not None:
            options[key] = value
    if getattr(args, "headed", False):
        options["headless"] = False
    return options


def _manager(args):
    from dramascout.services.diagnostics import DiagnosticsWriter
    from dramascout.services.orchestrator import CrawlerManager

    if args.no_diagnostics:
        return CrawlerManager(diagnostics=DiagnosticsWriter(enabled=False))
    if args.debug_dir:
        return CrawlerManager(diagnostics=DiagnosticsWriter(args.debug_dir))
    return CrawlerManager()


def _dump_metrics(args):
    if settings.METRICS_ENABLED and getattr(args, "metrics_file", None):
        from dramascout.core.metrics import write_metrics

        write_metrics(args.metrics_file)


async def _cmd_run(args) -> int:
    """Run a list or ranking crawl on one or more sources."""
    manager = _manager(args)
    result = await manager.run_multi(args.sources, args.kind, _options(args))
    _print(result.model_dump(mode="json"))
    _dump_metrics(args)
    print(
        f"\n{result.summary.successful}/{result.summary.total} sources succeeded, "
        f"{result.summary.total_data} records",
        file=sys.stderr,
    )
    return 0 if result.success else 1


async def _cmd_detail(args) -> int:
    manager = _manager(args)
    result = await manager.get_drama_detail(args.source, args.drama_id, **_options(args))
    _print(result.model_dump(mode="json"))
    _dump_metrics(args)
    return 0 if result.success else 1


async def _cmd_health(args) -> int:
    from dramascout.services.orchestrator import CrawlerManager

    report = await CrawlerManager().health_check()
    _print(report.model_dump(mode="json"))
    return 0 if report.overall else 1


def _cmd_sources(args) -> int:
    from dramascout.adapters import PROFILES

    _print([
        {"name": p.name, "display_name": p.display_name, "base_url": p.base_url}
        for p in PROFILES.values()
    ])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dramascout",
        description="DramaScout CLI: crawl short-drama listings, rankings and details",
    )
    parser.add_argument("--version", action="version", version=f"{settings.APP_NAME} {settings.APP_VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--log-format", default=None, choices=["json", "text"],
        help="Log format on stderr (default: LOG_FORMAT setting)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    def _crawl_flags(p):
        p.add_argument("--timeout", type=int, default=None, help="Navigation timeout in ms")
        p.add_argument("--max-retries", type=int, default=None, help="Navigation attempts")
        p.add_argument("--headed", action="store_true", help="Show the browser window")
        p.add_argument("--debug-dir", default=None, help="Where diagnostics are written")
        p.add_argument("--no-diagnostics", action="store_true", help="Do not write diagnostics")
        p.add_argument("--metrics-file", default=None, help="Write Prometheus metrics here after the run")

    # --- run ---
    run_parser = subparsers.add_parser("run", help="Crawl listings or rankings")
    run_parser.add_argument("sources", nargs="+", help="Source names, or 'all'")
    run_parser.add_argument(
        "--kind", default="drama_list", choices=["drama_list", "ranking"],
        help="What to crawl (default: drama_list)",
    )
    run_parser.add_argument("--page", type=int, default=None)
    run_parser.add_argument("--page-size", type=int, default=None)
    run_parser.add_argument("--limit", type=int, default=None, help="Ranking size")
    run_parser.add_argument("--type", default=None, help="Ranking type: hot, new, recommend")
    run_parser.add_argument("--category", default=None, help="Keep only records mentioning this")
    run_parser.add_argument("--max-concurrency", type=int, default=None)
    _crawl_flags(run_parser)

    # --- detail ---
    detail_parser = subparsers.add_parser("detail", help="Fetch one drama's detail page")
    detail_parser.add_argument("source", help="Source name")
    detail_parser.add_argument("drama_id", help="Drama id or full detail URL")
    _crawl_flags(detail_parser)

    subparsers.add_parser("health", help="Check that every source is reachable")
    subparsers.add_parser("sources", help="List supported sources")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(
        args.log_format or settings.LOG_FORMAT,
        "DEBUG" if args.verbose or settings.DEBUG else settings.LOG_LEVEL,
        stream=sys.stderr,
    )

    if args.command == "run":
        return asyncio.run(_cmd_run(args))
    elif args.command == "detail":
        return asyncio.run(_cmd_detail(args))
    elif args.command == "health":
        return asyncio.run(_cmd_health(args))
    elif args.command == "sources":
        return _cmd_sources(args)
    return 1


if __name__ == "__main__":
    sys.exit(main())
