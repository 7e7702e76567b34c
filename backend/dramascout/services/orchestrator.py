"""Multi-source orchestration.

CrawlerManager builds a fresh adapter per run (sessions are never shared
between runs or sources), fans runs out concurrently and folds every
outcome, success or failure, into a result object. Nothing here raises
on a source failure; errors become failed PlatformResults.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from dramascout.adapters import ADAPTER_FACTORIES, PROFILES
from dramascout.config import settings
from dramascout.core.context import bind_task_id
from dramascout.core.events import EventStream, event_stream
from dramascout.core.exceptions import UnknownSourceError
from dramascout.core.metrics import crawl_tasks_total
from dramascout.schemas.crawl import (
    BatchResult,
    BatchSummary,
    CrawlOptions,
    CrawlTask,
    HealthReport,
    PlatformHealth,
    PlatformResult,
    TaskKind,
    TaskStatus,
)
from dramascout.services.browser import CHROME_USER_AGENTS
from dramascout.services.diagnostics import DiagnosticsWriter
from dramascout.services.task_store import TaskStore

logger = logging.getLogger(__name__)

HEALTHY_STATUS_CODES = (200, 301, 302)

FEATURES = [
    "drama_list",
    "ranking",
    "detail",
    "anti_bot_detection",
    "multi_source_concurrency",
    "health_check",
]


class CrawlerManager:
    def __init__(
        self,
        factories: dict[str, Any] | None = None,
        *,
        health_urls: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        task_store: TaskStore | None = None,
        diagnostics: DiagnosticsWriter | None = None,
        events: EventStream | None = None,
    ):
        self._factories = dict(factories if factories is not None else ADAPTER_FACTORIES)
        self._health_urls = health_urls or {
            name: profile.base_url for name, profile in PROFILES.items()
        }
        self._transport = transport
        self.tasks = task_store if task_store is not None else TaskStore()
        self.events = events if events is not None else event_stream
        if diagnostics is None and settings.DIAGNOSTICS_ENABLED:
            diagnostics = DiagnosticsWriter(events=self.events)
        self.diagnostics = diagnostics
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def get_supported_platforms(self) -> list[str]:
        return list(self._factories)

    def resolve_sources(self, sources: list[str] | str) -> list[str]:
        """Lower-case the names; 'all' expands to every registered source."""
        if isinstance(sources, str):
            sources = [sources]
        names = [s.strip().lower() for s in sources if s and s.strip()]
        if not names or "all" in names:
            return self.get_supported_platforms()
        return names

    def _build_adapter(self, source: str):
        factory = self._factories.get(source)
        if factory is None:
            raise UnknownSourceError(source, self.get_supported_platforms())
        overrides: dict[str, Any] = {"events": self.events}
        if self.diagnostics is not None:
            overrides["diagnostics"] = self.diagnostics
        return factory(**overrides)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def run_single(
        self,
        source: str,
        kind: TaskKind | str,
        options: CrawlOptions | dict | None = None,
    ) -> PlatformResult:
        """Run one task against one source. Never raises."""
        source = (source or "").strip().lower()
        try:
            options = _coerce_options(options)
            adapter = self._build_adapter(source)
            data = await adapter.execute(kind, options)
        except Exception as e:
            logger.error(f"[{source}] {getattr(kind, 'value', kind)} failed: {e}")
            return PlatformResult(success=False, platform=source, error=str(e) or type(e).__name__)
        return PlatformResult(success=True, platform=source, data=data)

    async def run_multi(
        self,
        sources: list[str] | str,
        kind: TaskKind | str,
        options: CrawlOptions | dict | None = None,
    ) -> BatchResult:
        """Run the task on every source concurrently and wait for all of them."""
        names = self.resolve_sources(sources)
        options = _coerce_options(options)
        limit = options.max_concurrency or settings.MAX_CONCURRENT_SOURCES
        semaphore = asyncio.Semaphore(max(1, limit))

        async def _bounded(name: str) -> PlatformResult:
            async with semaphore:
                return await self.run_single(name, kind, options)

        outcomes = await asyncio.gather(*(_bounded(n) for n in names), return_exceptions=True)

        results: list[PlatformResult] = []
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                results.append(PlatformResult(success=False, platform=name, error=str(outcome) or "task failed"))
            else:
                results.append(outcome)

        successful = sum(1 for r in results if r.success)
        summary = BatchSummary(
            total=len(results),
            successful=successful,
            failed=len(results) - successful,
            total_data=sum(r.record_count for r in results if r.success),
        )
        logger.info(
            f"Batch {getattr(kind, 'value', kind)} finished: "
            f"{summary.successful}/{summary.total} sources, {summary.total_data} records"
        )
        return BatchResult(success=successful > 0, results=results, summary=summary)

    async def get_drama_list(self, sources: list[str] | None = None, **options) -> BatchResult:
        return await self.run_multi(sources or ["all"], TaskKind.DRAMA_LIST, options)

    async def get_rankings(self, sources: list[str] | None = None, **options) -> BatchResult:
        return await self.run_multi(sources or ["all"], TaskKind.RANKING, options)

    async def get_drama_detail(self, source: str, drama_id: str, **options) -> PlatformResult:
        return await self.run_single(source, TaskKind.DETAIL, {**options, "drama_id": drama_id})

    # ------------------------------------------------------------------
    # Health / stats
    # ------------------------------------------------------------------

    async def _check_one(self, client: httpx.AsyncClient, source: str) -> PlatformHealth:
        url = self._health_urls.get(source)
        if not url:
            return PlatformHealth(platform=source, status="error", error="no health URL configured")
        try:
            response = await client.head(url)
        except Exception as e:
            return PlatformHealth(platform=source, status="error", error=str(e) or type(e).__name__)
        if response.status_code in HEALTHY_STATUS_CODES:
            return PlatformHealth(platform=source, status="healthy")
        return PlatformHealth(platform=source, status="error", error=f"HTTP {response.status_code}")

    async def health_check(self) -> HealthReport:
        """Lightweight HEAD probe of each source's origin. Never raises."""
        sources = self.get_supported_platforms()
        async with httpx.AsyncClient(
            timeout=settings.HEALTH_CHECK_TIMEOUT,
            follow_redirects=False,
            headers={"User-Agent": CHROME_USER_AGENTS[0]},
            transport=self._transport,
        ) as client:
            outcomes = await asyncio.gather(
                *(self._check_one(client, s) for s in sources), return_exceptions=True
            )

        platforms = [
            o if isinstance(o, PlatformHealth)
            else PlatformHealth(platform=s, status="error", error=str(o) or "health check failed")
            for s, o in zip(sources, outcomes)
        ]
        return HealthReport(overall=any(p.status == "healthy" for p in platforms), platforms=platforms)

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_platforms": len(self._factories),
            "supported_platforms": self.get_supported_platforms(),
            "features": list(FEATURES),
            "tasks": self.tasks.stats(),
        }

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def submit(
        self,
        sources: list[str] | str,
        kind: TaskKind | str,
        options: CrawlOptions | dict | None = None,
    ) -> CrawlTask:
        """Register a task and run it in the background."""
        kind = TaskKind(kind)
        names = self.resolve_sources(sources)
        for name in names:
            if name not in self._factories:
                raise UnknownSourceError(name, self.get_supported_platforms())
        task = self.tasks.create(names, kind, _coerce_options(options))
        background = asyncio.create_task(self.run_task(task.id))
        self._background.add(background)
        background.add_done_callback(self._background.discard)
        return task

    async def run_task(self, task_id: str) -> CrawlTask | None:
        """Execute a stored task, walking progress 10 -> 30 -> 80 -> 100."""
        task = self.tasks.get(task_id)
        if task is None:
            return None

        with bind_task_id(task.id):
            self.tasks.update(task_id, status=TaskStatus.RUNNING, progress=10,
                              started_at=datetime.now(timezone.utc))
            try:
                self.tasks.update(task_id, progress=30)
                result = await self._dispatch(task)
                self.tasks.update(task_id, progress=80)
                _require_data(task, result)
            except Exception as e:
                logger.error(f"Task {task_id} failed: {e}")
                self.tasks.update(task_id, status=TaskStatus.FAILED, error=str(e) or type(e).__name__,
                                  progress=100)
                crawl_tasks_total.labels(kind=task.kind.value, status="failed").inc()
                return task

            if self.tasks.update(task_id, result=result, status=TaskStatus.COMPLETED, progress=100) is None:
                logger.info(f"Task {task_id} finished after being stopped, result discarded")
                crawl_tasks_total.labels(kind=task.kind.value, status="stopped").inc()
            else:
                crawl_tasks_total.labels(kind=task.kind.value, status="completed").inc()
            return task

    async def _dispatch(self, task: CrawlTask):
        if task.kind == TaskKind.HEALTH_CHECK:
            return await self.health_check()
        if task.kind == TaskKind.DETAIL:
            if not task.options.drama_id:
                raise ValueError("detail task requires drama_id")
            return await self.run_single(task.sources[0], task.kind, task.options)
        if len(task.sources) == 1:
            return await self.run_single(task.sources[0], task.kind, task.options)
        return await self.run_multi(task.sources, task.kind, task.options)


def _coerce_options(options: CrawlOptions | dict | None) -> CrawlOptions:
    if options is None:
        return CrawlOptions()
    if isinstance(options, CrawlOptions):
        return options
    return CrawlOptions(**options)


def _require_data(task: CrawlTask, result: Any):
    """List and ranking tasks must produce at least one record."""
    if isinstance(result, PlatformResult) and not result.success:
        raise RuntimeError(result.error or f"{result.platform} task failed")
    if task.kind not in (TaskKind.DRAMA_LIST, TaskKind.RANKING):
        return
    if isinstance(result, BatchResult):
        has_data = result.success and any(r.success and r.record_count > 0 for r in result.results)
    else:
        has_data = result.record_count > 0
    if not has_data:
        raise RuntimeError(f"{','.join(task.sources)} returned no {task.kind.value} data")
