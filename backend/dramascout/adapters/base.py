"""Source adapter: one crawl contract, configured per source.

A SourceAdapter is not subclassed per platform. Each platform supplies a
SourceProfile (URLs, selector chains, tunables) and, where it behaves
differently, a strategy object (landing, ranking filter, cookies). The
adapter owns exactly one browser session for the duration of a call to
execute() and always releases it.

Per call the adapter walks:

    idle -> navigating -> detecting -> extracting -> classifying -> done | failed

and emits each transition on the event stream.
"""

import enum
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, TypeVar

from dramascout.config import settings
from dramascout.core.events import EventStream, event_stream
from dramascout.core.exceptions import (
    BlockedError,
    CrawlerError,
    ExtractionError,
    LandingControlError,
    UnsupportedTaskError,
)
from dramascout.core.metrics import platform_run_duration_seconds, platform_runs_total
from dramascout.schemas.crawl import CrawlOptions, TaskKind
from dramascout.schemas.drama import DramaDetail, ExtractedRecord
from dramascout.services.anti_bot import AntiBotDetector, DetectionConfig
from dramascout.services.browser import CrawlSession, SessionConfig, SessionManager
from dramascout.services.classifier import ClassifierConfig, ContentClassifier
from dramascout.services.diagnostics import DiagnosticsWriter
from dramascout.services.navigation import (
    DelayRange,
    NavigationController,
    NavigationPolicy,
    random_delay,
    wait_for_any,
    wait_for_page_load,
)
from dramascout.services.selector_extraction import (
    DetailSelectors,
    ExtractionPipeline,
    SelectorChain,
    extract_detail,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AdapterState(str, enum.Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    DETECTING = "detecting"
    EXTRACTING = "extracting"
    CLASSIFYING = "classifying"
    DONE = "done"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Landing strategies
# ---------------------------------------------------------------------------


class DirectLanding:
    """Navigate straight to the target URL."""

    async def land(self, adapter: "SourceAdapter", session: CrawlSession, url: str):
        await adapter.navigator.safe_navigate(session, url)

    async def recover(self, adapter: "SourceAdapter", session: CrawlSession) -> bool:
        """Called when extraction found nothing. True if a retry makes sense."""
        return False


@dataclass
class DesktopRedirectGuard(DirectLanding):
    """Force the desktop site when the source bounces us to mobile/search pages."""

    redirect_markers: tuple[str, ...] = ("m.v.qq.com", "search.html")
    mobile_host: str = "m.v.qq.com"
    desktop_host: str = "v.qq.com"

    def _redirected(self, url: str) -> bool:
        return any(marker in url for marker in self.redirect_markers)

    async def land(self, adapter: "SourceAdapter", session: CrawlSession, url: str):
        await adapter.navigator.safe_navigate(session, url)
        if not self._redirected(session.page.url):
            return

        adapter.events.warning(
            adapter.name, "redirected away from desktop site, retrying", url=session.page.url
        )
        await adapter.navigator.safe_navigate(session, url)
        current = session.page.url
        if self.mobile_host in current:
            desktop = current.replace(self.mobile_host, self.desktop_host)
            adapter.events.info(adapter.name, "rewriting mobile URL to desktop", url=desktop)
            await adapter.navigator.safe_navigate(session, desktop)


@dataclass
class TwoStageLanding(DirectLanding):
    """Land on the page; if it has no records, click an in-page control and retry.

    The control is located by text through several locator kinds. Not
    finding it at all is a navigation failure.
    """

    control_text: str = ""
    settle_timeout_ms: int = 15000

    def _locators(self, page):
        text = self.control_text
        return [
            lambda: page.get_by_text(text, exact=True),
            lambda: page.get_by_text(text),
            lambda: page.locator("a").filter(has_text=text),
            lambda: page.locator("button").filter(has_text=text),
            lambda: page.locator("span").filter(has_text=text),
            lambda: page.locator("div").filter(has_text=text),
        ]

    async def recover(self, adapter: "SourceAdapter", session: CrawlSession) -> bool:
        page = session.page
        adapter.events.info(adapter.name, f"no records on landing page, looking for '{self.control_text}'")
        for make_locator in self._locators(page):
            try:
                locator = make_locator().first
                if await locator.count() == 0 or not await locator.is_visible():
                    continue
                await locator.click()
            except Exception as e:
                logger.debug(f"[{adapter.name}] locator for {self.control_text!r} failed: {e}")
                continue
            await wait_for_page_load(page, self.settle_timeout_ms)
            adapter.events.info(adapter.name, f"clicked '{self.control_text}'", url=page.url)
            return True

        raise LandingControlError(page.url, self.control_text)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@dataclass
class SourceProfile:
    name: str
    display_name: str
    base_url: str
    list_url: str
    ranking_urls: dict[str, str]
    detail_url_template: str  # formatted with base and id
    default_ranking: str = "hot"
    list_chain: SelectorChain = field(default_factory=SelectorChain)
    ranking_chain: SelectorChain | None = None
    detail_selectors: DetailSelectors = field(default_factory=DetailSelectors)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    # Replaces the classifier on ranking pages when set; called with the
    # title and the scraped description
    ranking_filter: Callable[[str, str], bool] | None = None
    description_fallback: str | None = None
    session: SessionConfig = field(default_factory=SessionConfig)
    navigation: NavigationPolicy = field(default_factory=NavigationPolicy)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    retry_delay: DelayRange = field(
        default_factory=lambda: DelayRange(settings.RETRY_DELAY_MIN, settings.RETRY_DELAY_MAX)
    )
    wait_selectors: list[str] = field(default_factory=list)
    detail_wait_selectors: list[str] = field(default_factory=list)
    wait_timeout_ms: int = 10000
    landing: DirectLanding = field(default_factory=DirectLanding)

    def detail_url(self, drama_id: str) -> str:
        if drama_id.startswith(("http://", "https://")):
            return drama_id
        return self.detail_url_template.format(base=self.base_url, id=drama_id)

    def ranking_url(self, ranking_type: str) -> str:
        return self.ranking_urls.get(ranking_type) or self.ranking_urls[self.default_ranking]


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class SourceAdapter:
    def __init__(
        self,
        profile: SourceProfile,
        *,
        sessions: SessionManager | None = None,
        navigator: NavigationController | None = None,
        detector: AntiBotDetector | None = None,
        diagnostics: DiagnosticsWriter | None = None,
        events: EventStream | None = None,
    ):
        self.profile = profile
        self.name = profile.name
        self.events = events if events is not None else event_stream
        self.sessions = sessions or SessionManager(profile.session)
        self.navigator = navigator or NavigationController(
            profile.name, profile.navigation, user_agents=profile.session.user_agents
        )
        self.detector = detector or AntiBotDetector(profile.name, profile.detection, self.events)
        self.diagnostics = diagnostics
        self.classifier = ContentClassifier(profile.classifier)
        self.state = AdapterState.IDLE
        self._task_kind = ""

    # -- state -------------------------------------------------------------

    def _transition(self, state: AdapterState, **data: Any):
        previous = self.state
        self.state = state
        level = "error" if state == AdapterState.FAILED else "info"
        self.events.emit(level, self.name, f"{previous.value} -> {state.value}", state=state.value, **data)

    # -- session -----------------------------------------------------------

    async def _session(self) -> CrawlSession:
        return await self.sessions.open(self.name)

    async def close(self):
        await self.sessions.close()

    def apply_options(self, options: CrawlOptions):
        """Override tunables for options the caller set explicitly."""
        given = options.model_fields_set
        policy = self.navigator.policy
        updates: dict[str, Any] = {}
        if "timeout" in given:
            updates["timeout_ms"] = options.timeout
        if "max_retries" in given:
            updates["max_retries"] = options.max_retries
        if given & {"request_delay_min", "request_delay_max"}:
            lo = options.request_delay_min if "request_delay_min" in given else policy.request_delay.min_ms
            hi = options.request_delay_max if "request_delay_max" in given else policy.request_delay.max_ms
            updates["request_delay"] = DelayRange(min(lo, hi), max(lo, hi))
        if updates:
            self.navigator.policy = replace(policy, **updates)
        if options.headless is not None:
            self.sessions.config = replace(self.sessions.config, headless=options.headless)

    # -- retry -------------------------------------------------------------

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str,
        max_retries: int | None = None,
    ) -> T:
        """Run operation up to max_retries times; raise the last error.

        Between attempts: wait a random retry delay, re-run the detector on
        the live session and, if it reports a signal, wait again.
        """
        attempts = max(1, max_retries or self.navigator.policy.max_retries)
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                result = await operation()
                if attempt > 1:
                    self.events.info(self.name, f"{label} succeeded on attempt {attempt}")
                return result
            except Exception as e:
                last_error = e
                self.events.warning(
                    self.name,
                    f"{label} failed (attempt {attempt}/{attempts}): {e}",
                    error_type=type(e).__name__,
                )
                if attempt >= attempts:
                    break
                await random_delay(self.profile.retry_delay)
                session = self.sessions.session
                if session is not None and session.is_ready and await self.detector.detect(session):
                    await random_delay(self.detector.config.mitigation_delay)

        self.events.error(self.name, f"{label} failed after {attempts} attempts")
        raise last_error

    # -- list / ranking ----------------------------------------------------

    async def _collect(
        self,
        url: str,
        chain: SelectorChain,
        max_count: int,
        *,
        filter_by_category: bool = True,
        record_filter: Callable[[str, str], bool] | None = None,
    ) -> list[ExtractedRecord]:
        session = await self._session()
        self._transition(AdapterState.NAVIGATING, url=url)
        await self.profile.landing.land(self, session, url)

        self._transition(AdapterState.DETECTING)
        await self.detector.detect(session)
        if self.profile.wait_selectors:
            await wait_for_any(session.page, self.profile.wait_selectors, self.profile.wait_timeout_ms)

        self._transition(AdapterState.EXTRACTING)
        pipeline = ExtractionPipeline(
            chain,
            self.profile.base_url,
            platform=self.name,
            classifier=self.classifier,
            filter_by_category=filter_by_category,
            description_fallback=self.profile.description_fallback,
            record_filter=record_filter,
        )
        try:
            records = pipeline.extract_records(await session.page.content(), max_count)
        except ExtractionError as e:
            try:
                recovered = await self.profile.landing.recover(self, session)
            except Exception:
                await self._capture(session, "extraction_failed", url, e)
                raise
            if not recovered:
                await self._capture(session, "extraction_failed", url, e)
                raise
            try:
                records = pipeline.extract_records(await session.page.content(), max_count)
            except ExtractionError as e2:
                await self._capture(session, "extraction_failed", session.page.url, e2)
                raise

        self._transition(
            AdapterState.CLASSIFYING,
            records=len(records),
            in_category=sum(1 for r in records if r.category_signal),
        )
        return records

    @staticmethod
    def _filter_category(records: list[ExtractedRecord], category: str) -> list[ExtractedRecord]:
        if not category:
            return records
        return [r for r in records if category in r.title or category in r.description]

    async def list_records(self, options: CrawlOptions | None = None) -> list[ExtractedRecord]:
        """One page of records from the source's listing."""
        options = options or CrawlOptions()
        wanted = options.page * options.page_size

        async def _op():
            return await self._collect(self.profile.list_url, self.profile.list_chain, wanted)

        records = await self.execute_with_retry(_op, "list_records")
        records = self._filter_category(records, options.category)
        start = (options.page - 1) * options.page_size
        return records[start:start + options.page_size]

    async def list_ranked(self, ranking_type: str = "hot", options: CrawlOptions | None = None) -> list[ExtractedRecord]:
        options = options or CrawlOptions()
        url = self.profile.ranking_url(ranking_type)
        chain = self.profile.ranking_chain or self.profile.list_chain
        ranking_filter = self.profile.ranking_filter

        async def _op():
            return await self._collect(
                url, chain, options.limit,
                filter_by_category=ranking_filter is None,
                record_filter=ranking_filter,
            )

        records = await self.execute_with_retry(_op, f"list_ranked:{ranking_type}")
        return self._filter_category(records, options.category)[: options.limit]

    # -- detail ------------------------------------------------------------

    async def get_detail(self, drama_id: str, options: CrawlOptions | None = None) -> DramaDetail:
        url = self.profile.detail_url(drama_id)
        session = await self._session()

        self._transition(AdapterState.NAVIGATING, url=url)
        await self.navigator.safe_navigate(session, url)

        self._transition(AdapterState.DETECTING)
        if await self.detector.detect(session):
            raise BlockedError(self.name, url)
        if self.profile.detail_wait_selectors:
            await wait_for_any(session.page, self.profile.detail_wait_selectors, self.profile.wait_timeout_ms)

        self._transition(AdapterState.EXTRACTING)
        try:
            return extract_detail(
                await session.page.content(),
                self.profile.detail_selectors,
                self.profile.base_url,
                url,
                platform=self.name,
            )
        except ExtractionError as e:
            await self._capture(session, "extraction_failed", url, e)
            raise

    # -- execute -----------------------------------------------------------

    async def execute(self, kind: TaskKind | str, options: CrawlOptions | None = None) -> Any:
        """Run one task against this source, always releasing the session."""
        try:
            kind = TaskKind(kind)
        except ValueError:
            raise UnsupportedTaskError(str(kind)) from None
        options = options or CrawlOptions()
        self._task_kind = kind.value
        self.state = AdapterState.IDLE
        self.apply_options(options)

        start = time.time()
        try:
            if kind == TaskKind.DRAMA_LIST:
                result = await self.list_records(options)
            elif kind == TaskKind.RANKING:
                result = await self.list_ranked(options.type or self.profile.default_ranking, options)
            elif kind == TaskKind.DETAIL:
                if not options.drama_id:
                    raise ValueError("detail task requires drama_id")
                result = await self.get_detail(options.drama_id, options)
            else:
                raise UnsupportedTaskError(str(self._task_kind))
        except Exception as e:
            if self.state != AdapterState.FAILED:
                self._transition(AdapterState.FAILED, error=str(e), error_type=type(e).__name__)
            platform_runs_total.labels(platform=self.name, status="failed").inc()
            raise
        finally:
            platform_run_duration_seconds.labels(platform=self.name).observe(time.time() - start)
            await self.close()

        count = len(result) if isinstance(result, list) else 1
        self._transition(AdapterState.DONE, records=count)
        platform_runs_total.labels(platform=self.name, status="success").inc()
        return result

    async def _capture(self, session: CrawlSession, outcome: str, url: str, error: CrawlerError):
        if self.diagnostics is None:
            return
        await self.diagnostics.capture(
            session,
            self.name,
            self._task_kind or "unknown",
            outcome,
            url=url,
            attempts=getattr(error, "attempts", None),
            error=str(error),
        )
