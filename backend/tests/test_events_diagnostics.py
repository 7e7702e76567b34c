"""Tests for the event stream, diagnostic capture and log correlation."""
import io
import json
import logging
from pathlib import Path

import pytest

from conftest import FakePage, FakeSession
from dramascout.core.context import bind_task_id, get_task_id
from dramascout.core.events import EventStream
from dramascout.core.logging_config import PlaywrightPipeFilter, TaskIDFilter, configure_logging
from dramascout.services.diagnostics import RECENT_EVENTS_PER_SOURCE, DiagnosticsWriter, artifact_stem
from dramascout.services.selector_extraction import SelectorAttempt


class TestEventStream:
    def test_subscribers_receive_events(self):
        stream = EventStream()
        received = []
        stream.subscribe(received.append)

        event = stream.info("iqiyi", "navigating", url="https://www.iqiyi.com/")

        assert received == [event]
        assert event.level == "info"
        assert event.data == {"url": "https://www.iqiyi.com/"}

    def test_failing_subscriber_is_isolated(self):
        stream = EventStream()
        received = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        stream.subscribe(broken)
        stream.subscribe(received.append)
        stream.error("youku", "extraction failed")

        assert len(received) == 1

    def test_unsubscribe(self):
        stream = EventStream()
        received = []
        stream.subscribe(received.append)
        stream.unsubscribe(received.append)
        stream.warning("douyin", "blocked")
        assert received == []

    def test_invalid_level(self):
        with pytest.raises(ValueError):
            EventStream().emit("fatal", "src", "x")

    def test_non_callable_subscriber(self):
        with pytest.raises(TypeError):
            EventStream().subscribe("not a function")

    def test_events_carry_task_id(self):
        stream = EventStream()
        with bind_task_id("task-42"):
            event = stream.info("tencent", "started")
        assert event.task_id == "task-42"
        assert get_task_id() == ""


class TestDiagnosticsWriter:
    @pytest.mark.asyncio
    async def test_writes_record_screenshot_and_html(self, tmp_path, events):
        writer = DiagnosticsWriter(tmp_path, events, enabled=True)
        events.warning("iqiyi", "detected 1 blocking signal(s), mitigating")
        page = FakePage("<html><body>空</body></html>", url="https://www.iqiyi.com/microdrama/", title="爱奇艺")

        written = await writer.capture(
            FakeSession(page), "iqiyi", "drama_list", "extraction_failed",
            attempts=[SelectorAttempt(".drama-item", 0, 0)], error="no records",
        )

        assert set(written) == {"record", "screenshot", "html"}
        record = json.loads(Path(written["record"]).read_text(encoding="utf-8"))
        assert record["url"] == "https://www.iqiyi.com/microdrama/"
        assert record["page_title"] == "爱奇艺"
        assert record["selector_attempts"] == [{"selector": ".drama-item", "matched": 0, "valid": 0}]
        assert record["recent_events"][0]["level"] == "warning"
        assert "<body>空</body>" in open(written["html"], encoding="utf-8").read()

    @pytest.mark.asyncio
    async def test_disabled_writes_nothing(self, tmp_path, events):
        writer = DiagnosticsWriter(tmp_path / "debug", events, enabled=False)
        assert await writer.capture(None, "iqiyi", "detail", "failed") == {}
        assert not (tmp_path / "debug").exists()

    @pytest.mark.asyncio
    async def test_without_page_only_record(self, tmp_path, events):
        writer = DiagnosticsWriter(tmp_path, events, enabled=True)
        written = await writer.capture(None, "youku", "ranking", "failed", url="https://www.youku.com/")
        assert set(written) == {"record"}

    @pytest.mark.asyncio
    async def test_page_failures_never_raise(self, tmp_path, events):
        class BrokenPage(FakePage):
            async def screenshot(self, path=None, full_page=False):
                raise RuntimeError("Target closed")

            async def content(self):
                raise RuntimeError("Target closed")

        writer = DiagnosticsWriter(tmp_path, events, enabled=True)
        written = await writer.capture(FakeSession(BrokenPage()), "douyin", "detail", "failed")
        assert set(written) == {"record"}

    def test_recent_events_bounded_and_detachable(self, tmp_path, events):
        writer = DiagnosticsWriter(tmp_path, events, enabled=True)
        for i in range(RECENT_EVENTS_PER_SOURCE + 10):
            events.info("tencent", f"event {i}")
        recent = writer.recent_events("tencent")
        assert len(recent) == RECENT_EVENTS_PER_SOURCE
        assert recent[-1]["message"] == f"event {RECENT_EVENTS_PER_SOURCE + 9}"

        writer.detach()
        events.info("tencent", "after detach")
        assert writer.recent_events("tencent")[-1]["message"] != "after detach"

    def test_artifact_stem(self):
        assert artifact_stem("iqiyi", "detail", "blocked", "20260101") == "iqiyi-detail-blocked-20260101"


class TestLogging:
    @pytest.fixture(autouse=True)
    def _restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_task_id_filter(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        with bind_task_id("abc"):
            TaskIDFilter().filter(record)
        assert record.task_id == "abc"

    def test_pipe_filter(self):
        noisy = logging.LogRecord("playwright", logging.WARNING, __file__, 1, "pipe closed by peer", None, None)
        normal = logging.LogRecord("playwright", logging.WARNING, __file__, 1, "something else", None, None)
        assert PlaywrightPipeFilter().filter(noisy) is False
        assert PlaywrightPipeFilter().filter(normal) is True

    def test_json_lines_tagged_with_task(self):
        stream = io.StringIO()
        configure_logging("json", "INFO", stream=stream)
        with bind_task_id("t-1"):
            logging.getLogger("dramascout.test").info("hello")

        line = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert line["message"] == "hello"
        assert line["task_id"] == "t-1"
        assert line["level"] == "INFO"
        assert line["logger"] == "dramascout.test"
