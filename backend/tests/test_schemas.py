"""Tests for record and options models."""

import pytest
from pydantic import ValidationError

from dramascout.schemas.crawl import CrawlOptions, PlatformResult, TaskStatus
from dramascout.schemas.drama import DramaDetail, ExtractedRecord


class TestExtractedRecord:
    def test_title_normalized(self):
        record = ExtractedRecord(title="  重生之 \n 千金归来 ")
        assert record.title == "重生之 千金归来"
        assert record.status == "ongoing"
        assert record.episode_count == 0

    @pytest.mark.parametrize("title", ["", "   ", "a", "长" * 101])
    def test_title_length_bounds(self, title):
        with pytest.raises(ValidationError):
            ExtractedRecord(title=title)

    def test_title_length_edges_accepted(self):
        assert ExtractedRecord(title="甜妻").title == "甜妻"
        assert len(ExtractedRecord(title="长" * 100).title) == 100

    @pytest.mark.parametrize("title", ["测试短剧", "Demo Drama", "示例标题", "MOCK 数据", "模拟总裁"])
    def test_placeholder_titles_rejected(self, title):
        with pytest.raises(ValidationError):
            ExtractedRecord(title=title)

    def test_source_url_must_be_absolute(self):
        with pytest.raises(ValidationError):
            ExtractedRecord(title="闪婚老公", source_url="/v/1")
        assert ExtractedRecord(title="闪婚老公", source_url="").source_url is None

    def test_bad_cover_dropped_not_fatal(self):
        record = ExtractedRecord(title="闪婚老公", cover_url="data:image/png;base64,xx")
        assert record.cover_url == ""

    def test_serializes_to_plain_json(self):
        data = ExtractedRecord(title="战神归来", source_url="https://h.test/1").model_dump(mode="json")
        assert data["source_url"] == "https://h.test/1"
        assert isinstance(data["created_at"], str)


class TestDramaDetail:
    def test_defaults(self):
        detail = DramaDetail(title="神医归来", source_url="https://www.iqiyi.com/v_1.html")
        assert detail.status == "更新中"
        assert detail.tags == []
        assert detail.cast == []

    def test_source_url_required_absolute(self):
        with pytest.raises(ValidationError):
            DramaDetail(title="神医归来", source_url="v_1.html")


class TestCrawlOptions:
    def test_documented_defaults(self):
        opts = CrawlOptions()
        assert (opts.page, opts.page_size, opts.limit, opts.type) == (1, 20, 50, "hot")
        assert opts.timeout == 30000
        assert opts.max_retries == 3
        assert (opts.request_delay_min, opts.request_delay_max) == (1000, 3000)

    def test_unknown_keys_ignored(self):
        opts = CrawlOptions(page_size=5, colour="blue")
        assert opts.page_size == 5
        assert not hasattr(opts, "colour")

    def test_empty_type_falls_back_to_hot(self):
        assert CrawlOptions(type="").type == "hot"

    def test_invalid_page_rejected(self):
        with pytest.raises(ValidationError):
            CrawlOptions(page=0)

    def test_zero_timeout_rejected(self):
        with pytest.raises(ValidationError):
            CrawlOptions(timeout=0)


def test_task_status_terminal():
    assert TaskStatus.COMPLETED.is_terminal
    assert TaskStatus.FAILED.is_terminal
    assert not TaskStatus.RUNNING.is_terminal


def test_platform_result_record_count():
    records = [ExtractedRecord(title="豪门千金"), ExtractedRecord(title="赘婿逆袭")]
    assert PlatformResult(success=True, platform="x", data=records).record_count == 2
    assert PlatformResult(success=False, platform="x", error="boom").record_count == 0
