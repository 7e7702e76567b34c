"""Tests for selector-chain extraction of list and detail pages."""
import pytest
from bs4 import BeautifulSoup

from dramascout.adapters.iqiyi import DETAIL_SELECTORS
from dramascout.core.exceptions import ExtractionError, ValidationFailedError
from dramascout.services.classifier import ContentClassifier
from dramascout.services.selector_extraction import (
    ExtractionPipeline,
    FieldLocator,
    SelectorChain,
    extract_detail,
    first_url,
    first_value,
)

BASE = "https://src.test"

LIST_HTML = """
<html><body>
  <div class="video-item">
    <a href="/v/123"><span class="title">霸道总裁</span></a>
    <img data-src="//img.src.test/1.jpg">
    <p class="desc">总裁的契约新娘</p>
  </div>
</body></html>
"""


def _pipeline(chain=None, **kwargs):
    return ExtractionPipeline(chain or SelectorChain(), BASE, platform="src", **kwargs)


class TestFieldLocator:
    def test_text_of_first_match(self):
        root = BeautifulSoup('<div><b class="t"> 重生 </b><b class="t">其他</b></div>', "lxml").div
        assert first_value(root, [FieldLocator(".t")]) == "重生"

    def test_attribute_order_respected(self):
        root = BeautifulSoup('<div><img data-src="/b.jpg" src="/a.jpg"></div>', "lxml").div
        assert first_value(root, [FieldLocator("img", ("data-src", "src"))]) == "/b.jpg"

    def test_falls_through_short_values(self):
        root = BeautifulSoup('<div><i class="a">x</i><i class="b">甜妻</i></div>', "lxml").div
        chain = [FieldLocator(".a"), FieldLocator(".b")]
        assert first_value(root, chain, min_length=2) == "甜妻"

    def test_broken_selector_skipped(self):
        root = BeautifulSoup('<div><i class="b">甜妻</i></div>', "lxml").div
        assert first_value(root, [FieldLocator("i[", ()), FieldLocator(".b")]) == "甜妻"

    def test_pseudo_links_fall_through_to_next_locator(self):
        root = BeautifulSoup(
            '<div><a class="play" href="javascript:void(0)">播放</a><a class="t" href="#">x</a>'
            '<a class="more" href="/v/9">详情</a></div>',
            "lxml",
        ).div
        chain = [FieldLocator("a.play", ("href",)), FieldLocator("a.t", ("href",)), FieldLocator("a.more", ("href",))]
        assert first_url(root, chain, BASE) == "https://src.test/v/9"
        assert first_url(root, chain[:2], BASE) == ""


class TestExtractRecords:
    def test_end_to_end_single_item(self):
        records = _pipeline(classifier=ContentClassifier()).extract_records(LIST_HTML)
        assert len(records) == 1
        record = records[0]
        assert record.title == "霸道总裁"
        assert record.source_url == "https://src.test/v/123"
        assert record.cover_url == "https://img.src.test/1.jpg"
        assert record.description == "总裁的契约新娘"
        assert record.platform == "src"
        assert record.category_signal is True

    def test_first_productive_container_wins(self):
        html = """
        <div class="l1"><span class="title">x</span></div>
        <div class="l1"><span class="title">y</span></div>
        <div class="l2"><a href="/a"><span class="title">千金归来</span></a></div>
        <div class="l2"><a href="/b"><span class="title">战神归来</span></a></div>
        """
        pipeline = _pipeline(SelectorChain(containers=[".l1", ".l2"]))
        records = pipeline.extract_records(html)

        assert [r.title for r in records] == ["千金归来", "战神归来"]
        attempts = [a.to_dict() for a in pipeline.last_attempts]
        assert attempts == [
            {"selector": ".l1", "matched": 2, "valid": 0},
            {"selector": ".l2", "matched": 2, "valid": 2},
        ]

    def test_duplicates_by_link_removed(self):
        html = """
        <div class="video-item"><a href="/v/1"><span class="title">闪婚老公</span></a></div>
        <div class="video-item"><a href="/v/1"><span class="title">闪婚老公 第二季</span></a></div>
        <div class="video-item"><a href="/v/2"><span class="title">暖婚甜妻</span></a></div>
        """
        records = _pipeline().extract_records(html)
        assert [r.source_url for r in records] == ["https://src.test/v/1", "https://src.test/v/2"]

    def test_duplicates_without_link_keyed_by_title(self):
        html = """
        <div class="video-item"><span class="title">闪婚老公</span></div>
        <div class="video-item"><span class="title">闪婚老公</span></div>
        """
        records = _pipeline().extract_records(html)
        assert len(records) == 1
        assert records[0].source_url is None

    def test_max_count(self):
        html = "".join(
            f'<div class="video-item"><a href="/v/{i}"><span class="title">豪门千金{i}</span></a></div>'
            for i in range(10)
        )
        assert len(_pipeline().extract_records(html, max_count=3)) == 3

    def test_no_container_matches(self):
        pipeline = _pipeline(SelectorChain(containers=[".missing", ".gone"]))
        with pytest.raises(ExtractionError) as exc:
            pipeline.extract_records("<div>nothing here</div>")
        assert not isinstance(exc.value, ValidationFailedError)
        assert [a.selector for a in exc.value.attempts] == [".missing", ".gone"]
        assert all(a.matched == 0 for a in exc.value.attempts)

    def test_invalid_container_selector_recorded(self):
        pipeline = _pipeline(SelectorChain(containers=["div[", ".video-item"]))
        records = pipeline.extract_records(LIST_HTML)
        assert len(records) == 1
        assert pipeline.last_attempts[0].matched == 0

    def test_all_candidates_invalid(self):
        html = """
        <div class="video-item"><span class="title">测试短剧</span></div>
        <div class="video-item"><span class="title">demo 剧集</span></div>
        """
        with pytest.raises(ValidationFailedError) as exc:
            _pipeline().extract_records(html)
        assert exc.value.rejected == 2
        assert exc.value.attempts

    def test_category_filter_drops_long_form(self):
        html = """
        <div class="video-item"><span class="title">山海情</span><p class="desc">年代剧</p></div>
        <div class="video-item"><span class="title">冷面老公</span></div>
        """
        records = _pipeline(classifier=ContentClassifier()).extract_records(html)
        assert [r.title for r in records] == ["冷面老公"]

    def test_everything_filtered_is_extraction_error(self):
        html = '<div class="video-item"><span class="title">山海情</span></div>'
        with pytest.raises(ExtractionError) as exc:
            _pipeline(classifier=ContentClassifier()).extract_records(html)
        assert not isinstance(exc.value, ValidationFailedError)

    def test_signal_kept_when_not_filtering(self):
        html = '<div class="video-item"><span class="title">山海情</span></div>'
        pipeline = _pipeline(classifier=ContentClassifier(), filter_by_category=False)
        records = pipeline.extract_records(html)
        assert records[0].category_signal is False

    def test_description_fallback_not_used_for_classification(self):
        html = '<div class="video-item"><span class="title">一个十六个字以上的非常普通的节目名称</span></div>'
        pipeline = _pipeline(
            classifier=ContentClassifier(),
            filter_by_category=False,
            description_fallback="平台短剧：{title}",
        )
        record = pipeline.extract_records(html)[0]
        assert record.description.startswith("平台短剧：")
        assert record.category_signal is False

    def test_record_filter_sees_scraped_description(self):
        html = """
        <div class="video-item"><span class="title">今日城市新闻</span></div>
        <div class="video-item"><span class="title">豪门恩怨</span><p class="desc">年度短剧</p></div>
        """
        seen = []

        def keep_drama(title, description):
            seen.append((title, description))
            return "短剧" in description

        pipeline = _pipeline(record_filter=keep_drama, description_fallback="平台短剧：{title}")
        records = pipeline.extract_records(html)

        assert seen == [("今日城市新闻", ""), ("豪门恩怨", "年度短剧")]
        assert [r.title for r in records] == ["豪门恩怨"]

    def test_record_filter_rejecting_everything_is_extraction_error(self):
        html = '<div class="video-item"><span class="title">今日城市新闻</span></div>'
        pipeline = _pipeline(record_filter=lambda title, description: False, description_fallback="平台短剧：{title}")
        with pytest.raises(ExtractionError) as exc:
            pipeline.extract_records(html)
        assert not isinstance(exc.value, ValidationFailedError)


DETAIL_HTML = """
<html><body>
  <div class="lib-album-detail__poster"><img src="//pic.iqiyi.test/c.jpg"></div>
  <div class="lib-album-detail__info">
    <h1 class="album-title">神医归来</h1>
    <p class="album-intro">一代神医重回都市</p>
  </div>
  <div class="lib-album-detail__score"><span class="score-num">8.6</span></div>
  <div class="lib-album-detail__count">1.5万</div>
  <div class="lib-album-detail__tag">
    <span class="tag-item">都市</span><span class="tag-item">逆袭</span><span class="tag-item">都市</span>
  </div>
  <div class="lib-album-detail__actor">
    <div class="actor-item"><span class="actor-name">周导</span><span class="actor-role">导演</span></div>
    <div class="actor-item">
      <div class="actor-avatar"><img src="/a/li.jpg"></div>
      <span class="actor-name">李四</span><span class="actor-role">主演</span>
    </div>
  </div>
</body></html>
"""


class TestExtractDetail:
    def test_full_detail_page(self):
        detail = extract_detail(
            DETAIL_HTML, DETAIL_SELECTORS, "https://www.iqiyi.com",
            "https://www.iqiyi.com/v_abc.html", platform="iqiyi",
        )
        assert detail.title == "神医归来"
        assert detail.description == "一代神医重回都市"
        assert detail.cover_url == "https://pic.iqiyi.test/c.jpg"
        assert detail.score == 8.6
        assert detail.play_count == 15_000
        assert detail.tags == ["都市", "逆袭"]
        assert [(c.name, c.role) for c in detail.cast] == [("周导", "director"), ("李四", "actor")]
        assert detail.cast[1].avatar_url == "https://www.iqiyi.com/a/li.jpg"
        assert detail.status == "更新中"

    def test_missing_title(self):
        with pytest.raises(ExtractionError):
            extract_detail("<html><body><p>空</p></body></html>", DETAIL_SELECTORS,
                           "https://www.iqiyi.com", "https://www.iqiyi.com/v_1.html")

    def test_placeholder_title_fails_validation(self):
        html = '<div class="lib-album-detail__info"><h1 class="album-title">测试页面</h1></div>'
        with pytest.raises(ValidationFailedError):
            extract_detail(html, DETAIL_SELECTORS, "https://www.iqiyi.com",
                           "https://www.iqiyi.com/v_1.html", platform="iqiyi")
