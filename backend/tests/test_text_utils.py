"""Tests for text and URL normalization helpers."""

import pytest

from dramascout.services.text_utils import (
    clean_text,
    is_absolute_url,
    normalize_url,
    parse_play_count,
    parse_score,
)


class TestCleanText:
    def test_collapses_whitespace_and_trims(self):
        assert clean_text("  霸道\n\t 总裁  ") == "霸道 总裁"

    def test_strips_control_and_zero_width_characters(self):
        assert clean_text("重生\x00之\u200b路\ufeff") == "重生之路"

    def test_none_and_empty(self):
        assert clean_text(None) == ""
        assert clean_text("   ") == ""


class TestNormalizeUrl:
    def test_relative_path_joins_base_origin(self):
        assert normalize_url("/x/y", "https://h.test") == "https://h.test/x/y"

    def test_protocol_relative_takes_base_scheme(self):
        assert normalize_url("//h.test/a", "https://h.test") == "https://h.test/a"

    def test_absolute_url_kept(self):
        assert normalize_url("http://other.test/p?q=1", "https://h.test") == "http://other.test/p?q=1"

    def test_relative_without_leading_slash(self):
        assert normalize_url("v_123.html", "https://www.iqiyi.com") == "https://www.iqiyi.com/v_123.html"

    @pytest.mark.parametrize("url", ["", None, "javascript:void(0)", "#", "mailto:a@b.c"])
    def test_pseudo_links_dropped(self, url):
        assert normalize_url(url, "https://h.test") == ""

    def test_result_is_always_absolute(self):
        for raw in ["/a", "//h.test/b", "c/d", "https://h.test/e"]:
            assert is_absolute_url(normalize_url(raw, "https://h.test"))


class TestParsers:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1.5万", 15_000),
            ("3亿", 300_000_000),
            ("15,300", 15_300),
            ("播放 8千", 8_000),
            ("", 0),
            ("暂无", 0),
        ],
    )
    def test_parse_play_count(self, text, expected):
        assert parse_play_count(text) == expected

    def test_parse_score(self):
        assert parse_score("评分 8.7 分") == 8.7
        assert parse_score("暂无评分") is None
