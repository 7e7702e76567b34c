"""Tests for the command-line entry point."""
import json
import logging

import pytest

from dramascout import cli
from dramascout.schemas.crawl import BatchResult, BatchSummary, PlatformResult
from dramascout.schemas.drama import ExtractedRecord


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestParser:
    def test_run_arguments(self):
        args = cli.build_parser().parse_args(
            ["run", "tencent", "iqiyi", "--kind", "ranking", "--type", "new", "--limit", "10", "--headed"]
        )
        assert args.sources == ["tencent", "iqiyi"]
        assert args.kind == "ranking"
        assert cli._options(args) == {"limit": 10, "type": "new", "headless": False}

    def test_detail_arguments(self):
        args = cli.build_parser().parse_args(["detail", "iqiyi", "19rrhb0ms9", "--timeout", "45000"])
        assert (args.source, args.drama_id) == ("iqiyi", "19rrhb0ms9")
        assert cli._options(args) == {"timeout": 45000}

    def test_unknown_kind_rejected(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["run", "all", "--kind", "comments"])


class TestCommands:
    def test_no_command_prints_help(self, capsys):
        assert cli.main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_sources(self, capsys):
        assert cli.main(["sources"]) == 0
        listed = json.loads(capsys.readouterr().out)
        assert [s["name"] for s in listed] == ["tencent", "youku", "iqiyi", "douyin"]
        assert listed[2]["base_url"] == "https://www.iqiyi.com"

    def test_run_reports_batch(self, capsys, monkeypatch, tmp_path):
        calls = []

        class FakeManager:
            def __init__(self, **kwargs):
                calls.append(kwargs)

            async def run_multi(self, sources, kind, options):
                calls.append((sources, kind, options))
                record = ExtractedRecord(title="霸道总裁", platform="iqiyi")
                return BatchResult(
                    success=True,
                    results=[PlatformResult(success=True, platform="iqiyi", data=[record])],
                    summary=BatchSummary(total=1, successful=1, failed=0, total_data=1),
                )

        monkeypatch.setattr("dramascout.services.orchestrator.CrawlerManager", FakeManager)

        metrics_file = tmp_path / "dramascout.prom"
        argv = ["run", "iqiyi", "--page-size", "5", "--no-diagnostics", "--metrics-file", str(metrics_file)]
        assert cli.main(argv) == 0

        assert calls[0]["diagnostics"].enabled is False
        assert calls[1] == (["iqiyi"], "drama_list", {"page_size": 5})
        out = capsys.readouterr()
        assert json.loads(out.out)["results"][0]["data"][0]["title"] == "霸道总裁"
        assert "1/1 sources succeeded" in out.err
        assert "platform_runs_total" in metrics_file.read_text()
