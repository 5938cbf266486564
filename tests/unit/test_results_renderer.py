"""Unit tests for the ResultsRenderer."""

from __future__ import annotations

import io

from rich.console import Console
from rich.panel import Panel

from daqcache.models.results import BatchResult, PublishResult
from daqcache.models.stages import ErrorKind, PublishStage
from daqcache.report.renderer import ResultsRenderer


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_batch() -> BatchResult:
    return BatchResult(
        suite="artdaq-suite",
        results=[
            PublishResult(coordinate="artdaq-suite@v3_13_02 s=131", pushed_count=42),
            PublishResult(
                coordinate="artdaq-suite@v9_99_99 s=132",
                error=ErrorKind.INSTALL_FAILED,
                failed_stage=PublishStage.INSTALL,
                log_path="/logs/x-install.log",
            ),
            PublishResult(
                coordinate="artdaq-suite@v4_01_00 s=132",
                already_cached=True,
                warnings=[ErrorKind.INDEX_UPDATE_WARNING],
                selected_hash="abc1234def",
                ambiguous_candidates=["abc1234def", "0000000"],
            ),
        ],
    )


def _render(batch: BatchResult) -> str:
    buffer = io.StringIO()
    console = Console(file=buffer, width=200, color_system=None)
    ResultsRenderer(console=console).print_batch(batch)
    return buffer.getvalue()


class TestResultsRenderer:
    def test_render_returns_panel(self):
        assert isinstance(ResultsRenderer().render_batch(_make_batch()), Panel)

    def test_rows_and_statuses(self):
        text = _render(_make_batch())
        assert "artdaq-suite@v3_13_02 s=131" in text
        assert "PUSHED" in text
        assert "FAILED" in text
        assert "CACHED" in text
        assert "42" in text

    def test_details(self):
        text = _render(_make_batch())
        assert "install_failed (install)" in text
        assert "/logs/x-install.log" in text
        assert "index_update_warning" in text
        assert "2 candidates, chose /abc1234" in text

    def test_summary_footer(self):
        text = _render(_make_batch())
        assert "Succeeded: 2" in text
        assert "Failed: 1" in text
        assert "Warnings: 1" in text

    def test_empty_batch(self):
        text = _render(BatchResult(suite="sbndaq-suite"))
        assert "sbndaq-suite" in text
        assert "Succeeded: 0" in text
