"""Tests for logging setup, per-coordinate logs, rotation and the command log."""

from __future__ import annotations

import io
import logging
import os

from rich.console import Console

from daqcache.core.logs import (
    CommandLog,
    configure_logging,
    coordinate_log,
    rotate_logs,
    timestamp,
)


class TestConfigureLogging:
    def test_creates_run_log(self, tmp_path):
        log_path = configure_logging(
            "DEBUG", tmp_path / "logs", console=Console(file=io.StringIO())
        )
        assert log_path is not None
        assert log_path.name.startswith("build.")
        logging.getLogger("daqcache.test").info("hello run log")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello run log" in log_path.read_text()

    def test_repeated_calls_replace_handlers(self, tmp_path):
        configure_logging("INFO", None)
        configure_logging("INFO", None)
        tagged = [h for h in logging.getLogger().handlers if getattr(h, "_daqcache", False)]
        assert len(tagged) == 1

    def test_without_logs_dir(self):
        assert configure_logging("WARNING", None) is None
        assert logging.getLogger().level == logging.WARNING


class TestCoordinateLog:
    def test_tees_records_only_inside_block(self, tmp_path):
        logger = logging.getLogger("daqcache.test.coordinate")
        logger.setLevel(logging.INFO)
        path = tmp_path / "pkg-1.0-build.log"
        with coordinate_log(path):
            logger.warning("inside")
        logger.warning("outside")
        text = path.read_text()
        assert "inside" in text
        assert "outside" not in text


class TestRotateLogs:
    def test_keeps_newest_per_pattern(self, tmp_path):
        for i in range(5):
            for name in (f"pkg{i}-install.log", f"commands.2025010{i}_000000.log"):
                path = tmp_path / name
                path.write_text("x")
                os.utime(path, (1_000_000 + i, 1_000_000 + i))
        keep = tmp_path / "notes.txt"
        keep.write_text("x")

        removed = rotate_logs(tmp_path, 2)

        assert len(removed) == 6
        assert sorted(p.name for p in tmp_path.glob("*-install.log")) == [
            "pkg3-install.log",
            "pkg4-install.log",
        ]
        assert len(list(tmp_path.glob("commands.*.log"))) == 2
        assert keep.exists()

    def test_missing_dir(self, tmp_path):
        assert rotate_logs(tmp_path / "nope", 3) == []


class TestCommandLog:
    def test_record_and_archive(self, tmp_path):
        log = CommandLog(tmp_path / "commands.log")
        log.record(["spack", "reindex"])
        log.record(["spack", "arch", "-o"])
        assert (tmp_path / "commands.log").read_text() == "spack reindex\nspack arch -o\n"

        archived = log.archive()
        assert archived is not None
        assert archived.name.startswith("commands.")
        assert not (tmp_path / "commands.log").exists()
        assert archived.read_text().count("\n") == 2

    def test_archive_empty_is_noop(self, tmp_path):
        assert CommandLog(tmp_path / "commands.log").archive() is None
        assert CommandLog(None).archive() is None

    def test_logs_cmd_prefix(self, caplog):
        with caplog.at_level(logging.INFO, logger="daqcache.core.logs"):
            CommandLog().record(["spack", "find"])
        assert "[CMD] spack find" in caplog.text

    def test_timestamp_format(self):
        stamp = timestamp()
        assert len(stamp) == 15
        assert stamp[8] == "_"
