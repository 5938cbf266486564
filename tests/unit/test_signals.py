"""Tests for cleanup callbacks and signal handling."""

from __future__ import annotations

import os
import signal

import pytest

from daqcache.core.signals import (
    EXIT_CODES,
    CleanupRegistry,
    install_signal_handlers,
    restore_signal_handlers,
)


class TestCleanupRegistry:
    def test_removes_temp_files_and_runs_callbacks(self, tmp_path):
        tmp = tmp_path / "x.hashes.txt.tmp"
        tmp.write_text("partial")
        calls: list[str] = []
        registry = CleanupRegistry()
        registry.track(tmp)
        registry.add(lambda: calls.append("archived"))

        registry.run()

        assert not tmp.exists()
        assert calls == ["archived"]
        assert registry.temp_files == frozenset()

    def test_untrack(self, tmp_path):
        tmp = tmp_path / "keep.tmp"
        tmp.write_text("done")
        registry = CleanupRegistry()
        registry.track(tmp)
        registry.untrack(tmp)
        registry.run()
        assert tmp.exists()

    def test_failing_callback_does_not_stop_others(self):
        calls: list[str] = []
        registry = CleanupRegistry()
        registry.add(lambda: 1 / 0)
        registry.add(lambda: calls.append("second"))
        registry.run()
        assert calls == ["second"]

    def test_disabled(self, tmp_path):
        tmp = tmp_path / "x.tmp"
        tmp.write_text("x")
        registry = CleanupRegistry(enabled=False)
        registry.track(tmp)
        registry.run()
        assert tmp.exists()


class TestSignalHandlers:
    def test_exit_codes(self):
        assert EXIT_CODES == {"SIGINT": 130, "SIGTERM": 143, "SIGQUIT": 131}

    def test_sigterm_runs_cleanup_and_exits(self):
        calls: list[str] = []
        registry = CleanupRegistry()
        registry.add(lambda: calls.append("cleanup"))
        previous = install_signal_handlers(registry)
        try:
            with pytest.raises(SystemExit) as excinfo:
                os.kill(os.getpid(), signal.SIGTERM)
            assert excinfo.value.code == 143
            assert calls == ["cleanup"]
        finally:
            restore_signal_handlers(previous)
        assert signal.getsignal(signal.SIGTERM) == previous[signal.SIGTERM]
