"""Interrupt handling — run cleanup callbacks, then exit.

There is no resume state: an interrupted batch is simply re-run, relying on
Spack not rebuilding finished installs and on the push short-circuit for
coordinates that were already published. Cleanup only removes half-written
scratch files and archives the command log.
"""

from __future__ import annotations

import logging
import signal
from collections.abc import Callable
from pathlib import Path
from types import FrameType

logger = logging.getLogger(__name__)

# Conventional shell exit status for each handled signal (128 + signum).
EXIT_CODES: dict[str, int] = {
    "SIGINT": 130,
    "SIGTERM": 143,
    "SIGQUIT": 131,
}


class CleanupRegistry:
    """Ordered cleanup callbacks plus a set of in-flight temporary files."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._callbacks: list[Callable[[], object]] = []
        self._temp_files: set[Path] = set()

    def add(self, callback: Callable[[], object]) -> None:
        self._callbacks.append(callback)

    def track(self, path: Path) -> None:
        """Register a temporary file to delete if the run is interrupted."""
        self._temp_files.add(path)

    def untrack(self, path: Path) -> None:
        self._temp_files.discard(path)

    @property
    def temp_files(self) -> frozenset[Path]:
        return frozenset(self._temp_files)

    def run(self) -> None:
        """Remove tracked temp files and run callbacks; never raises."""
        if not self.enabled:
            return
        logger.debug("Running cleanup functions")
        for path in sorted(self._temp_files):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Cannot remove temporary file %s: %s", path, exc)
        self._temp_files.clear()
        for callback in self._callbacks:
            try:
                callback()
            except Exception as exc:
                logger.warning("Cleanup function %r failed: %s", callback, exc)


def install_signal_handlers(registry: CleanupRegistry) -> dict[int, object]:
    """Route SIGINT/SIGTERM/SIGQUIT through *registry* and exit.

    Returns the previous handlers so callers (and tests) can restore them.
    """
    previous: dict[int, object] = {}

    def _handler(signum: int, frame: FrameType | None) -> None:
        name = signal.Signals(signum).name
        logger.warning("Received %s", name)
        registry.run()
        raise SystemExit(EXIT_CODES.get(name, 128 + signum))

    for name in EXIT_CODES:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        previous[signum] = signal.signal(signum, _handler)
    return previous


def restore_signal_handlers(previous: dict[int, object]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)  # type: ignore[arg-type]
