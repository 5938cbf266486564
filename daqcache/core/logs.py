"""Logging setup, per-coordinate log files and the executed-command log.

Console output goes through ``rich.logging.RichHandler`` on stderr so that
stdout stays free for the machine-readable summary. Every run also writes a
plain-text ``build.<timestamp>.log`` under the logs directory, and every
Spack command line is appended to ``commands.log`` for later replay.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

logger = logging.getLogger(__name__)

_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Log files subject to rotation, newest max_logs of each kept.
ROTATED_PATTERNS: tuple[str, ...] = (
    "*-install.log",
    "*-build.log",
    "commands.*.log",
    "build.*.log",
)


def timestamp() -> str:
    """Timestamp used in every log file name (``20250131_142501``)."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def configure_logging(
    level: str = "INFO",
    logs_dir: Path | None = None,
    *,
    console: Console | None = None,
) -> Path | None:
    """Install the console handler and, if *logs_dir* is given, a run log.

    Returns the path of the run log file, or ``None`` if file logging is
    disabled or the directory cannot be created.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        if getattr(handler, "_daqcache", False):
            root.removeHandler(handler)
            handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    rich_handler._daqcache = True  # type: ignore[attr-defined]
    root.addHandler(rich_handler)

    if logs_dir is None:
        return None
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("Cannot create logs directory %s: %s", logs_dir, exc)
        return None

    log_path = logs_dir / f"build.{timestamp()}.log"
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    file_handler._daqcache = True  # type: ignore[attr-defined]
    root.addHandler(file_handler)
    logger.info("Logging to %s", log_path)
    return log_path


@contextmanager
def coordinate_log(path: Path) -> Iterator[Path]:
    """Tee every log record into *path* for the duration of the block."""
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    try:
        yield path
    finally:
        root.removeHandler(handler)
        handler.close()


def rotate_logs(logs_dir: Path, max_logs: int) -> list[Path]:
    """Delete all but the newest *max_logs* files of each rotated pattern.

    Returns the removed paths.
    """
    removed: list[Path] = []
    if not logs_dir.is_dir():
        return removed
    for pattern in ROTATED_PATTERNS:
        files = sorted(logs_dir.glob(pattern), key=lambda p: p.stat().st_mtime)
        excess = len(files) - max_logs
        if excess <= 0:
            continue
        logger.debug(
            "Removing old %s logs (keeping %d of %d)", pattern, max_logs, len(files)
        )
        for old in files[:excess]:
            try:
                old.unlink()
            except OSError as exc:
                logger.warning("Cannot remove old log %s: %s", old, exc)
            else:
                removed.append(old)
    return removed


class CommandLog:
    """Append-only record of every external command that was executed.

    Parameters
    ----------
    path:
        File the command lines are appended to. ``None`` only logs them.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._warned = False

    def record(self, command: list[str]) -> None:
        line = " ".join(command)
        logger.info("[CMD] %s", line)
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError as exc:
            if not self._warned:
                logger.warning("Cannot write to command log %s: %s", self.path, exc)
                self._warned = True

    def archive(self) -> Path | None:
        """Move a non-empty command log to ``commands.<timestamp>.log``."""
        if self.path is None or not self.path.is_file() or self.path.stat().st_size == 0:
            return None
        target = self.path.with_name(f"commands.{timestamp()}.log")
        try:
            self.path.rename(target)
        except OSError as exc:
            logger.warning("Cannot archive command log %s: %s", self.path, exc)
            return None
        return target
