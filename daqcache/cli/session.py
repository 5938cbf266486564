"""Process-level setup shared by the publishing commands."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console

from daqcache.config import PublisherSettings
from daqcache.core.batch import EnvironmentFactory
from daqcache.core.environment import SpackEnvironment
from daqcache.core.logs import CommandLog, configure_logging, rotate_logs
from daqcache.core.signals import (
    CleanupRegistry,
    install_signal_handlers,
    restore_signal_handlers,
)
from daqcache.models.coordinate import CompilerSpec
from daqcache.models.results import BatchResult
from daqcache.report.renderer import ResultsRenderer

logger = logging.getLogger(__name__)


class Session:
    """Handles shared by everything that runs during one CLI invocation."""

    def __init__(
        self,
        settings: PublisherSettings,
        command_log: CommandLog,
        cleanup: CleanupRegistry,
    ) -> None:
        self.settings = settings
        self.command_log = command_log
        self.cleanup = cleanup


@contextmanager
def publishing_session(settings: PublisherSettings) -> Iterator[Session]:
    """Logging, command log, signal handling and log rotation for one run."""
    logs_dir = settings.logs_dir
    configure_logging(settings.log_level, logs_dir)
    # Rotate before any work so logs written by this run are never removed.
    removed = rotate_logs(logs_dir, settings.max_logs)
    if removed:
        logger.debug("Rotated %d old log file(s)", len(removed))
    command_log = CommandLog(logs_dir / "commands.log")
    cleanup = CleanupRegistry(enabled=settings.with_cleanup)
    cleanup.add(command_log.archive)
    previous = install_signal_handlers(cleanup)
    try:
        yield Session(settings, command_log, cleanup)
    finally:
        restore_signal_handlers(previous)
        command_log.archive()


def environment_factory(
    spack_root: Path,
    session: Session,
    *,
    arch: str | None = None,
    build_threads: int | None = None,
    debug_build: bool | None = None,
) -> EnvironmentFactory:
    """Bind everything but the compiler for ``SpackEnvironment.initialize``.

    A given *arch* skips OS detection for every environment built.
    """
    settings = session.settings

    def _initialize(compiler: CompilerSpec) -> SpackEnvironment:
        return SpackEnvironment.initialize(
            spack_root,
            compiler,
            micro_arch=settings.micro_arch,
            arch=arch,
            build_threads=build_threads or settings.build_threads,
            debug_build=settings.debug_build if debug_build is None else debug_build,
            deprecated=settings.deprecated,
            command_log=session.command_log,
        )

    return _initialize


def report(batch: BatchResult, console: Console) -> None:
    """Render the results table and print the summary line, then exit."""
    ResultsRenderer(console=console).print_batch(batch)
    typer.echo(batch.summary_line())
    if batch.exit_code:
        raise typer.Exit(code=batch.exit_code)
