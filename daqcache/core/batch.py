"""Batch orchestration over a suite's configuration list."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from daqcache.core.environment import SpackEnvironment
from daqcache.core.publisher import Publisher
from daqcache.core.selection import SelectionStrategy, select_latest_artifact
from daqcache.core.signals import CleanupRegistry
from daqcache.errors import ConfigurationError, DaqcacheError
from daqcache.models.config import BatchEntry, PublishOptions
from daqcache.models.coordinate import CompilerSpec
from daqcache.models.results import BatchResult, PublishResult
from daqcache.models.stages import ErrorKind

logger = logging.getLogger(__name__)

EnvironmentFactory = Callable[[CompilerSpec], SpackEnvironment]


class BatchRunner:
    """Publishes every configuration of one suite, in order.

    One entry's failure is recorded and the next entry runs regardless.

    Parameters
    ----------
    suite:
        Package name every entry is built as (``DAQ_SUITE_NAME``).
    environment_factory:
        Builds a ``SpackEnvironment`` for a compiler; called again only
        when the compiler changes between entries.
    logs_dir:
        Where install and per-coordinate build logs go.
    hashes_dir:
        Scratch directory override; defaults to the environment's.
    install_tree_root:
        Only installs under this root are pushed.
    """

    def __init__(
        self,
        suite: str,
        environment_factory: EnvironmentFactory,
        *,
        logs_dir: Path | None = None,
        hashes_dir: Path | None = None,
        install_tree_root: Path = Path("/daq/software"),
        select: SelectionStrategy = select_latest_artifact,
        cleanup: CleanupRegistry | None = None,
    ) -> None:
        self.suite = suite
        self.environment_factory = environment_factory
        self.logs_dir = logs_dir
        self.hashes_dir = hashes_dir
        self.install_tree_root = install_tree_root
        self.select = select
        self.cleanup = cleanup or CleanupRegistry()
        self._environment: SpackEnvironment | None = None

    def run(self, entries: Iterable[str], mirror_base: Path | str) -> BatchResult:
        entries = list(entries)
        logger.info("Building %d configuration(s) of %s", len(entries), self.suite)
        results = [self._run_entry(raw, Path(mirror_base)) for raw in entries]
        batch = BatchResult(suite=self.suite, results=results)
        if batch.failed:
            logger.warning("Completed with %d failed configuration(s)", batch.failed)
        else:
            logger.info("All %d configuration(s) published", batch.succeeded)
        return batch

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run_entry(self, raw: str, mirror_base: Path) -> PublishResult:
        try:
            entry = BatchEntry.parse(raw)
        except ConfigurationError as exc:
            logger.error("%s", exc)
            return _failure(raw, ErrorKind.CONFIGURATION_ERROR, str(exc))

        label = f"{self.suite}@{entry.version} {' '.join(entry.qualifiers)} {entry.compiler}"
        logger.info("Building configuration: %s", label)

        environment = self._environment_for(entry.compiler)
        if environment is None:
            return _failure(
                label,
                ErrorKind.ENVIRONMENT_FAILED,
                f"Failed to initialize Spack environment for {label}",
            )

        try:
            coordinate = entry.coordinate(self.suite, environment.arch)
        except ValueError as exc:
            logger.error("Invalid configuration %s: %s", raw, exc)
            return _failure(label, ErrorKind.CONFIGURATION_ERROR, str(exc))

        publisher = Publisher(
            environment.package_manager,
            PublishOptions(
                jobs=environment.build_threads,
                hashes_dir=self.hashes_dir or environment.hashes_dir,
                logs_dir=self.logs_dir,
                install_tree_root=self.install_tree_root,
            ),
            select=self.select,
            cleanup=self.cleanup,
        )
        try:
            return publisher.publish(coordinate, mirror_base)
        except ConfigurationError as exc:
            logger.error("%s", exc)
            return _failure(coordinate.label, ErrorKind.CONFIGURATION_ERROR, str(exc))

    def _environment_for(self, compiler: CompilerSpec) -> SpackEnvironment | None:
        if self._environment is not None and self._environment.compiler == compiler:
            return self._environment
        self._environment = None
        try:
            self._environment = self.environment_factory(compiler)
        except DaqcacheError as exc:
            logger.error("Spack environment for %s: %s", compiler, exc)
        return self._environment


def _failure(label: str, kind: ErrorKind, message: str) -> PublishResult:
    return PublishResult(coordinate=label, error=kind, message=message)
