"""Buildcache publisher: install one coordinate and push its closure.

The Publisher drives a ``PublishRun`` through the fixed stage sequence

    Install -> Reindex -> Spec -> HashDiscovery -> Push -> IndexUpdate

against a ``PackageManager``. Package-manager failures surface as
``PackageManagerError`` inside the adapter and are turned into an
``ErrorKind`` here, at the stage boundary, so a single bad coordinate
never raises out of ``publish``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager, nullcontext
from pathlib import Path

from daqcache.core.logs import coordinate_log, timestamp
from daqcache.core.selection import SelectionStrategy, select_latest_artifact
from daqcache.core.signals import CleanupRegistry
from daqcache.core.spack import PackageManager, count_pending_builds, parse_hash_dump
from daqcache.core.stage_machine import PublishRun
from daqcache.errors import PackageManagerError
from daqcache.models.artifacts import InstalledArtifact, PushOutcome
from daqcache.models.config import PublishOptions
from daqcache.models.coordinate import PackageCoordinate
from daqcache.models.mirror import MirrorTarget
from daqcache.models.results import PublishResult
from daqcache.models.stages import ErrorKind, PublishStage

logger = logging.getLogger(__name__)


class Publisher:
    """Publishes coordinates into their buildcache buckets.

    Parameters
    ----------
    package_manager:
        Anything implementing ``PackageManager``; ``SpackClient`` in
        production, a recording fake in tests.
    options:
        Job count, scratch and log directories, and the install tree root.
    select:
        Strategy used when ``find`` reports more than one local install.
    cleanup:
        Registry that in-flight scratch files are tracked in, so an
        interrupt can remove them.
    """

    def __init__(
        self,
        package_manager: PackageManager,
        options: PublishOptions,
        *,
        select: SelectionStrategy = select_latest_artifact,
        cleanup: CleanupRegistry | None = None,
    ) -> None:
        self.package_manager = package_manager
        self.options = options
        self.select = select
        self.cleanup = cleanup or CleanupRegistry()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def publish(
        self, coordinate: PackageCoordinate, mirror_base: Path | str
    ) -> PublishResult:
        """Run every stage for *coordinate* and return its result.

        Raises ``ConfigurationError`` before any stage runs when the
        coordinate cannot be mapped to a mirror bucket.
        """
        target = MirrorTarget.for_coordinate(coordinate, mirror_base)
        run = PublishRun(coordinate.label)
        stamp = timestamp()
        name = coordinate.path_name()

        build_log: Path | None = None
        if self.options.logs_dir is not None:
            build_log = self.options.logs_dir / f"{name}.{stamp}-build.log"
            run.log_path = str(build_log)

        with self._tee(build_log):
            logger.info("Publishing %s to %s", coordinate.label, target.path)
            self._run_stages(run, coordinate, target, stamp)
            if run.error is None:
                logger.info(
                    "%s: done, pushed %d hash(es)%s",
                    coordinate.label,
                    run.pushed_hash_count,
                    " (already in buildcache)" if run.already_in_cache else "",
                )
            else:
                logger.error(
                    "%s: %s during %s: %s",
                    coordinate.label,
                    run.error.value,
                    run.failed_stage.value if run.failed_stage else "?",
                    run.message,
                )
        return run.result()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _run_stages(
        self,
        run: PublishRun,
        coordinate: PackageCoordinate,
        target: MirrorTarget,
        stamp: str,
    ) -> None:
        run.advance(PublishStage.INSTALL)
        if not self._install(run, coordinate, stamp):
            return

        run.advance(PublishStage.REINDEX)
        self._reindex(run)

        run.advance(PublishStage.SPEC)
        if not self._spec(run, coordinate):
            return

        run.advance(PublishStage.HASH_DISCOVERY)
        hashes = self._discover_hashes(run, coordinate)
        if hashes is None:
            return

        run.advance(PublishStage.PUSH)
        if not self._push(run, coordinate, target, hashes):
            return

        run.advance(PublishStage.INDEX_UPDATE)
        self._update_index(run, target)
        run.advance(PublishStage.DONE)

    def _install(
        self, run: PublishRun, coordinate: PackageCoordinate, stamp: str
    ) -> bool:
        log_dir = self.options.logs_dir or self.options.hashes_dir
        install_log = log_dir / f"{coordinate.path_name()}.{stamp}-install.log"
        logger.info("Installing %s (log: %s)", coordinate.label, install_log)
        try:
            self.package_manager.install(coordinate, self.options.jobs, install_log)
        except PackageManagerError as exc:
            run.fail(
                ErrorKind.INSTALL_FAILED,
                f"Installation of {coordinate.label} failed with status "
                f"{exc.returncode}, see {install_log}",
                log_path=str(install_log),
            )
            return False
        return True

    def _reindex(self, run: PublishRun) -> None:
        try:
            self.package_manager.reindex()
        except PackageManagerError as exc:
            logger.warning("spack reindex failed, continuing: %s", _describe(exc))
            run.warn(ErrorKind.REINDEX_WARNING)

    def _spec(self, run: PublishRun, coordinate: PackageCoordinate) -> bool:
        spec_file = self.options.hashes_dir / f"{coordinate.path_name()}.spec.txt"
        try:
            spec_text = self.package_manager.spec(coordinate)
            self._write_scratch(spec_file, spec_text)
        except (PackageManagerError, OSError) as exc:
            run.fail(
                ErrorKind.SPEC_FAILED,
                f"Could not concretize {coordinate.label}: {_describe(exc)}",
            )
            return False
        logger.debug(
            "%s: %d spec(s) not marked installed (%s)",
            coordinate.label,
            count_pending_builds(spec_text),
            spec_file,
        )
        return True

    def _discover_hashes(
        self, run: PublishRun, coordinate: PackageCoordinate
    ) -> list[str] | None:
        try:
            self.package_manager.unload_all()
        except PackageManagerError as exc:
            logger.warning("spack unload --all failed, continuing: %s", _describe(exc))

        try:
            found = self.package_manager.find(coordinate)
        except PackageManagerError as exc:
            run.fail(
                ErrorKind.HASH_DISCOVERY_FAILED,
                f"spack find failed for {coordinate.label}: {_describe(exc)}",
            )
            return None

        root = self.options.install_tree_root
        local = [a for a in found if a.is_under(root)]
        if len(local) < len(found):
            logger.debug(
                "%s: ignoring %d install(s) outside %s",
                coordinate.label,
                len(found) - len(local),
                root,
            )
        if not local:
            run.fail(
                ErrorKind.HASH_DISCOVERY_FAILED,
                f"No installation of {coordinate.label} found under {root}",
            )
            return None

        chosen = self._choose(run, coordinate, local)
        run.selected_hash = chosen.hash

        dump_file = self.options.hashes_dir / f"{coordinate.path_name()}.hashes.txt"
        try:
            environment = self.package_manager.load(chosen.hash)
            dump = self.package_manager.find_loaded(environment)
            self._write_scratch(dump_file, dump)
            hashes = parse_hash_dump(dump_file.read_text(encoding="utf-8"))
        except (PackageManagerError, OSError) as exc:
            run.fail(
                ErrorKind.HASH_DISCOVERY_FAILED,
                f"Could not list the dependencies of {coordinate.label} "
                f"/{chosen.hash}: {_describe(exc)}",
            )
            return None

        if not hashes:
            run.fail(
                ErrorKind.HASH_DISCOVERY_FAILED,
                f"No hashes found for {coordinate.label} in {dump_file}",
            )
            return None
        logger.info("%s: %d hash(es) to push", coordinate.label, len(hashes))
        return hashes

    def _choose(
        self,
        run: PublishRun,
        coordinate: PackageCoordinate,
        artifacts: list[InstalledArtifact],
    ) -> InstalledArtifact:
        if len(artifacts) == 1:
            return artifacts[0]
        chosen = self.select(artifacts)
        run.ambiguous_candidates = [a.hash for a in artifacts]
        logger.warning(
            "%s: %d matching installs (%s), selected /%s",
            coordinate.label,
            len(artifacts),
            ", ".join(f"/{a.hash}" for a in artifacts),
            chosen.hash,
        )
        return chosen

    def _push(
        self,
        run: PublishRun,
        coordinate: PackageCoordinate,
        target: MirrorTarget,
        hashes: list[str],
    ) -> bool:
        try:
            target.path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            run.fail(
                ErrorKind.PUSH_FAILED,
                f"Cannot create mirror directory {target.path}: {exc}",
            )
            return False

        successes = 0
        for index, hash_ in enumerate(hashes):
            result = self.package_manager.buildcache_push(target.path, hash_)
            if not result.succeeded:
                logger.error(
                    "Push of /%s to %s failed, skipping:\n%s",
                    hash_,
                    target.bucket,
                    result.output.strip(),
                )
                continue
            successes += 1
            if result.outcome == PushOutcome.PUSHED:
                run.record_push()
                logger.debug("Pushed /%s to %s", hash_, target.bucket)
            elif index == 0:
                # The package itself is cached, so its closure was pushed with it.
                run.already_in_cache = True
                logger.info(
                    "%s is already in buildcache %s", coordinate.label, target.bucket
                )
                break
            else:
                logger.debug("/%s already in %s", hash_, target.bucket)

        if successes == 0:
            run.fail(
                ErrorKind.PUSH_FAILED,
                f"None of the {len(hashes)} hash(es) of {coordinate.label} "
                f"could be pushed to {target.path}",
            )
            return False
        return True

    def _update_index(self, run: PublishRun, target: MirrorTarget) -> None:
        try:
            self.package_manager.buildcache_update_index(target.path)
        except PackageManagerError as exc:
            logger.warning("Index update of %s failed: %s", target.path, _describe(exc))
            run.warn(ErrorKind.INDEX_UPDATE_WARNING)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _write_scratch(self, path: Path, text: str) -> None:
        """Write *path* through a ``.tmp`` sibling so readers never see half a file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        self.cleanup.track(tmp)
        try:
            tmp.write_text(text, encoding="utf-8")
            tmp.replace(path)
        finally:
            self.cleanup.untrack(tmp)
            tmp.unlink(missing_ok=True)

    @contextmanager
    def _tee(self, path: Path | None) -> Iterator[None]:
        with coordinate_log(path) if path is not None else nullcontext():
            yield


def _describe(exc: Exception) -> str:
    """Log a failed command's output and return a one-line summary of it.

    The full output goes to the log at ERROR level, so it lands in the
    coordinate's build log; the summary ends with its last non-empty line.
    """
    if not isinstance(exc, PackageManagerError):
        return str(exc)
    lines = [line.strip() for line in exc.output.splitlines() if line.strip()]
    if not lines:
        return str(exc)
    logger.error("Output of %s:\n%s", " ".join(exc.command), exc.output.rstrip())
    return f"{exc}: {lines[-1]}"
