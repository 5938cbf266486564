"""Spack CLI adapter — the only place that knows Spack's command syntax.

``PackageManager`` is the contract the publisher depends on. ``SpackClient``
implements it by running the real ``spack`` executable; tests substitute a
recording fake. All of Spack's textual output conventions (``spack find``
columns, the ``--sh`` environment dump, the "already in the buildcache"
message) are parsed here and nowhere else.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from pathlib import Path
from typing import Protocol, runtime_checkable

from daqcache.core.logs import CommandLog
from daqcache.errors import PackageManagerError
from daqcache.models.artifacts import InstalledArtifact, PushOutcome, PushResult
from daqcache.models.coordinate import PackageCoordinate

logger = logging.getLogger(__name__)

# Printed by ``spack buildcache push`` when the spec needs no upload.
ALREADY_IN_CACHE_MARKER = "The spec is already in the buildcache"

# ``spack find --format`` template yielding "<full hash> <install prefix>".
FIND_FORMAT = "{hash} {prefix}"

# Tree markers in ``spack spec`` output for specs that need no build:
# installed, external, installed upstream.
_INSTALLED_MARKERS = ("[+]", "[e]", "[^]")


# ---------------------------------------------------------------------------
# Output parsing
# ---------------------------------------------------------------------------


def parse_find_output(text: str) -> list[InstalledArtifact]:
    """Parse ``spack find --format "{hash} {prefix}"`` output."""
    artifacts: list[InstalledArtifact] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("==>"):
            continue
        parts = line.split(None, 1)
        if len(parts) != 2 or not parts[1].startswith("/"):
            logger.debug("Ignoring unexpected find output line: %r", line)
            continue
        artifact = InstalledArtifact(hash=parts[0], install_path=Path(parts[1]))
        suffix = InstalledArtifact.hash_from_path(artifact.install_path)
        # default projections end in the full hash, short-hash ones in a prefix of it
        if not (artifact.hash.startswith(suffix) or suffix.startswith(artifact.hash)):
            logger.debug(
                "Install prefix %s does not end in its hash %s",
                artifact.install_path,
                artifact.hash,
            )
        artifacts.append(artifact)
    return artifacts


def parse_hash_dump(text: str) -> list[str]:
    """Extract hashes from ``spack find -ldfv --loaded`` output, in file order.

    Section headers (``-- linux-... / gcc@... ---``), Spack messages and
    blank lines are skipped; the first column of every other line is a
    hash. A hash listed twice (a shared dependency) is kept once, at its
    first position.
    """
    hashes: list[str] = []
    seen: set[str] = set()
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("--", "==>")):
            continue
        token = stripped.split()[0].lstrip("/")
        if token and token not in seen:
            seen.add(token)
            hashes.append(token)
    return hashes


def parse_load_environment(sh_text: str) -> dict[str, str]:
    """Turn ``spack load --sh`` output into the variables it exports."""
    environ: dict[str, str] = {}
    tokens = shlex.split(sh_text, comments=True)
    skip_next = False
    for token in tokens:
        token = token.rstrip(";")
        if skip_next:
            skip_next = False
            continue
        if token == "export":
            continue
        if token == "unset":
            skip_next = True
            continue
        if "=" in token:
            name, value = token.split("=", 1)
            environ[name] = value
    return environ


def parse_unset_variables(sh_text: str) -> set[str]:
    """Names a ``spack ... --sh`` dump unsets (``unset NAME;``)."""
    names: set[str] = set()
    tokens = [t.rstrip(";") for t in shlex.split(sh_text, comments=True)]
    for previous, token in zip(tokens, tokens[1:]):
        if previous == "unset" and token:
            names.add(token)
    return names


def count_pending_builds(spec_text: str) -> int:
    """Number of specs in a ``spack spec`` tree that are not yet installed.

    Only the concretized tree is counted when the output also echoes the
    input spec.
    """
    lines = spec_text.splitlines()
    for index, line in enumerate(lines):
        if line.strip().startswith("Concretized"):
            lines = lines[index + 1 :]
            break
    count = 0
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith("==>") or set(stripped) == {"-"}:
            continue
        if not stripped.startswith(_INSTALLED_MARKERS):
            count += 1
    return count


def classify_push(hash_: str, returncode: int, output: str) -> PushResult:
    """Map a push call's exit status and output onto a ``PushOutcome``."""
    if returncode != 0:
        outcome = PushOutcome.FAILED
    elif ALREADY_IN_CACHE_MARKER in output:
        outcome = PushOutcome.ALREADY_PRESENT
    else:
        outcome = PushOutcome.PUSHED
    return PushResult(hash=hash_, outcome=outcome, output=output)


# ---------------------------------------------------------------------------
# Collaborator contract
# ---------------------------------------------------------------------------


@runtime_checkable
class PackageManager(Protocol):
    """What the publisher needs from a package manager."""

    def install(
        self, coordinate: PackageCoordinate, jobs: int, log_path: Path
    ) -> None:
        """Build and install; raises ``PackageManagerError`` on failure."""
        ...

    def reindex(self) -> None: ...

    def spec(self, coordinate: PackageCoordinate) -> str: ...

    def find(self, coordinate: PackageCoordinate) -> list[InstalledArtifact]: ...

    def unload_all(self) -> None: ...

    def load(self, hash_: str) -> dict[str, str]: ...

    def find_loaded(self, environment: dict[str, str]) -> str: ...

    def buildcache_push(self, mirror_path: Path, hash_: str) -> PushResult: ...

    def buildcache_update_index(self, mirror_path: Path) -> None: ...


# ---------------------------------------------------------------------------
# Real Spack
# ---------------------------------------------------------------------------


class SpackClient:
    """Runs the ``spack`` executable for one compiler/arch context.

    Parameters
    ----------
    executable:
        Path to (or name of) the ``spack`` script.
    command_log:
        Where executed command lines are recorded.
    install_options:
        Extra ``spack install`` flags beyond the fixed publish policy,
        e.g. ``["--deprecated", "--debug"]``.
    env:
        Extra environment for every Spack invocation.
    """

    # Rebuild when stale, never pull from a remote binary cache, build from source.
    INSTALL_POLICY: tuple[str, ...] = ("-y", "--fresh", "--no-cache", "--source")

    def __init__(
        self,
        executable: str | Path = "spack",
        *,
        command_log: CommandLog | None = None,
        install_options: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        self.executable = str(executable)
        self.command_log = command_log or CommandLog()
        self.install_options = list(install_options or [])
        self._env = {"SPACK_DISABLE_LOCAL_CONFIG": "true", **(env or {})}
        # variables removed by `spack unload --all`, hidden from later calls
        self._unset: set[str] = set()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _command(self, *args: str) -> list[str]:
        return [self.executable, "--color=never", *args]

    def _environment(self, extra_env: dict[str, str] | None = None) -> dict[str, str]:
        env = {**os.environ, **self._env, **(extra_env or {})}
        for name in self._unset - set(extra_env or ()):
            env.pop(name, None)
        return env

    def _run(
        self,
        args: list[str],
        *,
        extra_env: dict[str, str] | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        command = self._command(*args)
        self.command_log.record(command)
        env = self._environment(extra_env)
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                env=env,
            )
        except OSError as exc:
            raise PackageManagerError(command, 127, str(exc)) from exc
        if check and result.returncode != 0:
            raise PackageManagerError(
                command, result.returncode, result.stderr or result.stdout
            )
        return result

    def output(self, *args: str) -> str:
        """Run an arbitrary Spack subcommand and return its stdout."""
        return self._run(list(args)).stdout

    # ------------------------------------------------------------------
    # PackageManager
    # ------------------------------------------------------------------

    def install(
        self, coordinate: PackageCoordinate, jobs: int, log_path: Path
    ) -> None:
        command = self._command(
            "install",
            *self.INSTALL_POLICY,
            f"-j{jobs}",
            *self.install_options,
            *coordinate.spec_args(),
        )
        self.command_log.record(command)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        env = self._environment()
        with log_path.open("w", encoding="utf-8") as log_fh:
            try:
                result = subprocess.run(
                    command, stdout=log_fh, stderr=subprocess.STDOUT, text=True, env=env
                )
            except OSError as exc:
                raise PackageManagerError(command, 127, str(exc), str(log_path)) from exc
        if result.returncode != 0:
            raise PackageManagerError(command, result.returncode, log_path=str(log_path))

    def reindex(self) -> None:
        self._run(["reindex"])

    def spec(self, coordinate: PackageCoordinate) -> str:
        return self._run(["spec", *coordinate.spec_args()]).stdout

    def find(self, coordinate: PackageCoordinate) -> list[InstalledArtifact]:
        result = self._run(
            ["find", "--format", FIND_FORMAT, *coordinate.spec_args()], check=False
        )
        # spack find exits non-zero when nothing matches
        if result.returncode != 0 and "No package matches" in (result.stderr + result.stdout):
            return []
        if result.returncode != 0:
            raise PackageManagerError(
                self._command("find", *coordinate.spec_args()),
                result.returncode,
                result.stderr or result.stdout,
            )
        return parse_find_output(result.stdout)

    def unload_all(self) -> None:
        sh_text = self._run(["unload", "--sh", "--all"]).stdout
        self._unset |= parse_unset_variables(sh_text)
        self._env.update(parse_load_environment(sh_text))

    def load(self, hash_: str) -> dict[str, str]:
        return parse_load_environment(self._run(["load", "--sh", f"/{hash_}"]).stdout)

    def find_loaded(self, environment: dict[str, str]) -> str:
        return self._run(["find", "-ldfv", "--loaded"], extra_env=environment).stdout

    def buildcache_push(self, mirror_path: Path, hash_: str) -> PushResult:
        result = self._run(
            ["buildcache", "push", "--only", "package", str(mirror_path), f"/{hash_}"],
            check=False,
        )
        return classify_push(hash_, result.returncode, result.stdout + result.stderr)

    def buildcache_update_index(self, mirror_path: Path) -> None:
        self._run(["buildcache", "update-index", str(mirror_path)])
