"""Spack environment initialization and mirror preflight.

A ``SpackEnvironment`` is everything that is fixed for one compiler: the
Spack checkout, the detected architecture string, the install flags and a
``PackageManager`` bound to them. The batch runner builds a new one
whenever the compiler changes between entries.
"""

from __future__ import annotations

import logging
from pathlib import Path

from daqcache.core.logs import CommandLog
from daqcache.core.spack import PackageManager, SpackClient
from daqcache.errors import ConfigurationError, PackageManagerError, SpackEnvironmentError
from daqcache.models.coordinate import CompilerSpec

logger = logging.getLogger(__name__)


def make_arch(os_name: str, micro_arch: str = "v2") -> str:
    """``linux-<os>-x86_64_<micro_arch>``, e.g. ``linux-almalinux9-x86_64_v2``."""
    return f"linux-{os_name}-x86_64_{micro_arch}"


class SpackEnvironment:
    """A Spack checkout initialized for one compiler.

    Parameters
    ----------
    spack_root:
        ``<spack_dir>/<spack_version>``.
    compiler:
        Compiler every coordinate in this environment is built with.
    arch:
        Full Spack architecture string.
    package_manager:
        Adapter bound to this checkout.
    build_threads:
        Value passed as ``-j`` to ``spack install``.
    """

    def __init__(
        self,
        spack_root: Path,
        compiler: CompilerSpec,
        arch: str,
        package_manager: PackageManager,
        build_threads: int = 1,
    ) -> None:
        self.spack_root = Path(spack_root)
        self.compiler = compiler
        self.arch = arch
        self.package_manager = package_manager
        self.build_threads = build_threads

    @property
    def hashes_dir(self) -> Path:
        """Default scratch directory for spec and hash dumps."""
        return self.spack_root / "hashes"

    @classmethod
    def initialize(
        cls,
        spack_root: Path | str,
        compiler: CompilerSpec,
        *,
        micro_arch: str = "v2",
        arch: str | None = None,
        build_threads: int = 1,
        debug_build: bool = False,
        deprecated: bool = True,
        command_log: CommandLog | None = None,
    ) -> SpackEnvironment:
        """Validate the checkout, detect the OS and bind a ``SpackClient``.

        An explicit *arch* is used as is and ``spack arch -o`` is not run.
        Raises ``SpackEnvironmentError`` if the checkout is missing or OS
        detection fails.
        """
        spack_root = Path(spack_root)
        if not spack_root.is_dir():
            raise SpackEnvironmentError(f"Spack installation not found at: {spack_root}")
        executable = spack_root / "bin" / "spack"
        if not executable.is_file():
            raise SpackEnvironmentError(f"Spack executable not found at: {executable}")

        install_options: list[str] = []
        if deprecated:
            install_options.append("--deprecated")
        if debug_build:
            install_options.append("--debug")

        client = SpackClient(
            executable,
            command_log=command_log,
            install_options=install_options,
            env={"SPACK_ROOT": str(spack_root)},
        )
        if arch is None:
            arch = make_arch(_detect_os(client), micro_arch)

        env = cls(
            spack_root,
            compiler,
            arch,
            client,
            build_threads=build_threads,
        )
        logger.debug(
            "Spack environment: root=%s arch=%s compiler=%s jobs=%d options=%s",
            env.spack_root,
            env.arch,
            compiler,
            build_threads,
            " ".join(install_options) or "-",
        )
        return env


def _detect_os(client: SpackClient) -> str:
    try:
        os_name = client.output("arch", "-o").strip()
    except PackageManagerError as exc:
        raise SpackEnvironmentError(f"Cannot detect operating system: {exc}") from exc
    if not os_name:
        raise SpackEnvironmentError("spack arch -o returned nothing")
    return os_name


def ensure_mirror_directories(
    spack_dir: Path | str, spack_version: str, mirror_base: Path | str
) -> Path:
    """Check the Spack directories exist and create the mirror base.

    Returns the mirror base path. Raises ``ConfigurationError`` when Spack
    is not installed where the config says or the mirror cannot be created.
    """
    spack_dir = Path(spack_dir)
    mirror_base = Path(mirror_base)
    if not spack_dir.is_dir():
        raise ConfigurationError(
            f"Spack base directory not found: {spack_dir}. "
            "Please install Spack before running this command"
        )
    if not (spack_dir / spack_version).is_dir():
        raise ConfigurationError(
            f"Spack version directory not found: {spack_dir / spack_version}"
        )
    if not mirror_base.is_dir():
        logger.info("Creating mirror directory %s", mirror_base)
        try:
            mirror_base.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot create mirror directory {mirror_base}: {exc}"
            ) from exc
    return mirror_base
