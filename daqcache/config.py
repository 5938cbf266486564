"""Runtime configuration — env-driven settings and suite build-config files.

``PublisherSettings`` reads ``DAQCACHE_*`` environment variables (or a
``.env`` file in the working directory) and carries the knobs that are the
same for every coordinate: logging, parallelism, install-tree namespace.

``BuildConfig`` reads a suite build-config file, the shell-style ``.env``
file that lists which configurations of a DAQ suite to build::

    SOFTWARE_BASE=/daq/software
    SPACK_DIR=${SOFTWARE_BASE}/spack_packages/spack
    SPACK_VERSION=v1.0.1.sbnd
    SPACK_MIRROR_BASE=${SOFTWARE_BASE}/spack_mirrors/artdaq-suite
    DAQ_SUITE_NAME=artdaq-suite
    DAQ_SUITE_VERSIONS="v4_01_00:s132:gcc13.1.0:c++20"
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from daqcache.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _default_build_threads() -> int:
    return max(1, (os.cpu_count() or 4) // 2)


class PublisherSettings(BaseSettings):
    """Process-wide settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export DAQCACHE_LOG_LEVEL=DEBUG
        export DAQCACHE_BUILD_THREADS=16
        export DAQCACHE_INSTALL_TREE_ROOT=/daq/software
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DAQCACHE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    logs_dir: Path = Path("logs")
    max_logs: int = 10

    # Spack install policy
    build_threads: int = Field(default_factory=_default_build_threads)
    debug_build: bool = False
    deprecated: bool = True
    micro_arch: str = "v2"

    # Only artifacts under this root are pushed; anything else belongs to
    # an upstream install tree and is published by its owner.
    install_tree_root: Path = Path("/daq/software")

    # Scratch directory for spec and hash dumps; None -> <spack>/hashes
    hashes_dir: Path | None = None

    with_cleanup: bool = True

    @field_validator("build_threads")
    @classmethod
    def _positive_threads(cls, value: int) -> int:
        if value < 1:
            raise ValueError("build_threads must be at least 1")
        return value


class BuildConfig(BaseSettings):
    """A suite build-config file (``build-artdaq-suite.env`` and friends)."""

    model_config = SettingsConfigDict(extra="ignore", env_file_encoding="utf-8")

    software_base: Path
    spack_dir: Path
    spack_version: str
    spack_mirror_base: Path
    daq_suite_name: str
    daq_suite_versions: str
    build_threads: int | None = None
    debug_build: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # The file alone describes the build; exported shell variables
        # must not change which suite or checkout gets built.
        return (init_settings, dotenv_settings)

    @field_validator(
        "spack_version", "daq_suite_name", "daq_suite_versions", mode="before"
    )
    @classmethod
    def _not_empty(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            raise ValueError("must not be empty")
        return value

    @property
    def spack_root(self) -> Path:
        """The Spack checkout used for this build (``$SPACK_DIR/$SPACK_VERSION``)."""
        return self.spack_dir / self.spack_version


def load_build_config(path: Path | str) -> BuildConfig:
    """Load and validate a suite build-config file.

    Raises ``ConfigurationError`` naming every missing or empty key.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")

    logger.info("Loading configuration from %s", path)
    try:
        return BuildConfig(_env_file=path)
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']).upper()}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ConfigurationError(
            f"Invalid configuration in {path}: " + "; ".join(problems)
        ) from exc


# ---------------------------------------------------------------------------
# Default suite configurations
# ---------------------------------------------------------------------------

SUITE_DEFAULT_VERSIONS: dict[str, list[str]] = {
    "artdaq-suite": [
        "v3_13_02:s131:gcc13.1.0:c++17",
        "v3_13_02:s131:gcc13.1.0:c++20",
        "v3_13_02:s132:gcc13.1.0:c++20",
        "v4_01_00:s132:gcc13.1.0:c++20",
    ],
    "sbndaq-suite": [
        "migration_artdaqv3_13_02:s131:gcc13.1.0:c++17",
        "migration_artdaqv3_13_02:s131:gcc13.1.0:c++20",
        "migration_artdaqv3_13_02:s132:gcc13.1.0:c++20",
        "migration_artdaqv4_01_00:s132:gcc13.1.0:c++20",
    ],
}

_DEFAULT_CONFIG_TEMPLATE = """\
# Default configuration for {suite} build - generated on {generated}
# Customize these values according to your environment

# Base directories
SOFTWARE_BASE=/daq/software
SPACK_DIR=${{SOFTWARE_BASE}}/spack_packages/spack
SPACK_VERSION=v1.0.1.sbnd
SPACK_MIRROR_BASE=${{SOFTWARE_BASE}}/spack_mirrors/{suite}

# DAQ suite configuration
DAQ_SUITE_NAME={suite}

# Format: version:qualifier:compiler:standard, one per line
DAQ_SUITE_VERSIONS="{versions}"

# Uncomment to customize build options
# BUILD_THREADS=8
# DEBUG_BUILD=false
"""


def write_default_build_config(path: Path | str, suite: str) -> bool:
    """Write the default build config for *suite* unless *path* exists.

    Returns ``True`` if a file was created. An existing file is never
    overwritten.
    """
    path = Path(path)
    if path.exists():
        logger.debug("Using existing configuration file: %s", path)
        return False
    try:
        versions = SUITE_DEFAULT_VERSIONS[suite]
    except KeyError:
        raise ConfigurationError(
            f"No default configuration for suite {suite!r}. "
            f"Known suites: {sorted(SUITE_DEFAULT_VERSIONS)}"
        ) from None

    logger.info("Creating default configuration for %s: %s", suite, path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        _DEFAULT_CONFIG_TEMPLATE.format(
            suite=suite,
            generated=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            versions=",\n".join(versions),
        ),
        encoding="utf-8",
    )
    logger.info("Default configuration created at %s, please review it", path)
    return True
