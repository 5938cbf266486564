"""Buildcache mirror bucket model — one bucket per (qualifier, compiler epoch)."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from daqcache.errors import ConfigurationError
from daqcache.models.coordinate import PackageCoordinate

logger = logging.getLogger(__name__)

# Compiler release -> epoch label used to partition mirror storage.
COMPILER_EPOCHS: dict[str, str] = {
    "13.1": "e28",
    "12.1": "e26",
}
DEFAULT_EPOCH = "e28"


def compiler_epoch(compiler_version: str) -> str:
    """Map a compiler version to its coarse epoch bucket.

    Unknown versions fall back to ``DEFAULT_EPOCH`` with a warning.
    """
    major_minor = ".".join(compiler_version.split(".")[:2])
    epoch = COMPILER_EPOCHS.get(major_minor)
    if epoch is None:
        logger.warning(
            "Unknown compiler version %s, defaulting to %s (known: %s)",
            compiler_version,
            DEFAULT_EPOCH,
            ", ".join(f"{v}.* ({e})" for v, e in COMPILER_EPOCHS.items()),
        )
        return DEFAULT_EPOCH
    return epoch


class MirrorTarget(BaseModel):
    """A buildcache destination bucket under a mirror base path."""

    model_config = ConfigDict(frozen=True)

    base_path: Path
    qualifier: str
    epoch: str

    @classmethod
    def for_coordinate(
        cls, coordinate: PackageCoordinate, base_path: Path | str
    ) -> MirrorTarget:
        """Compute the bucket a coordinate is published into.

        Raises ``ConfigurationError`` when the coordinate carries no ``s=``
        qualifier, since there is then no bucket to put it in.
        """
        s_value = coordinate.s_qualifier
        if not s_value:
            raise ConfigurationError(
                f"{coordinate.label}: no s= qualifier, cannot select a mirror bucket"
            )
        return cls(
            base_path=Path(base_path),
            qualifier=s_value,
            epoch=compiler_epoch(coordinate.compiler.version),
        )

    @property
    def bucket(self) -> str:
        return f"s{self.qualifier}-{self.epoch}"

    @property
    def path(self) -> Path:
        return self.base_path / self.bucket
