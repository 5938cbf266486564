"""Installed artifact and buildcache push outcome models."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class InstalledArtifact(BaseModel):
    """One concrete installation reported by ``spack find``.

    The install timestamp is not stored: it is read from the filesystem
    (``install_path`` mtime) only when duplicates have to be resolved.
    """

    model_config = ConfigDict(frozen=True)

    hash: str
    install_path: Path

    @staticmethod
    def hash_from_path(install_path: Path | str) -> str:
        """Spack install prefixes end in ``<name>-<version>-<hash>``."""
        return Path(install_path).name.rsplit("-", 1)[-1]

    def is_under(self, root: Path | str) -> bool:
        """Whether this artifact lives in the install tree rooted at *root*."""
        try:
            self.install_path.relative_to(Path(root))
        except ValueError:
            return False
        return True


class PushOutcome(str, Enum):
    """Structured result of pushing a single hash to a buildcache."""

    PUSHED = "pushed"
    ALREADY_PRESENT = "already_present"
    FAILED = "failed"


class PushResult(BaseModel):
    """One ``spack buildcache push`` call and what came of it."""

    model_config = ConfigDict(frozen=True)

    hash: str
    outcome: PushOutcome
    output: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome != PushOutcome.FAILED
