"""Duplicate-install resolution for hash discovery.

``spack find`` filters by name, version, qualifiers, compiler and arch,
which is coarser than a concrete spec: two builds that differ only in a
sub-dependency both match. The publisher then has to pick one. The policy
here is "most recently installed wins", read from the install prefix
mtime. It is a heuristic, so it lives behind a named, swappable function.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Sequence
from pathlib import Path

from daqcache.models.artifacts import InstalledArtifact

logger = logging.getLogger(__name__)

MtimeReader = Callable[[Path], float]
SelectionStrategy = Callable[[Sequence[InstalledArtifact]], InstalledArtifact]


def path_mtime(path: Path) -> float:
    """Modification time of an install prefix; missing paths sort first."""
    try:
        return os.stat(path).st_mtime
    except OSError:
        logger.warning("Cannot stat install prefix %s", path)
        return float("-inf")


def select_latest_artifact(
    artifacts: Sequence[InstalledArtifact],
    mtime: MtimeReader = path_mtime,
) -> InstalledArtifact:
    """Return the artifact with the newest install prefix.

    Ties on mtime go to the lexicographically largest hash so the choice is
    deterministic. Raises ``ValueError`` on an empty sequence.
    """
    if not artifacts:
        raise ValueError("no artifacts to select from")
    return max(artifacts, key=lambda a: (mtime(a.install_path), a.hash))
