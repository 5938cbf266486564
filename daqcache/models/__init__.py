"""daqcache data models — all Pydantic v2, all frozen (immutable)."""

from daqcache.models.artifacts import InstalledArtifact, PushOutcome, PushResult
from daqcache.models.config import BatchEntry, PublishOptions, split_entries
from daqcache.models.coordinate import CompilerSpec, PackageCoordinate, format_qualifiers
from daqcache.models.mirror import COMPILER_EPOCHS, MirrorTarget, compiler_epoch
from daqcache.models.results import BatchResult, PublishResult
from daqcache.models.stages import (
    STAGE_ORDER,
    VALID_TRANSITIONS,
    ErrorKind,
    PublishStage,
    StageTransition,
)

__all__ = [
    # coordinate
    "CompilerSpec",
    "PackageCoordinate",
    "format_qualifiers",
    # artifacts
    "InstalledArtifact",
    "PushOutcome",
    "PushResult",
    # mirror
    "COMPILER_EPOCHS",
    "MirrorTarget",
    "compiler_epoch",
    # stages
    "PublishStage",
    "ErrorKind",
    "StageTransition",
    "VALID_TRANSITIONS",
    "STAGE_ORDER",
    # results
    "PublishResult",
    "BatchResult",
    # config
    "BatchEntry",
    "PublishOptions",
    "split_entries",
]
