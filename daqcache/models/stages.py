"""Publish stage state model — fixed, deterministic transitions."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class PublishStage(str, Enum):
    """Stages of a single coordinate's publish attempt."""

    PENDING = "pending"
    INSTALL = "install"
    REINDEX = "reindex"
    SPEC = "spec"
    HASH_DISCOVERY = "hash_discovery"
    PUSH = "push"
    INDEX_UPDATE = "index_update"
    DONE = "done"
    FAILED = "failed"


# Valid stage transitions, enforced by PublishRun.
# Reindex and index update never fail the run, so they have no FAILED edge.
VALID_TRANSITIONS: dict[PublishStage, set[PublishStage]] = {
    PublishStage.PENDING: {PublishStage.INSTALL},
    PublishStage.INSTALL: {PublishStage.REINDEX, PublishStage.FAILED},
    PublishStage.REINDEX: {PublishStage.SPEC},
    PublishStage.SPEC: {PublishStage.HASH_DISCOVERY, PublishStage.FAILED},
    PublishStage.HASH_DISCOVERY: {PublishStage.PUSH, PublishStage.FAILED},
    PublishStage.PUSH: {PublishStage.INDEX_UPDATE, PublishStage.FAILED},
    PublishStage.INDEX_UPDATE: {PublishStage.DONE},
    PublishStage.DONE: set(),  # terminal
    PublishStage.FAILED: set(),  # terminal
}

# Stages that do real work, in execution order.
STAGE_ORDER: list[PublishStage] = [
    PublishStage.INSTALL,
    PublishStage.REINDEX,
    PublishStage.SPEC,
    PublishStage.HASH_DISCOVERY,
    PublishStage.PUSH,
    PublishStage.INDEX_UPDATE,
]


class ErrorKind(str, Enum):
    """Why a coordinate failed, or what it warned about."""

    # terminal for the coordinate
    INSTALL_FAILED = "install_failed"
    SPEC_FAILED = "spec_failed"
    HASH_DISCOVERY_FAILED = "hash_discovery_failed"
    PUSH_FAILED = "push_failed"
    CONFIGURATION_ERROR = "configuration_error"
    ENVIRONMENT_FAILED = "environment_failed"
    # non-terminal
    REINDEX_WARNING = "reindex_warning"
    INDEX_UPDATE_WARNING = "index_update_warning"

    @property
    def is_warning(self) -> bool:
        return self in (ErrorKind.REINDEX_WARNING, ErrorKind.INDEX_UPDATE_WARNING)


class StageTransition(BaseModel):
    """Records a single stage transition of a publish run."""

    model_config = ConfigDict(frozen=True)

    from_stage: PublishStage
    to_stage: PublishStage
    note: str | None = None
