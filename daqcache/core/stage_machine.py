"""Per-coordinate publish state machine.

Enforces:
- Valid stage transitions only (VALID_TRANSITIONS table)
- Stages entered in the fixed Install -> ... -> IndexUpdate order
- A monotonically increasing pushed-hash counter
- Every transition recorded for the run's result

A ``PublishRun`` lives for exactly one coordinate and is then discarded;
nothing here is persisted or shared between coordinates.
"""

from __future__ import annotations

import logging

from daqcache.errors import InvalidTransitionError
from daqcache.models.results import PublishResult
from daqcache.models.stages import (
    STAGE_ORDER,
    VALID_TRANSITIONS,
    ErrorKind,
    PublishStage,
    StageTransition,
)

logger = logging.getLogger(__name__)


class PublishRun:
    """Transient state of one coordinate's publish attempt.

    Parameters
    ----------
    coordinate_label:
        Human-readable coordinate, used in log messages and the result.
    """

    def __init__(self, coordinate_label: str) -> None:
        self.coordinate_label = coordinate_label
        self.stage = PublishStage.PENDING
        self.pushed_hash_count = 0
        self.already_in_cache = False
        self.stages_completed: list[PublishStage] = []
        self.warnings: list[ErrorKind] = []
        self.transitions: list[StageTransition] = []
        self.error: ErrorKind | None = None
        self.failed_stage: PublishStage | None = None
        self.message = ""
        self.log_path: str | None = None
        self.selected_hash: str | None = None
        self.ambiguous_candidates: list[str] = []

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def advance(self, target: PublishStage, note: str | None = None) -> StageTransition:
        """Move to *target*, marking the current stage completed.

        Raises ``InvalidTransitionError`` if the move is not allowed.
        """
        allowed = VALID_TRANSITIONS.get(self.stage, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {self.coordinate_label} from {self.stage.value} "
                f"to {target.value}. Allowed: {sorted(s.value for s in allowed)}"
            )
        transition = StageTransition(from_stage=self.stage, to_stage=target, note=note)
        if target != PublishStage.FAILED and self.stage in STAGE_ORDER:
            self.stages_completed.append(self.stage)
        self.transitions.append(transition)
        logger.debug(
            "%s: %s -> %s", self.coordinate_label, self.stage.value, target.value
        )
        self.stage = target
        return transition

    def fail(self, kind: ErrorKind, message: str, log_path: str | None = None) -> None:
        """Terminal failure of the current stage."""
        failed_stage = self.stage
        self.advance(PublishStage.FAILED, note=kind.value)
        self.error = kind
        self.failed_stage = failed_stage
        self.message = message
        if log_path:
            self.log_path = log_path

    def warn(self, kind: ErrorKind) -> None:
        """Record a non-terminal problem with the current stage."""
        if not kind.is_warning:
            raise ValueError(f"{kind.value} is not a warning")
        self.warnings.append(kind)

    def record_push(self) -> None:
        self.pushed_hash_count += 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def result(self) -> PublishResult:
        """Freeze the run into its ``PublishResult``."""
        return PublishResult(
            coordinate=self.coordinate_label,
            stages_completed=list(self.stages_completed),
            pushed_count=self.pushed_hash_count,
            already_cached=self.already_in_cache,
            error=self.error,
            failed_stage=self.failed_stage,
            message=self.message,
            log_path=self.log_path,
            warnings=list(self.warnings),
            selected_hash=self.selected_hash,
            ambiguous_candidates=list(self.ambiguous_candidates),
        )
