"""Publish and batch result models — what the operator gets back."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from daqcache.models.stages import ErrorKind, PublishStage


class PublishResult(BaseModel):
    """Outcome of publishing one coordinate.

    ``error`` is ``None`` on success. Non-terminal problems (stale local
    index, stale mirror index) are listed in ``warnings`` and never set
    ``error``.
    """

    model_config = ConfigDict(frozen=True)

    coordinate: str
    stages_completed: list[PublishStage] = []
    pushed_count: int = 0
    already_cached: bool = False
    error: ErrorKind | None = None
    failed_stage: PublishStage | None = None
    message: str = ""
    log_path: str | None = None
    warnings: list[ErrorKind] = []
    selected_hash: str | None = None
    ambiguous_candidates: list[str] = []  # hashes considered when >1 matched

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchResult(BaseModel):
    """Ordered per-coordinate results of one batch run."""

    model_config = ConfigDict(frozen=True)

    suite: str = ""
    results: list[PublishResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def warnings(self) -> int:
        return sum(len(r.warnings) for r in self.results)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def summary_line(self) -> str:
        """Machine-parseable summary printed on stdout."""
        return f"succeeded={self.succeeded} failed={self.failed} warnings={self.warnings}"
