"""Pipeline state and snapshot models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from pipeboard.model.build import BuildOutcome, as_utc


class PipelineState(str, Enum):
    """Health of a pipeline as the dashboard shows it."""

    NO_FINISHED_BUILDS = "no-finished-builds"
    PAUSED = "paused"
    ALL_PASSING = "all-passing"
    HAS_FAILED = "has-failed"
    HAS_ERRORED = "has-errored"
    HAS_ABORTED = "has-aborted"

    @property
    def label(self) -> str:
        """Status text shown on the pipeline card."""
        return _LABELS[self]


_LABELS = {
    PipelineState.NO_FINISHED_BUILDS: "pending",
    PipelineState.PAUSED: "paused",
    PipelineState.ALL_PASSING: "succeeded",
    PipelineState.HAS_FAILED: "failed",
    PipelineState.HAS_ERRORED: "errored",
    PipelineState.HAS_ABORTED: "aborted",
}


class PipelineSnapshot(BaseModel):
    """Everything the dashboard knows about one pipeline.

    `state` and `state_changed_at` are kept in step with `paused`
    and `outcomes` by the mutating methods below; mutate through
    them rather than assigning the fields directly.
    """

    name: str
    team: str = "main"
    public: bool = False
    paused: bool = False
    outcomes: list[BuildOutcome] = Field(default_factory=list)
    state: PipelineState = PipelineState.NO_FINISHED_BUILDS
    state_changed_at: datetime

    @field_validator("state_changed_at")
    @classmethod
    def _changed_at_in_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def model_post_init(self, __context) -> None:
        from pipeboard.board.reducer import derive_state

        self.state = derive_state(self.paused, self.outcomes)

    def record(self, outcome: BuildOutcome, at: datetime) -> bool:
        """Add or update a build outcome.

        An outcome for a (job, build) pair already present replaces
        the earlier entry in place, keeping its execution slot. An
        outcome without a timestamp is stamped with `at`.

        Returns:
            True if the pipeline state changed
        """
        if outcome.at is None:
            outcome = outcome.model_copy(update={"at": at})
        for i, existing in enumerate(self.outcomes):
            if existing.same_build(outcome):
                self.outcomes[i] = outcome
                break
        else:
            self.outcomes.append(outcome)
        return self._settle(at)

    def pause(self, at: datetime) -> bool:
        self.paused = True
        return self._settle(at)

    def unpause(self, at: datetime) -> bool:
        self.paused = False
        return self._settle(at)

    def _settle(self, at: datetime) -> bool:
        """Recompute state; stamp the change time on transition."""
        from pipeboard.board.reducer import derive_state

        new_state = derive_state(self.paused, self.outcomes)
        if new_state == self.state:
            return False
        self.state = new_state
        self.state_changed_at = at
        return True
