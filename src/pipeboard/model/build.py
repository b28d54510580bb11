"""Build status and outcome models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, field_validator


class BuildStatus(str, Enum):
    """Status of one build, as reported by the backend."""

    PENDING = "pending"
    STARTED = "started"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ERRORED = "errored"
    ABORTED = "aborted"

    @property
    def finished(self) -> bool:
        return self in _FINISHED

    @classmethod
    def from_label(cls, label: str | None) -> BuildStatus:
        """Parse a status label, accepting the job-style aliases.

        Empty or unknown labels count as pending so that they can
        never make a pipeline look finished.
        """
        if not label:
            return cls.PENDING
        key = str(label).strip().lower()
        try:
            return cls(_ALIASES.get(key, key))
        except ValueError:
            return cls.PENDING


_FINISHED = frozenset({
    BuildStatus.SUCCEEDED,
    BuildStatus.FAILED,
    BuildStatus.ERRORED,
    BuildStatus.ABORTED,
})

_ALIASES = {
    "passing": "succeeded",
    "passed": "succeeded",
    "failing": "failed",
    "erroring": "errored",
    "running": "started",
}


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps (e.g. from YAML) as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class BuildOutcome(BaseModel):
    """Result (or progress) of one execution attempt.

    `at` is left unset until the outcome is recorded on a pipeline,
    which stamps it with the recording time.
    """

    status: BuildStatus = BuildStatus.PENDING
    at: datetime | None = None
    job: str | None = None
    build: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        if isinstance(value, BuildStatus):
            return value
        return BuildStatus.from_label(value)

    @field_validator("at")
    @classmethod
    def _at_in_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    @field_validator("build", mode="before")
    @classmethod
    def _build_to_str(cls, value):
        if value is None:
            return None
        return str(value)

    @property
    def finished(self) -> bool:
        return self.status.finished

    @property
    def display_name(self) -> str | None:
        """Build name as the UI shows it, e.g. ``passing #1``."""
        if self.job is None or self.build is None:
            return None
        return f"{self.job} #{self.build}"

    def same_build(self, other: BuildOutcome) -> bool:
        """True when both outcomes describe the same job build."""
        return (
            self.job is not None
            and self.build is not None
            and self.job == other.job
            and self.build == other.build
        )
