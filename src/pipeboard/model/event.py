"""Pipeline status events and the YAML event log."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from pipeboard.model.build import BuildOutcome, BuildStatus, as_utc

EventKind = Literal["register", "build", "pause", "unpause", "remove"]


class PipelineEvent(BaseModel):
    """One change reported by the status-collection system."""

    kind: EventKind
    pipeline: str
    team: str = "main"
    public: bool = False
    job: str | None = None
    build: str | int | None = None
    status: str | None = None
    at: datetime | None = None

    @field_validator("at")
    @classmethod
    def _at_in_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    def outcome(self, default_at: datetime) -> BuildOutcome:
        """Build outcome carried by a `build` event."""
        return BuildOutcome(
            status=BuildStatus.from_label(self.status),
            at=self.at or default_at,
            job=self.job,
            build=self.build,
        )


class EventLog(BaseModel):
    """Ordered list of events, as stored on disk."""

    events: list[PipelineEvent] = Field(default_factory=list)

    @classmethod
    def load(cls, path: Path) -> EventLog:
        """Load an event log from a YAML file.

        Raises:
            ValueError: If the file cannot be read or is not a
                mapping with an ``events`` list
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Cannot read events file {path}: {e}") from e

        if data is None:
            return cls()
        if not isinstance(data, dict) or not isinstance(
            data.get("events", []), list
        ):
            raise ValueError(
                f"Events file {path} must be a mapping with an "
                f"'events' list"
            )
        return cls.model_validate(data)
