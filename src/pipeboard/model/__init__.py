"""Pipeline, build and display models."""

from pipeboard.model.build import BuildOutcome, BuildStatus
from pipeboard.model.display import DisplayDescriptor, JobNode, Palette
from pipeboard.model.event import EventLog, PipelineEvent
from pipeboard.model.pipeline import PipelineSnapshot, PipelineState

__all__ = [
    "BuildOutcome",
    "BuildStatus",
    "DisplayDescriptor",
    "EventLog",
    "JobNode",
    "Palette",
    "PipelineEvent",
    "PipelineSnapshot",
    "PipelineState",
]
