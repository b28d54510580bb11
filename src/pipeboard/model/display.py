"""What the rendering layer receives for each pipeline."""

from pydantic import BaseModel, Field

from pipeboard.model.build import BuildStatus
from pipeboard.model.pipeline import PipelineState


class Palette(BaseModel):
    """Background colour per pipeline state."""

    grey: str = "#9b9b9b"
    blue: str = "#3498db"
    green: str = "#11c560"
    red: str = "#ed4b35"
    orange: str = "#f5a623"
    brown: str = "#8b572a"

    def color_for(self, state: PipelineState) -> str:
        return getattr(self, _STATE_COLORS[state])


_STATE_COLORS = {
    PipelineState.NO_FINISHED_BUILDS: "grey",
    PipelineState.PAUSED: "blue",
    PipelineState.ALL_PASSING: "green",
    PipelineState.HAS_FAILED: "red",
    PipelineState.HAS_ERRORED: "orange",
    PipelineState.HAS_ABORTED: "brown",
}


class JobNode(BaseModel):
    """Latest build of one job, linked from the pipeline card."""

    job: str
    status: BuildStatus
    build_name: str | None = None
    url: str | None = None

    @property
    def tooltip(self) -> str:
        return self.job


class DisplayDescriptor(BaseModel):
    """Rendered view of one pipeline."""

    pipeline: str
    team: str
    color_class: PipelineState
    status_label: str
    color: str
    elapsed_seconds: int = Field(ge=0)
    jobs: list[JobNode] = Field(default_factory=list)

    @property
    def footer(self) -> str:
        return format_elapsed(self.elapsed_seconds)


def format_elapsed(seconds: int) -> str:
    """Short duration text: ``42s``, ``3m 5s``, ``2h 10m``, ``4d 1h``."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    hours, mins = divmod(minutes, 60)
    days, hrs = divmod(hours, 24)
    if days:
        return f"{days}d {hrs}h"
    if hours:
        return f"{hours}h {mins}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
