"""Show command - replay events and print the dashboard once."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from pipeboard.board.dashboard import Dashboard
from pipeboard.core.clock import SystemClock
from pipeboard.core.log import logger
from pipeboard.model.display import DisplayDescriptor
from pipeboard.model.event import EventLog

if TYPE_CHECKING:
    from pipeboard.core.config import State


def build_dashboard(state: State) -> Dashboard:
    """Create the runtime Dashboard from configuration."""
    board = Dashboard(
        clock=SystemClock(),
        palette=state.config.palette,
        base_url=state.config.dashboard.base_url,
    )
    state.runtime.dashboard.board = board
    state.runtime.dashboard.events_applied = 0
    return board


def apply_new_events(state: State, events_file: Path) -> int:
    """Apply events appended to the file since the last call.

    The events file is treated as append-only; the count of events
    already consumed lives in runtime state and advances one event at
    a time. An event the dashboard rejects is consumed too, so a later
    call resumes after it and never replays what came before.

    Returns:
        Number of events applied by this call

    Raises:
        KeyError, ValueError: An event was rejected. Events before it
            stay applied.
    """
    runtime = state.runtime.dashboard
    events = EventLog.load(events_file).events
    applied = 0
    for event in events[runtime.events_applied:]:
        runtime.events_applied += 1
        try:
            runtime.board.apply(event)
        except (KeyError, ValueError) as e:
            logger.warning(
                "Skipping rejected event",
                index=runtime.events_applied - 1,
                kind=event.kind,
                pipeline=event.pipeline,
                error=str(e),
            )
            raise
        applied += 1
    if applied:
        logger.debug("Applied events", count=applied, file=str(events_file))
    return applied


def format_descriptor(descriptor: DisplayDescriptor) -> str:
    lines = [
        f"{descriptor.team}/{descriptor.pipeline}  "
        f"{descriptor.status_label:<9} {descriptor.footer:>7}  "
        f"{descriptor.color}"
    ]
    for node in descriptor.jobs:
        name = node.build_name or node.job
        link = f"  {node.url}" if node.url else ""
        lines.append(f"    {name} [{node.status.value}]{link}")
    return "\n".join(lines)


def resolve_events_file(state: State, override: Path | None) -> Path:
    events_file = override or state.config.dashboard.events_file
    if events_file is None:
        raise ValueError(
            "No events file given; use --events or "
            "config.dashboard.events_file"
        )
    return events_file


class ShowCommand(BaseModel):
    """Replay a pipeline events file and print each visible pipeline:
    status label, time since the last state change and links to
    the latest build of every job.
    """

    events: Path | None = Field(
        default=None,
        description="YAML events file (defaults to config.dashboard.events_file)",
    )
    team: str | None = Field(
        default=None,
        description="Also show this team's private pipelines",
    )

    async def run_workflow(self, state: State) -> int:
        """Run the show command.

        Returns:
            Exit code (0=success, 1=bad input)
        """
        runtime = state.runtime.dashboard
        runtime.status = "running"
        try:
            events_file = resolve_events_file(state, self.events)
            build_dashboard(state)
            apply_new_events(state, events_file)
        except (ValueError, KeyError) as e:
            logger.error("Cannot load events", error=str(e))
            runtime.status = "failed"
            return 1

        team = self.team or state.config.dashboard.team
        runtime.published = runtime.board.render(team)
        for descriptor in runtime.published:
            print(format_descriptor(descriptor))

        runtime.status = "complete"
        logger.info(
            "Dashboard rendered", pipelines=len(runtime.published)
        )
        return 0
