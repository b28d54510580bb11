"""Watch command - keep the dashboard fresh on a fixed interval."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from pipeboard.board.refresh import Refresher
from pipeboard.command.show import (
    apply_new_events,
    build_dashboard,
    format_descriptor,
    resolve_events_file,
)
from pipeboard.core.log import logger
from pipeboard.model.display import DisplayDescriptor

if TYPE_CHECKING:
    from pipeboard.core.config import State


class WatchCommand(BaseModel):
    """Re-read the events file every refresh interval and print
    the dashboard after each pass. Runs until interrupted unless
    --ticks is given.
    """

    events: Path | None = Field(
        default=None,
        description="YAML events file (defaults to config.dashboard.events_file)",
    )
    team: str | None = Field(
        default=None,
        description="Also show this team's private pipelines",
    )
    ticks: int | None = Field(
        default=None,
        ge=1,
        description="Stop after this many refreshes",
    )
    interval: float | None = Field(
        default=None,
        gt=0,
        description="Override config.dashboard.refresh_interval (seconds)",
    )

    async def run_workflow(self, state: State) -> int:
        """Run the refresh loop.

        Returns:
            Exit code (0=success, 1=bad input)
        """
        runtime = state.runtime.dashboard
        try:
            events_file = resolve_events_file(state, self.events)
            build_dashboard(state)
            apply_new_events(state, events_file)
        except (ValueError, KeyError) as e:
            logger.error("Cannot load events", error=str(e))
            runtime.status = "failed"
            return 1

        def publish(descriptors: list[DisplayDescriptor]) -> None:
            runtime.published = descriptors
            print("\n".join(format_descriptor(d) for d in descriptors))
            print()

        refresher = Refresher(
            runtime.board,
            interval=self.interval or state.config.dashboard.refresh_interval,
            publish=publish,
            pull=lambda: apply_new_events(state, events_file),
            team=self.team or state.config.dashboard.team,
        )

        runtime.status = "running"
        refresher.start(max_ticks=self.ticks)
        try:
            await refresher.wait()
        finally:
            await refresher.stop()

        runtime.status = "complete"
        logger.info("Watch finished", ticks=refresher.ticks)
        return 0
