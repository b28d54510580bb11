"""Pytest configuration and fixtures for pipeboard tests."""

import itertools
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from pipeboard.board.dashboard import Dashboard
from pipeboard.core.clock import ManualClock
from pipeboard.core.log import ConsoleSink, setup_logger
from pipeboard.model.build import BuildOutcome, BuildStatus
from pipeboard.model.pipeline import PipelineSnapshot

_team_numbers = itertools.count(1)


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Console-only logging for the whole test session.

    Nothing is sent to logfire.dev.
    """
    setup_logger(
        log_root=Path(tempfile.gettempdir()) / "pipeboard-tests",
        service_name="test",
        console=ConsoleSink(level="debug"),
    )


@dataclass
class BoardContext:
    """Everything one dashboard scenario works with.

    Each test gets its own team, clock and dashboard, with
    `some-pipeline` registered and unpaused.
    """

    clock: ManualClock
    dashboard: Dashboard
    team: str
    pipeline: str = "some-pipeline"
    _builds: dict[str, int] = field(default_factory=dict)

    @property
    def snapshot(self) -> PipelineSnapshot:
        return self.dashboard.snapshot(self.pipeline)

    def trigger(self, job: str, status: str | BuildStatus) -> BuildOutcome:
        """Run `job` to completion with the given status.

        Every build takes one simulated second.
        """
        number = self._builds.get(job, 0) + 1
        self._builds[job] = number
        self.clock.advance(1)
        outcome = BuildOutcome(
            status=status, at=self.clock.now(), job=job, build=number
        )
        self.dashboard.record(self.pipeline, outcome)
        return outcome

    def start(self, job: str) -> BuildOutcome:
        return self.trigger(job, BuildStatus.STARTED)

    def abort(self, job: str, build: int) -> BuildOutcome:
        outcome = BuildOutcome(
            status=BuildStatus.ABORTED,
            at=self.clock.now(),
            job=job,
            build=build,
        )
        self.dashboard.record(self.pipeline, outcome)
        return outcome

    def render(self):
        """Descriptor for `some-pipeline` as the team sees it."""
        (descriptor,) = [
            d for d in self.dashboard.render(self.team)
            if d.pipeline == self.pipeline
        ]
        return descriptor


@pytest.fixture
def board_ctx():
    """Fresh team with `some-pipeline` set and unpaused."""
    clock = ManualClock()
    dashboard = Dashboard(clock=clock)
    team = f"test-team-{next(_team_numbers)}"
    ctx = BoardContext(clock=clock, dashboard=dashboard, team=team)
    dashboard.register(ctx.pipeline, team=team, paused=True)
    dashboard.unpause(ctx.pipeline)
    return ctx
