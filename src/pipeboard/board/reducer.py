"""Dashboard state reducer.

Turns a pipeline snapshot into what the dashboard paints. The
reducer is pure: it reads the snapshot and the injected clock and
never mutates either.

State precedence, first match wins, over the whole outcome history:

1. paused                 -> paused
2. no finished build      -> no-finished-builds
3. any aborted build      -> has-aborted
4. any errored build      -> has-errored
5. any failed build       -> has-failed
6. otherwise              -> all-passing
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import TYPE_CHECKING

from pipeboard.core.clock import Clock
from pipeboard.model.build import BuildOutcome, BuildStatus
from pipeboard.model.display import DisplayDescriptor, JobNode, Palette
from pipeboard.model.pipeline import PipelineState

if TYPE_CHECKING:
    from pipeboard.model.pipeline import PipelineSnapshot

_PRECEDENCE = (
    (BuildStatus.ABORTED, PipelineState.HAS_ABORTED),
    (BuildStatus.ERRORED, PipelineState.HAS_ERRORED),
    (BuildStatus.FAILED, PipelineState.HAS_FAILED),
)

_DEFAULT_PALETTE = Palette()


def derive_state(
    paused: bool, outcomes: Iterable[BuildOutcome]
) -> PipelineState:
    """Pipeline state from the pause flag and outcome history."""
    if paused:
        return PipelineState.PAUSED

    seen = {outcome.status for outcome in outcomes if outcome.finished}
    if not seen:
        return PipelineState.NO_FINISHED_BUILDS

    for status, state in _PRECEDENCE:
        if status in seen:
            return state
    return PipelineState.ALL_PASSING


def elapsed_seconds(snapshot: PipelineSnapshot, clock: Clock) -> int:
    """Whole seconds since the state last changed, never negative."""
    delta = (clock.now() - snapshot.state_changed_at).total_seconds()
    return max(0, math.floor(delta))


def job_nodes(
    snapshot: PipelineSnapshot, base_url: str = ""
) -> list[JobNode]:
    """Latest build of each job, in order of first appearance."""
    latest: dict[str, BuildOutcome] = {}
    for outcome in snapshot.outcomes:
        if outcome.job is not None:
            latest[outcome.job] = outcome

    nodes = []
    for job, outcome in latest.items():
        url = None
        if outcome.build is not None:
            url = (
                f"{base_url.rstrip('/')}/teams/{snapshot.team}"
                f"/pipelines/{snapshot.name}/jobs/{job}"
                f"/builds/{outcome.build}"
            )
        nodes.append(JobNode(
            job=job,
            status=outcome.status,
            build_name=outcome.display_name,
            url=url,
        ))
    return nodes


def derive(
    snapshot: PipelineSnapshot,
    clock: Clock,
    palette: Palette | None = None,
    base_url: str = "",
) -> DisplayDescriptor:
    """Display descriptor for one pipeline."""
    state = derive_state(snapshot.paused, snapshot.outcomes)
    palette = palette or _DEFAULT_PALETTE
    return DisplayDescriptor(
        pipeline=snapshot.name,
        team=snapshot.team,
        color_class=state,
        status_label=state.label,
        color=palette.color_for(state),
        elapsed_seconds=elapsed_seconds(snapshot, clock),
        jobs=job_nodes(snapshot, base_url),
    )
