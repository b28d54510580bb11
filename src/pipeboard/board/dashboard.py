"""Registry of pipeline snapshots fed by status events."""

from __future__ import annotations

import threading
from datetime import datetime

from pipeboard.board.reducer import derive
from pipeboard.core.clock import Clock, SystemClock
from pipeboard.core.log import logger
from pipeboard.model.build import BuildOutcome
from pipeboard.model.display import DisplayDescriptor, Palette
from pipeboard.model.event import PipelineEvent
from pipeboard.model.pipeline import PipelineSnapshot


class UnknownPipelineError(KeyError):
    """Operation on a pipeline that was never registered."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown pipeline: {self.name}"


class Dashboard:
    """Pipeline snapshots keyed by name.

    One writer at a time: every mutation and every read takes the
    same lock, so renders never observe a half-applied event.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        palette: Palette | None = None,
        base_url: str = "",
    ):
        self.clock = clock or SystemClock()
        self.palette = palette or Palette()
        self.base_url = base_url
        self._pipelines: dict[str, PipelineSnapshot] = {}
        self._lock = threading.RLock()

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._pipelines

    def __len__(self) -> int:
        with self._lock:
            return len(self._pipelines)

    def register(
        self,
        name: str,
        team: str = "main",
        public: bool = False,
        paused: bool = False,
        at: datetime | None = None,
    ) -> PipelineSnapshot:
        """Start tracking a pipeline; returns the existing one if known."""
        with self._lock:
            existing = self._pipelines.get(name)
            if existing is not None:
                return existing

            snapshot = PipelineSnapshot(
                name=name,
                team=team,
                public=public,
                paused=paused,
                state_changed_at=at or self.clock.now(),
            )
            self._pipelines[name] = snapshot
            logger.debug(
                "Registered pipeline",
                pipeline=name, team=team, state=snapshot.state.value,
            )
            return snapshot

    def snapshot(self, name: str) -> PipelineSnapshot:
        with self._lock:
            try:
                return self._pipelines[name]
            except KeyError:
                raise UnknownPipelineError(name) from None

    def record(
        self,
        name: str,
        outcome: BuildOutcome,
        at: datetime | None = None,
    ) -> bool:
        """Record a build outcome, registering the pipeline if new.

        Returns:
            True if the pipeline state changed
        """
        with self._lock:
            if name not in self._pipelines:
                self.register(name, at=at)
            snapshot = self._pipelines[name]
            changed = snapshot.record(outcome, at or self.clock.now())
            self._log_change(snapshot, changed)
            return changed

    def pause(self, name: str, at: datetime | None = None) -> bool:
        with self._lock:
            snapshot = self.snapshot(name)
            changed = snapshot.pause(at or self.clock.now())
            self._log_change(snapshot, changed)
            return changed

    def unpause(self, name: str, at: datetime | None = None) -> bool:
        with self._lock:
            snapshot = self.snapshot(name)
            changed = snapshot.unpause(at or self.clock.now())
            self._log_change(snapshot, changed)
            return changed

    def remove(self, name: str) -> None:
        with self._lock:
            if self._pipelines.pop(name, None) is None:
                raise UnknownPipelineError(name)
            logger.debug("Removed pipeline", pipeline=name)

    def apply(self, event: PipelineEvent) -> bool:
        """Apply one status event.

        Returns:
            True if the pipeline state changed

        Raises:
            UnknownPipelineError: pause/unpause/remove of an
                unregistered pipeline
            ValueError: Unknown event kind
        """
        at = event.at or self.clock.now()
        if event.kind == "register":
            with self._lock:
                current = self._pipelines.get(event.pipeline)
                known = current is not None
                if known and (
                    current.team != event.team
                    or current.public != event.public
                ):
                    logger.debug(
                        "Ignoring register for known pipeline",
                        pipeline=event.pipeline,
                        team=current.team,
                        public=current.public,
                        event_team=event.team,
                        event_public=event.public,
                    )
                self.register(
                    event.pipeline,
                    team=event.team,
                    public=event.public,
                    at=at,
                )
            return not known
        if event.kind == "build":
            return self.record(event.pipeline, event.outcome(at), at=at)
        if event.kind == "pause":
            return self.pause(event.pipeline, at=at)
        if event.kind == "unpause":
            return self.unpause(event.pipeline, at=at)
        if event.kind == "remove":
            self.remove(event.pipeline)
            return True
        raise ValueError(f"Unknown event kind: {event.kind}")

    def visible(self, team: str | None = None) -> list[PipelineSnapshot]:
        """Public pipelines, plus every pipeline of `team` if given."""
        with self._lock:
            return sorted(
                (
                    snapshot for snapshot in self._pipelines.values()
                    if snapshot.public
                    or (team is not None and snapshot.team == team)
                ),
                key=lambda s: (s.team, s.name),
            )

    def render(self, team: str | None = None) -> list[DisplayDescriptor]:
        """Descriptors for everything `team` may see."""
        with self._lock:
            return [
                derive(
                    snapshot,
                    self.clock,
                    palette=self.palette,
                    base_url=self.base_url,
                )
                for snapshot in self.visible(team)
            ]

    def _log_change(self, snapshot: PipelineSnapshot, changed: bool):
        if changed:
            logger.info(
                "Pipeline state changed",
                pipeline=snapshot.name,
                state=snapshot.state.value,
            )
