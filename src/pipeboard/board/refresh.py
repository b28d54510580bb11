"""Scheduled re-evaluation of the dashboard."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable

from pipeboard.board.dashboard import Dashboard
from pipeboard.core.log import logger
from pipeboard.model.display import DisplayDescriptor
from pipeboard.model.pipeline import PipelineState

Publisher = Callable[[list[DisplayDescriptor]], None]


class Refresher:
    """Re-render the dashboard every `interval` seconds.

    Each tick optionally pulls fresh events (`pull`), renders every
    visible pipeline and hands the descriptors to `publish`. The
    loop runs as an asyncio task owned by this object; stop() (or
    leaving the async context) cancels it.
    """

    def __init__(
        self,
        dashboard: Dashboard,
        interval: float,
        publish: Publisher,
        pull: Callable[[], None] | None = None,
        team: str | None = None,
    ):
        if interval <= 0:
            raise ValueError(
                f"Refresh interval must be positive, got {interval}"
            )
        self.dashboard = dashboard
        self.interval = interval
        self.publish = publish
        self.pull = pull
        self.team = team
        self.ticks = 0
        self._last: dict[str, PipelineState] = {}
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> list[DisplayDescriptor]:
        """Run one evaluation and publish the result."""
        self.ticks += 1
        if self.pull is not None:
            self.pull()

        descriptors = self.dashboard.render(self.team)

        current = {d.pipeline: d.color_class for d in descriptors}
        for name, state in current.items():
            previous = self._last.get(name)
            if previous is not None and previous != state:
                logger.info(
                    "Refresh observed state change",
                    pipeline=name,
                    previous=previous.value,
                    state=state.value,
                )
        self._last = current

        logger.spew("Refresh tick", tick=self.ticks, pipelines=len(current))
        self.publish(descriptors)
        return descriptors

    async def _run(self, max_ticks: int | None) -> None:
        stop_at = None if max_ticks is None else self.ticks + max_ticks
        while stop_at is None or self.ticks < stop_at:
            try:
                self.tick()
            except Exception as e:
                # Keep ticking after a failed pull or publish
                logger.error("Refresh tick failed", error=str(e))
            if stop_at is not None and self.ticks >= stop_at:
                break
            await asyncio.sleep(self.interval)

    def start(self, max_ticks: int | None = None) -> asyncio.Task:
        """Schedule the refresh loop on the running event loop."""
        if self.running:
            raise RuntimeError("Refresher already running")
        self._task = asyncio.get_running_loop().create_task(
            self._run(max_ticks)
        )
        logger.debug("Refresher started", interval=self.interval)
        return self._task

    async def wait(self) -> None:
        """Wait for a bounded loop (see start(max_ticks)) to finish."""
        if self._task is not None:
            await self._task

    async def stop(self) -> None:
        """Cancel the loop and wait for it to unwind."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("Refresher stopped", ticks=self.ticks)

    async def __aenter__(self) -> Refresher:
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        await self.stop()
        return False
