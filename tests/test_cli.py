"""Tests for the show and watch commands."""

import asyncio
import sys

import pytest

from pipeboard.command.show import (
    ShowCommand,
    apply_new_events,
    build_dashboard,
)
from pipeboard.board.dashboard import Dashboard, UnknownPipelineError
from pipeboard.board.refresh import Refresher
from pipeboard.command.watch import WatchCommand
from pipeboard.core.clock import ManualClock
from pipeboard.core.config import State
from pipeboard.model.pipeline import PipelineState

EVENTS = """\
events:
  - kind: register
    pipeline: some-pipeline
    team: main
  - kind: register
    pipeline: public-pipeline
    team: other
    public: true
  - kind: build
    pipeline: some-pipeline
    job: passing
    build: 1
    status: passing
  - kind: build
    pipeline: some-pipeline
    job: failing
    build: 1
    status: failing
"""


@pytest.fixture
def state(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "argv", ["pipeboard"])
    (tmp_path / "pipeboard.yaml").write_text(
        "config:\n"
        "  logger:\n"
        "    console:\n"
        "      enabled: false\n"
    )
    return State()


@pytest.fixture
def events_file(tmp_path):
    path = tmp_path / "events.yaml"
    path.write_text(EVENTS)
    return path


def test_show_prints_team_and_public_pipelines(state, events_file, capsys):
    command = ShowCommand(events=events_file, team="main")

    exit_code = asyncio.run(command.run_workflow(state))

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "main/some-pipeline  failed" in out
    assert "other/public-pipeline  pending" in out
    assert "passing #1 [succeeded]" in out
    assert "/teams/main/pipelines/some-pipeline/jobs/failing/builds/1" in out
    assert state.runtime.dashboard.status == "complete"


def test_show_without_team_hides_private_pipelines(state, events_file, capsys):
    asyncio.run(ShowCommand(events=events_file).run_workflow(state))

    published = state.runtime.dashboard.published
    assert [d.pipeline for d in published] == ["public-pipeline"]


def test_show_without_events_file_fails(state):
    exit_code = asyncio.run(ShowCommand().run_workflow(state))

    assert exit_code == 1
    assert state.runtime.dashboard.status == "failed"


def test_show_rejects_event_for_unknown_pipeline(state, tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("events:\n  - kind: pause\n    pipeline: ghost\n")

    exit_code = asyncio.run(ShowCommand(events=bad).run_workflow(state))

    assert exit_code == 1


def test_events_are_applied_once(state, events_file):
    build_dashboard(state)
    assert apply_new_events(state, events_file) == 4
    assert apply_new_events(state, events_file) == 0

    with open(events_file, "a") as f:
        f.write("  - kind: pause\n    pipeline: some-pipeline\n")

    assert apply_new_events(state, events_file) == 1
    board = state.runtime.dashboard.board
    assert board.snapshot("some-pipeline").state == PipelineState.PAUSED


def test_watch_runs_requested_ticks(state, events_file, capsys):
    command = WatchCommand(
        events=events_file, team="main", ticks=2, interval=0.01
    )

    exit_code = asyncio.run(command.run_workflow(state))

    assert exit_code == 0
    assert capsys.readouterr().out.count("main/some-pipeline") == 2
    assert state.runtime.dashboard.status == "complete"


def test_watch_without_events_file_fails(state):
    exit_code = asyncio.run(WatchCommand(ticks=1).run_workflow(state))

    assert exit_code == 1
    assert state.runtime.dashboard.status == "failed"


def test_watch_with_missing_events_file_fails(state, tmp_path, capsys):
    command = WatchCommand(
        events=tmp_path / "missing.yaml", ticks=1, interval=0.01
    )

    exit_code = asyncio.run(command.run_workflow(state))

    assert exit_code == 1
    assert state.runtime.dashboard.status == "failed"
    assert capsys.readouterr().out == ""


def test_rejected_event_is_consumed_once(state, tmp_path):
    path = tmp_path / "events.yaml"
    path.write_text(
        "events:\n"
        "  - kind: register\n"
        "    pipeline: p\n"
        "  - kind: build\n"
        "    pipeline: p\n"
        "    status: passing\n"
        "  - kind: pause\n"
        "    pipeline: ghost\n"
    )
    build_dashboard(state)
    clock = ManualClock()
    board = state.runtime.dashboard.board = Dashboard(clock=clock)

    with pytest.raises(UnknownPipelineError):
        apply_new_events(state, path)
    for _ in range(4):
        clock.advance(10)
        assert apply_new_events(state, path) == 0

    assert len(board.snapshot("p").outcomes) == 1
    assert state.runtime.dashboard.events_applied == 3

    with open(path, "a") as f:
        f.write("  - kind: pause\n    pipeline: p\n")

    assert apply_new_events(state, path) == 1
    assert board.snapshot("p").state == PipelineState.PAUSED


def test_refresh_after_rejected_event_keeps_elapsed_growing(state, tmp_path):
    path = tmp_path / "events.yaml"
    path.write_text(
        "events:\n"
        "  - kind: register\n"
        "    pipeline: p\n"
        "    public: true\n"
        "  - kind: pause\n"
        "    pipeline: p\n"
        "  - kind: unpause\n"
        "    pipeline: p\n"
        "  - kind: pause\n"
        "    pipeline: ghost\n"
    )
    build_dashboard(state)
    clock = ManualClock()
    board = state.runtime.dashboard.board = Dashboard(clock=clock)
    elapsed = []

    def publish(descriptors):
        elapsed.append(descriptors[0].elapsed_seconds)
        clock.advance(10)

    refresher = Refresher(
        board,
        0.001,
        publish=publish,
        pull=lambda: apply_new_events(state, path),
    )

    async def run():
        refresher.start(max_ticks=4)
        await refresher.wait()

    asyncio.run(run())

    assert elapsed == [0, 10, 20]
    assert state.runtime.dashboard.events_applied == 4
