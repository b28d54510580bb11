"""Dashboard states, one scenario per pipeline condition."""

import asyncio
import re

from pipeboard.board.refresh import Refresher
from pipeboard.model.display import Palette
from pipeboard.model.pipeline import PipelineState

palette = Palette()


def footer_seconds(descriptor) -> int:
    return int(re.search(r"(\d+)s", descriptor.footer).group(1))


def test_no_finished_builds_is_grey(board_ctx):
    descriptor = board_ctx.render()

    assert descriptor.pipeline == "some-pipeline"
    assert descriptor.status_label == "pending"
    assert descriptor.color_class == PipelineState.NO_FINISHED_BUILDS
    assert descriptor.color == palette.grey


def test_paused_is_blue(board_ctx):
    board_ctx.dashboard.pause("some-pipeline")

    descriptor = board_ctx.render()

    assert descriptor.status_label == "paused"
    assert descriptor.color_class == PipelineState.PAUSED
    assert descriptor.color == palette.blue


def test_only_passing_builds_is_green(board_ctx):
    board_ctx.trigger("passing", "passing")

    descriptor = board_ctx.render()

    assert descriptor.color_class == PipelineState.ALL_PASSING
    assert descriptor.color == palette.green


def test_any_failed_build_is_red(board_ctx):
    board_ctx.trigger("passing", "passing")
    board_ctx.trigger("failing", "failing")

    assert board_ctx.render().color == palette.red


def test_any_errored_build_is_orange(board_ctx):
    board_ctx.trigger("passing", "passing")
    board_ctx.trigger("erroring", "erroring")

    assert board_ctx.render().color == palette.orange


def test_any_aborted_build_is_brown(board_ctx):
    board_ctx.trigger("passing", "passing")
    board_ctx.start("running")
    board_ctx.abort("running", 1)

    descriptor = board_ctx.render()

    assert descriptor.color == palette.brown
    # The aborted build replaced the running one in place
    assert len(board_ctx.snapshot.outcomes) == 2


def test_auto_refresh_reflects_state_changes(board_ctx):
    board_ctx.trigger("passing", "passing")
    published = []

    refresher = Refresher(
        board_ctx.dashboard,
        interval=5,
        publish=published.append,
        team=board_ctx.team,
    )

    refresher.tick()
    board_ctx.trigger("failing", "failing")
    refresher.tick()

    assert [batch[0].color for batch in published] == [
        palette.green,
        palette.red,
    ]


def test_auto_refresh_loop_picks_up_new_builds(board_ctx):
    board_ctx.trigger("passing", "passing")
    colors = []

    def pull():
        if len(colors) == 1:
            board_ctx.trigger("failing", "failing")

    def publish(descriptors):
        colors.append(descriptors[0].color)

    refresher = Refresher(
        board_ctx.dashboard,
        interval=0.01,
        publish=publish,
        pull=pull,
        team=board_ctx.team,
    )

    async def run():
        refresher.start(max_ticks=2)
        await refresher.wait()

    asyncio.run(run())

    assert colors == [palette.green, palette.red]


def test_time_since_last_state_change(board_ctx):
    board_ctx.trigger("passing", "passing")
    board_ctx.clock.advance(5)

    first = board_ctx.render()
    assert first.color == palette.green
    duration1 = footer_seconds(first)

    board_ctx.trigger("passing", "passing")
    board_ctx.clock.advance(5)
    duration2 = footer_seconds(board_ctx.render())

    assert duration2 >= duration1

    board_ctx.trigger("failing", "failing")
    board_ctx.clock.advance(5)
    third = board_ctx.render()

    assert third.color == palette.red
    assert footer_seconds(third) < duration2


def test_links_to_specific_builds(board_ctx):
    board_ctx.trigger("passing", "passing")

    (node,) = board_ctx.render().jobs

    assert node.tooltip == "passing"
    assert node.build_name == "passing #1"
    assert node.url == (
        f"/teams/{board_ctx.team}/pipelines/some-pipeline"
        f"/jobs/passing/builds/1"
    )
