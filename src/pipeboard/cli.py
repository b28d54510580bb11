#!/usr/bin/env python3
"""Pipeboard CLI - render pipeline health from status events."""

import asyncio
import sys

from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from pipeboard.command.show import ShowCommand
from pipeboard.command.watch import WatchCommand
from pipeboard.core.config import State
from pipeboard.core.log import logger


class CliState(State):
    """Derive how a CI dashboard shows each pipeline: colour,
    status label, time since the last state change and links to
    the latest builds.

    Configuration sources (in priority order):
    1. Command-line arguments (--config.dashboard.team main)
    2. --include files, ./pipeboard.yaml, user config, defaults
    3. .env file
    4. Environment variables
       (PIPEBOARD_CONFIG__DASHBOARD__TEAM=main)
    """

    show: CliSubCommand[ShowCommand]
    watch: CliSubCommand[WatchCommand]

    def cli_cmd(self):
        """Dispatch to the active subcommand, or show help."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        # Closing the logger flushes file and OTLP sinks on exit
        with logger:
            exit_code = asyncio.run(subcommand.run_workflow(self))
            raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
