"""CLI command modules for pipeboard."""

from pipeboard.command.show import ShowCommand
from pipeboard.command.watch import WatchCommand

__all__ = ["ShowCommand", "WatchCommand"]
