"""Dashboard state: reducer, registry and refresh loop."""

from pipeboard.board.dashboard import Dashboard, UnknownPipelineError
from pipeboard.board.reducer import derive, derive_state
from pipeboard.board.refresh import Refresher

__all__ = [
    "Dashboard",
    "Refresher",
    "UnknownPipelineError",
    "derive",
    "derive_state",
]
