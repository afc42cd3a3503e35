"""Framework-agnostic grid interaction core.

Selection and fill gestures, clipboard serialization, the visible row model,
virtual windowing and the per-cell editor state machine. Nothing in here talks
to a record store; the session (fleetgrid.services.grid_session) wires it up.
"""

from .clipboard import ClipboardPort, InMemoryClipboard, PendingPaste, parse_clipboard, serialize_range
from .fill import FillRange, plan_fill
from .selection import Direction, InteractionMode, SelectionCoord, SelectionEngine, SelectionRange, SelectionState

__all__ = [
    "ClipboardPort",
    "InMemoryClipboard",
    "PendingPaste",
    "parse_clipboard",
    "serialize_range",
    "FillRange",
    "plan_fill",
    "Direction",
    "InteractionMode",
    "SelectionCoord",
    "SelectionEngine",
    "SelectionRange",
    "SelectionState",
]
