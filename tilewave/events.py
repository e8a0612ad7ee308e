"""Solver event system for progress reporting and visualization.

The collapse engine publishes an event whenever it collapses a cell, hits a
contradiction, backtracks, restarts or finishes. Front ends subscribe to these
to animate a solve or to collect diagnostics.

USE FOR:
- Animating a solve step by step
- Progress bars and logging
- Collecting statistics across many solves

DO NOT USE FOR:
- Changing solver state (handlers see copies of positions and identifiers only)
- Operations that need immediate return values or synchronous confirmation
- Error handling or exception propagation

The event bus is fire-and-forget: publish an event without expecting return values
or confirmations. All handlers execute immediately (synchronously). A handler
that raises is logged and skipped, so subscribers can never change the outcome
of a solve.
"""

import logging
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass

from tilewave.types import GridPos, TileId

logger = logging.getLogger(__name__)


@dataclass
class SolverEvent:
    """Base class for all solver events."""

    attempt: int


@dataclass
class CellCollapsedEvent(SolverEvent):
    """A cell was committed to a single tile by a collapse decision."""

    pos: GridPos
    tile_id: TileId
    remaining: int  # Undecided cells left after this collapse and its propagation


@dataclass
class ContradictionEvent(SolverEvent):
    """Propagation emptied a cell's candidate set."""

    pos: GridPos | None


@dataclass
class BacktrackEvent(SolverEvent):
    """A snapshot was restored and the tile tried from it was ruled out."""

    pos: GridPos
    tile_id: TileId
    depth: int  # Snapshots left on the stack after the restore


@dataclass
class RestartEvent(SolverEvent):
    """The grid was reinitialized for a new attempt.

    ``attempt`` is the number of the attempt that is starting.
    """

    reason: str


@dataclass
class SolveFinishedEvent(SolverEvent):
    """The engine reached a terminal state."""

    success: bool
    state: str


class EventBus:
    """Simple event bus for publish/subscribe pattern."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable]] = {}

    def subscribe(self, event_type: type, handler: Callable) -> None:
        """Subscribe a handler to an event type."""
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Callable) -> None:
        """Unsubscribe a handler from an event type."""
        if event_type in self._handlers:
            with suppress(ValueError):
                self._handlers[event_type].remove(handler)

    def publish(self, event: SolverEvent) -> None:
        """Publish an event to all handlers of its type and its base types."""
        for event_type in type(event).__mro__:
            if event_type not in self._handlers:
                continue
            # Copy the handler list to allow safe subscribe/unsubscribe during dispatch
            for handler in list(self._handlers[event_type]):
                try:
                    handler(event)
                except Exception:
                    logger.exception(f"Error handling event {type(event).__name__}")


# Global event bus instance
_global_event_bus = EventBus()


# Public API functions


def get_global_event_bus() -> EventBus:
    """Return the bus engines publish to when none is given."""
    return _global_event_bus


def subscribe_to_event(event_type: type, handler: Callable) -> None:
    """Subscribe to an event type globally."""
    _global_event_bus.subscribe(event_type, handler)


def unsubscribe_from_event(event_type: type, handler: Callable) -> None:
    """Unsubscribe from an event type globally."""
    _global_event_bus.unsubscribe(event_type, handler)


def publish_event(event: SolverEvent) -> None:
    """Publish an event globally."""
    _global_event_bus.publish(event)


def reset_event_bus_for_testing() -> None:
    """Reset the global event bus. Use only in tests."""
    global _global_event_bus
    _global_event_bus = EventBus()
