"""Exception types raised by tilewave.

Rule and request errors are fatal and raised before any generation attempt
starts. ``ContradictionError`` is an expected, transient condition during the
search and never leaves the collapse engine. Only exhaustion and cancellation
are reported to callers.
"""

from __future__ import annotations

from tilewave.types import GridPos


class TileWaveError(Exception):
    """Base class for all tilewave errors."""

    pass


class InvalidRuleError(TileWaveError):
    """Raised when tile or adjacency data is malformed or inconsistent.

    Rule errors are detected while building the rule model and are never
    retried.
    """

    pass


class InvalidRequestError(TileWaveError, ValueError):
    """Raised when a generation request carries unusable values."""

    pass


class ContradictionError(TileWaveError):
    """Raised when a cell's candidate set becomes empty.

    Attributes:
        pos: The cell that ran out of candidates, if known.
    """

    def __init__(self, message: str, pos: GridPos | None = None) -> None:
        super().__init__(message)
        self.pos = pos


class AttemptsExhaustedError(TileWaveError):
    """Raised when every allowed attempt ended in a contradiction.

    Attributes:
        attempts_used: Attempts started before giving up.
        unsatisfiable: True when the search proved that no grid exists, so
            more attempts would not help.
    """

    def __init__(
        self, message: str, attempts_used: int, *, unsatisfiable: bool = False
    ) -> None:
        super().__init__(message)
        self.attempts_used = attempts_used
        self.unsatisfiable = unsatisfiable


class CancelledError(TileWaveError):
    """Raised when a solve was cancelled through its cancel event."""

    def __init__(self, message: str, attempts_used: int) -> None:
        super().__init__(message)
        self.attempts_used = attempts_used


class IncompleteError(TileWaveError):
    """Raised when reading out a grid that still has undecided cells."""

    pass
