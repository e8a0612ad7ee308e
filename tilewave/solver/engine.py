"""Collapse engine: the Wave Function Collapse state machine.

The engine owns one grid and drives it through these states::

    UNCOLLAPSED -> PROPAGATING -> COLLAPSED -> UNCOLLAPSED ...
                                \\-> CONTRADICTED -> BACKTRACKING -> PROPAGATING
                                                  \\-> RESTARTING -> PROPAGATING
                                                  \\-> FAILED

with DONE, FAILED and CANCELLED terminal.

Each attempt starts from a fully unconstrained grid, applies the request's
border and cell constraints, and propagates once over every cell. It then
repeatedly:

1. Picks the undecided cell with minimum weighted entropy. Cells tied within
   ``config.ENTROPY_TIE_TOLERANCE`` are listed in row-major order and one is
   chosen uniformly with the attempt's RNG.
2. Pushes a snapshot, then collapses the cell to one candidate chosen by weight.
3. Propagates to a fixed point.

On contradiction the most recent snapshot is restored and the tile tried from
it is ruled out. If no snapshot is left, the attempt is abandoned and the next
one starts with a fresh RNG stream derived from the master seed and the
attempt number, so a fixed seed always produces the same grid.

When the search can prove that no grid exists (the initial propagation
contradicts, or backtracking exhausted every choice without losing any
snapshot) the engine fails right away instead of burning more attempts.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, fields
from enum import Enum, auto
from random import Random

import numpy as np

from tilewave.errors import (
    AttemptsExhaustedError,
    CancelledError,
    ContradictionError,
    IncompleteError,
)
from tilewave.events import (
    BacktrackEvent,
    CellCollapsedEvent,
    ContradictionEvent,
    EventBus,
    RestartEvent,
    SolveFinishedEvent,
    SolverEvent,
    publish_event,
)
from tilewave.rules.model import RuleModel
from tilewave.rules.sides import OPPOSITE_DIR
from tilewave.solver.grid import Grid, GridState
from tilewave.solver.observer import extract
from tilewave.solver.propagator import PropagationQueue, propagate
from tilewave.solver.request import (
    GenerationRequest,
    resolve_tile_mask,
    resolve_weights,
)
from tilewave.types import GridPos, TileGrid
from tilewave.util.rng import RNGProvider, attempt_domain

logger = logging.getLogger(__name__)


class SolverState(Enum):
    """States of the collapse engine."""

    UNCOLLAPSED = auto()
    PROPAGATING = auto()
    COLLAPSED = auto()
    CONTRADICTED = auto()
    BACKTRACKING = auto()
    RESTARTING = auto()
    DONE = auto()
    FAILED = auto()
    CANCELLED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (SolverState.DONE, SolverState.FAILED, SolverState.CANCELLED)


@dataclass(frozen=True)
class Snapshot:
    """Grid state captured right before a collapse decision.

    Attributes:
        state: Frozen copy of the candidate sets.
        pos: The cell that was collapsed.
        tile_index: The tile it was collapsed to.
    """

    state: GridState
    pos: GridPos
    tile_index: int


@dataclass
class SolverStats:
    """Counters accumulated over a solve."""

    attempts: int = 0
    collapses: int = 0
    contradictions: int = 0
    backtracks: int = 0
    restarts: int = 0
    propagation_steps: int = 0

    def merge(self, other: SolverStats) -> SolverStats:
        return SolverStats(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )


class CollapseEngine:
    """Runs one generation request against a rule model.

    Use ``run()`` to solve in one call, or ``iter_steps()`` / ``step()`` to
    observe every state transition (for animation). Observing the steps does
    not change the result for a fixed seed.
    """

    def __init__(
        self,
        rules: RuleModel,
        request: GenerationRequest,
        *,
        cancel_event: threading.Event | None = None,
        event_bus: EventBus | None = None,
        first_attempt: int = 0,
    ):
        """Initialize the engine and start the first attempt.

        Args:
            rules: The precomputed rule model.
            request: Grid size, weights, seed and search limits.
            cancel_event: Set it to stop the solve at the next collapse decision.
            event_bus: Bus for solver events; the global bus when None.
            first_attempt: Number of the first attempt. Attempt numbers select
                the RNG stream, so an engine started at ``k`` reproduces attempt
                ``k`` of an engine started at 0.

        Raises:
            InvalidRequestError: If the request does not fit the rule model.
        """
        request.validate()

        self.rules = rules
        self.request = request
        self.width = request.width
        self.height = request.height

        self.weights = resolve_weights(rules, request.tile_weights)
        self._border_masks = {
            direction: rules.allowed_neighbors(
                resolve_tile_mask(rules, tile_ids, f"{direction} border"),
                OPPOSITE_DIR[direction],
            )
            for direction, tile_ids in request.border.items()
        }
        self._constraint_masks = {
            pos: resolve_tile_mask(rules, tile_ids, f"constraint at {pos}")
            for pos, tile_ids in request.constraints.items()
        }

        self.grid = Grid.initialize(self.width, self.height, rules, self.weights)
        self.stats = SolverStats()
        self.state = SolverState.PROPAGATING

        self._rng_provider = RNGProvider(request.random_seed)
        self._rng: Random = self._rng_provider.get(attempt_domain(first_attempt))
        self._cancel_event = cancel_event
        self._event_bus = event_bus

        self._first_attempt = first_attempt
        self.attempt = first_attempt
        self._queue = PropagationQueue()
        self._snapshots: deque[Snapshot] = deque(maxlen=request.max_snapshot_depth)
        self._snapshots_dropped = False
        self._backtracks_this_attempt = 0

        # Candidate sets after the constraint pass; identical for every attempt
        self._initial_state: GridState | None = None
        self._initial_propagation = True
        self._last_decision: Snapshot | None = None
        self.unsatisfiable = False

        self._begin_attempt()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def attempts_used(self) -> int:
        return self.attempt - self._first_attempt + 1

    def step(self) -> SolverState:
        """Advance the state machine by one transition and return the new state."""
        match self.state:
            case SolverState.UNCOLLAPSED:
                self._observe()
            case SolverState.PROPAGATING:
                self._propagate()
            case SolverState.COLLAPSED:
                self.state = SolverState.UNCOLLAPSED
            case SolverState.CONTRADICTED:
                self._recover()
            case SolverState.BACKTRACKING:
                self._backtrack()
            case SolverState.RESTARTING:
                self._restart()
            case _:
                pass
        return self.state

    def iter_steps(self) -> Iterator[SolverState]:
        """Yield the state after every transition until a terminal state."""
        while not self.state.is_terminal:
            yield self.step()

    def run(self) -> TileGrid:
        """Solve to completion and return the grid as rows of tile ids.

        Raises:
            AttemptsExhaustedError: If every attempt failed, or no grid exists.
            CancelledError: If the cancel event was set.
        """
        for _ in self.iter_steps():
            pass
        return self.result()

    def result(self) -> TileGrid:
        """Return the solved grid, or raise if the solve did not finish with one."""
        if self.state is SolverState.CANCELLED:
            raise CancelledError("Generation cancelled", self.attempts_used)
        if self.state is SolverState.FAILED:
            if self.unsatisfiable:
                message = "No grid satisfies the rules and constraints"
            else:
                message = f"Generation failed after {self.attempts_used} attempt(s)"
            raise AttemptsExhaustedError(
                message, self.attempts_used, unsatisfiable=self.unsatisfiable
            )
        if self.state is not SolverState.DONE:
            raise IncompleteError(f"Solve has not finished (state {self.state.name})")
        return extract(self.grid)

    # -------------------------------------------------------------------------
    # State handlers
    # -------------------------------------------------------------------------

    def _observe(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            self._finish(SolverState.CANCELLED)
            return

        if self.grid.contradiction_pos() is not None:
            self.state = SolverState.CONTRADICTED
            return

        cells = self.grid.min_entropy_cells()
        if not cells:
            self._finish(SolverState.DONE)
            return

        pos = cells[0] if len(cells) == 1 else self._rng.choice(cells)
        x, y = pos
        candidates = np.flatnonzero(self.grid.wave[x, y]).tolist()
        weights = self.weights[candidates].tolist()
        tile_index = self._rng.choices(candidates, weights=weights)[0]

        snapshot = Snapshot(self.grid.snapshot(), pos, tile_index)
        if self.request.backtrack_enabled:
            if len(self._snapshots) == self._snapshots.maxlen:
                self._snapshots_dropped = True
            self._snapshots.append(snapshot)
        self._last_decision = snapshot

        self.grid.collapse_cell(pos, self.rules.tile_ids[tile_index])
        self.stats.collapses += 1
        self._queue.clear()
        self._queue.push(pos)
        self.state = SolverState.PROPAGATING

    def _propagate(self) -> None:
        try:
            self.stats.propagation_steps += propagate(self._queue, self.grid, self.rules)
        except ContradictionError as exc:
            self.stats.contradictions += 1
            self._publish(ContradictionEvent(self.attempt, exc.pos))
            self.state = SolverState.CONTRADICTED
            return

        if self._initial_propagation:
            self._initial_propagation = False
            if self._initial_state is None:
                self._initial_state = self.grid.snapshot()
        elif self._last_decision is not None:
            decision = self._last_decision
            self._last_decision = None
            self._publish(
                CellCollapsedEvent(
                    self.attempt,
                    decision.pos,
                    self.rules.tile_ids[decision.tile_index],
                    self.grid.undecided_count(),
                )
            )

        self.state = SolverState.COLLAPSED

    def _recover(self) -> None:
        self._last_decision = None

        if self._initial_propagation:
            # No random choice was made yet, so every attempt would fail here
            logger.debug("Initial constraints are contradictory")
            self.unsatisfiable = True
            self._finish(SolverState.FAILED)
            return

        if not self.request.backtrack_enabled:
            self.state = SolverState.RESTARTING
            return

        budget_left = self._backtracks_this_attempt < self.request.max_backtracks
        if self._snapshots and budget_left:
            self.state = SolverState.BACKTRACKING
        elif not self._snapshots and budget_left and not self._snapshots_dropped:
            # Every choice at every depth has been ruled out
            logger.debug(f"Search exhausted in attempt {self.attempt}")
            self.unsatisfiable = True
            self._finish(SolverState.FAILED)
        else:
            self.state = SolverState.RESTARTING

    def _backtrack(self) -> None:
        snapshot = self._snapshots.pop()
        self.grid.restore(snapshot.state)
        self._backtracks_this_attempt += 1
        self.stats.backtracks += 1

        tile_id = self.rules.tile_ids[snapshot.tile_index]
        self._publish(BacktrackEvent(self.attempt, snapshot.pos, tile_id, len(self._snapshots)))

        try:
            self.grid.remove_candidate(snapshot.pos, tile_id)
        except ContradictionError:
            self.state = SolverState.CONTRADICTED
            return

        self._queue.clear()
        self._queue.push(snapshot.pos)
        self.state = SolverState.PROPAGATING

    def _restart(self) -> None:
        if self.attempts_used >= self.request.max_attempts:
            logger.debug(f"Giving up after {self.attempts_used} attempt(s)")
            self._finish(SolverState.FAILED)
            return

        self.attempt += 1
        self.stats.restarts += 1
        self._rng = self._rng_provider.get(attempt_domain(self.attempt))
        logger.debug(f"Restarting generation, attempt {self.attempt}")
        self._publish(RestartEvent(self.attempt, reason="contradiction"))
        self._begin_attempt()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _begin_attempt(self) -> None:
        """Reset per-attempt state and queue the constraint pass."""
        self.stats.attempts += 1
        self._snapshots.clear()
        self._snapshots_dropped = False
        self._backtracks_this_attempt = 0
        self._last_decision = None
        self._queue.clear()

        if self._initial_state is not None:
            self.grid.restore(self._initial_state)
            self._initial_propagation = False
            self.state = SolverState.UNCOLLAPSED
            return

        self.grid.reset()
        self._initial_propagation = True
        try:
            self._apply_constraints()
        except ContradictionError as exc:
            self.stats.contradictions += 1
            self._publish(ContradictionEvent(self.attempt, exc.pos))
            self.state = SolverState.CONTRADICTED
            return

        # Propagate over every cell once so rules that can never be satisfied
        # show up before the first random choice.
        for y in range(self.height):
            for x in range(self.width):
                self._queue.push((x, y))
        self.state = SolverState.PROPAGATING

    def _apply_constraints(self) -> None:
        edges = {
            "N": [(x, 0) for x in range(self.width)],
            "S": [(x, self.height - 1) for x in range(self.width)],
            "W": [(0, y) for y in range(self.height)],
            "E": [(self.width - 1, y) for y in range(self.height)],
        }
        for direction, mask in self._border_masks.items():
            for pos in edges[direction]:
                self.grid.restrict(pos, mask)

        for pos, mask in self._constraint_masks.items():
            self.grid.restrict(pos, mask)

    def _finish(self, state: SolverState) -> None:
        self.state = state
        self._snapshots.clear()
        self._publish(
            SolveFinishedEvent(
                self.attempt, success=state is SolverState.DONE, state=state.name
            )
        )

    def _publish(self, event: SolverEvent) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)
        else:
            publish_event(event)
