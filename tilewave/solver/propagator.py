"""Arc-consistency propagation.

Removing a candidate from one cell can make candidates of its neighbours
impossible. The propagator follows those removals transitively (AC-3 style)
until no cell changes any more.
"""

from __future__ import annotations

from collections.abc import Iterable

import numpy as np

from tilewave.errors import ContradictionError
from tilewave.rules.model import RuleModel
from tilewave.solver.grid import Grid
from tilewave.types import GridPos


class PropagationQueue:
    """Worklist of cells whose neighbours must be re-checked.

    A stack plus a membership set, so a cell is never queued twice at once.
    """

    def __init__(self, cells: Iterable[GridPos] = ()) -> None:
        self._stack: list[GridPos] = []
        self._queued: set[GridPos] = set()
        for cell in cells:
            self.push(cell)

    def push(self, pos: GridPos) -> None:
        if pos not in self._queued:
            self._stack.append(pos)
            self._queued.add(pos)

    def pop(self) -> GridPos:
        pos = self._stack.pop()
        self._queued.discard(pos)
        return pos

    def clear(self) -> None:
        self._stack.clear()
        self._queued.clear()

    def __len__(self) -> int:
        return len(self._stack)

    def __bool__(self) -> bool:
        return bool(self._stack)

    def __contains__(self, pos: object) -> bool:
        return pos in self._queued


def propagate(queue: PropagationQueue, grid: Grid, rules: RuleModel) -> int:
    """Run propagation from the queued cells to a fixed point.

    For each popped cell and each in-bounds direction, the neighbour keeps only
    tiles compatible with at least one remaining candidate of the cell. A
    neighbour that changed is queued in turn.

    Returns:
        The number of cells popped from the queue.

    Raises:
        ContradictionError: As soon as a neighbour's candidate set becomes
            empty. The queue is cleared and the grid is left partially
            propagated; callers restore a snapshot or restart.
    """
    # Every productive pop follows a removal, and each cell can lose at most
    # num_tiles candidates; anything beyond that bound means broken input.
    max_iterations = grid.width * grid.height * (rules.num_tiles * 4 + 1)

    iterations = 0
    while queue:
        iterations += 1
        if iterations > max_iterations:
            queue.clear()
            raise ContradictionError("Propagation exceeded maximum iterations")

        pos = queue.pop()
        x, y = pos
        current = grid.wave[x, y]

        for direction, neighbor in grid.neighbors(pos):
            nx, ny = neighbor
            neighbor_mask = grid.wave[nx, ny]

            # Use precomputed table to find tiles the neighbour may still hold
            allowed = rules.allowed_neighbors(current, direction)
            new_mask = neighbor_mask & allowed

            if np.array_equal(new_mask, neighbor_mask):
                continue

            try:
                grid.restrict(neighbor, new_mask)
            except ContradictionError:
                queue.clear()
                raise

            queue.push(neighbor)

    grid.dirty.clear()
    return iterations


def propagate_from(cells: Iterable[GridPos], grid: Grid, rules: RuleModel) -> int:
    """Propagate from ``cells``, typically ``grid.dirty`` after edits."""
    return propagate(PropagationQueue(sorted(cells)), grid, rules)
