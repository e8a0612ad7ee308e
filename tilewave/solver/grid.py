"""Domain grid: the mutable solver state.

Every cell stores which tiles are still possible as a row of a boolean numpy
array, ``wave[x, y, t]``. Candidate counts and weighted Shannon entropies are
cached per cell and updated whenever a cell changes, so selecting the next
cell to collapse is a vectorized scan instead of a per-cell recomputation.

Candidate sets only shrink through this API. The only way to grow them again
is ``restore()`` with a state captured earlier, or ``reset()``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import numpy as np

from tilewave import config
from tilewave.errors import ContradictionError
from tilewave.rules.model import RuleModel
from tilewave.rules.sides import DIR_OFFSETS, DIRECTIONS
from tilewave.rules.tiles import Tile
from tilewave.types import Direction, GridPos, TileId


@dataclass(frozen=True)
class GridState:
    """Read-only copy of a grid's candidate sets and cached bookkeeping."""

    wave: np.ndarray
    counts: np.ndarray
    entropies: np.ndarray


class Grid:
    """Candidate sets for a fixed ``width x height`` grid of cells."""

    def __init__(
        self,
        width: int,
        height: int,
        rules: RuleModel,
        weights: np.ndarray | None = None,
    ):
        """Create a fully unconstrained grid.

        Args:
            width: Grid width in cells.
            height: Grid height in cells.
            rules: The rule model whose tiles fill every cell.
            weights: Per-tile weights used for entropy, indexed like the
                rule model. Defaults to the tiles' own weights.
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Grid dimensions must be positive, got {width}x{height}")

        self.width = width
        self.height = height
        self.rules = rules
        self.num_tiles = rules.num_tiles

        self.weights = rules.weights if weights is None else weights
        self._weight_log_weights = self.weights * np.log(self.weights)

        self.wave = np.ones((width, height, self.num_tiles), dtype=bool)
        self.counts = np.full((width, height), self.num_tiles, dtype=np.int32)
        self.entropies = np.full(
            (width, height), self._entropy_of(self.wave[0, 0]), dtype=np.float64
        )

        # Cells touched since the last propagation pass
        self.dirty: set[GridPos] = set()

    @classmethod
    def initialize(
        cls,
        width: int,
        height: int,
        rules: RuleModel,
        weights: np.ndarray | None = None,
    ) -> Grid:
        return cls(width, height, rules, weights)

    # -------------------------------------------------------------------------
    # Cell queries
    # -------------------------------------------------------------------------

    def neighbors(self, pos: GridPos) -> Iterator[tuple[Direction, GridPos]]:
        """Yield ``(direction, neighbor_pos)`` for in-bounds neighbours."""
        x, y = pos
        for direction in DIRECTIONS:
            dx, dy = DIR_OFFSETS[direction]
            nx, ny = x + dx, y + dy
            if 0 <= nx < self.width and 0 <= ny < self.height:
                yield direction, (nx, ny)

    def candidates(self, pos: GridPos) -> frozenset[TileId]:
        x, y = pos
        return frozenset(self.rules.tile_ids[t] for t in np.flatnonzero(self.wave[x, y]))

    def count(self, pos: GridPos) -> int:
        x, y = pos
        return int(self.counts[x, y])

    def is_decided(self, pos: GridPos) -> bool:
        return self.count(pos) == 1

    def decided_tile(self, pos: GridPos) -> TileId | None:
        """Return the cell's tile id if exactly one candidate is left."""
        x, y = pos
        if self.counts[x, y] != 1:
            return None
        return self.rules.tile_ids[int(np.flatnonzero(self.wave[x, y])[0])]

    def entropy(self, pos: GridPos) -> float:
        """Weighted Shannon entropy of the cell's remaining candidates."""
        x, y = pos
        return float(self.entropies[x, y])

    # -------------------------------------------------------------------------
    # Whole-grid queries
    # -------------------------------------------------------------------------

    def contradiction_pos(self) -> GridPos | None:
        """Return the first empty cell in row-major order, if any."""
        empty = np.argwhere(self.counts.T == 0)
        if empty.size == 0:
            return None
        y, x = (int(v) for v in empty[0])
        return (x, y)

    def is_fully_collapsed(self) -> bool:
        return bool(np.all(self.counts == 1))

    def undecided_count(self) -> int:
        return int(np.count_nonzero(self.counts > 1))

    def min_entropy_cells(
        self, tolerance: float = config.ENTROPY_TIE_TOLERANCE
    ) -> list[GridPos]:
        """Return every undecided cell tied for the lowest entropy.

        Cells are listed in row-major order (by y, then x).
        """
        undecided = self.counts > 1
        if not undecided.any():
            return []
        masked = np.where(undecided, self.entropies, np.inf)
        lowest = masked.min()
        tied = np.argwhere(masked.T <= lowest + tolerance)
        return [(int(x), int(y)) for y, x in tied]

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def collapse_cell(self, pos: GridPos, tile: Tile | TileId) -> None:
        """Commit the cell to ``tile`` and mark it dirty.

        Raises:
            ContradictionError: If ``tile`` is no longer a candidate.
        """
        index = self.rules.index_of(tile)
        x, y = pos
        if not self.wave[x, y, index]:
            raise ContradictionError(
                f"Cannot collapse ({x}, {y}) to {self.rules.tile_ids[index]!r}: "
                "not a candidate",
                pos,
            )
        mask = np.zeros(self.num_tiles, dtype=bool)
        mask[index] = True
        self._store(pos, mask)

    def remove_candidate(self, pos: GridPos, tile: Tile | TileId) -> bool:
        """Remove one tile from the cell.

        Returns:
            True if the tile was a candidate and has been removed.

        Raises:
            ContradictionError: If the removal leaves the cell empty.
        """
        index = self.rules.index_of(tile)
        x, y = pos
        if not self.wave[x, y, index]:
            return False
        mask = self.wave[x, y].copy()
        mask[index] = False
        self._store(pos, mask)
        return True

    def restrict(self, pos: GridPos, allowed: np.ndarray | Iterable[Tile | TileId]) -> bool:
        """Intersect the cell's candidates with ``allowed``.

        Args:
            allowed: A boolean mask of length ``num_tiles`` or tiles / ids.

        Returns:
            True if the candidate set changed.

        Raises:
            ContradictionError: If the intersection is empty.
        """
        if not isinstance(allowed, np.ndarray):
            mask = np.zeros(self.num_tiles, dtype=bool)
            for tile in allowed:
                mask[self.rules.index_of(tile)] = True
            allowed = mask

        x, y = pos
        current = self.wave[x, y]
        new_mask = current & allowed
        if np.array_equal(new_mask, current):
            return False
        self._store(pos, new_mask)
        return True

    def _store(self, pos: GridPos, mask: np.ndarray) -> None:
        x, y = pos
        count = int(np.count_nonzero(mask))
        self.wave[x, y] = mask
        self.counts[x, y] = count
        self.entropies[x, y] = self._entropy_of(mask) if count > 1 else 0.0
        self.dirty.add(pos)
        if count == 0:
            raise ContradictionError(f"No candidates left at ({x}, {y})", pos)

    def _entropy_of(self, mask: np.ndarray) -> float:
        total = float(self.weights @ mask)
        if total <= 0.0:
            return 0.0
        return float(np.log(total) - (self._weight_log_weights @ mask) / total)

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def snapshot(self) -> GridState:
        """Capture the candidate sets. The arrays are frozen copies."""
        state = GridState(self.wave.copy(), self.counts.copy(), self.entropies.copy())
        for array in (state.wave, state.counts, state.entropies):
            array.flags.writeable = False
        return state

    def restore(self, state: GridState) -> None:
        """Overwrite the candidate sets with a previously captured state."""
        if state.wave.shape != self.wave.shape:
            raise ValueError(
                f"Snapshot shape {state.wave.shape} does not match grid {self.wave.shape}"
            )
        np.copyto(self.wave, state.wave)
        np.copyto(self.counts, state.counts)
        np.copyto(self.entropies, state.entropies)
        self.dirty.clear()

    def reset(self) -> None:
        """Make every tile possible in every cell again."""
        self.wave.fill(True)
        self.counts.fill(self.num_tiles)
        self.entropies.fill(self._entropy_of(self.wave[0, 0]))
        self.dirty.clear()

    def candidate_sets(self) -> list[list[set[TileId]]]:
        """Convert the wave to nested sets, indexed [x][y], for debugging/testing."""
        return [
            [set(self.candidates((x, y))) for y in range(self.height)]
            for x in range(self.width)
        ]
