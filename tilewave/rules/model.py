"""Precomputed adjacency rules.

The rule model turns a tile set into one boolean compatibility table per
direction. ``table[d][a, b]`` is True when tile ``b`` may occupy the neighbour
of tile ``a`` in direction ``d``. Tables are built once; the propagator only
reads them and never re-derives side matching at runtime.

Usage:
    from tilewave.rules import RuleModel, Tile

    tiles = [
        Tile.from_strings("grass", ["i-g", "i-g", "i-g", "i-g"]),
        Tile.from_strings("shore", ["i-g", "i-g", "i-w", "i-g"]),
    ]
    rules = RuleModel.build(tiles)
    rules.compatible("grass", "S")  # frozenset({"grass", "shore"})
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence

import numpy as np

from tilewave.errors import InvalidRuleError
from tilewave.rules.sides import DIRECTIONS, OPPOSITE_DIR, sides_fit
from tilewave.rules.tiles import Tile
from tilewave.types import Direction, TileId


class RuleModel:
    """Tiles plus their per-direction compatibility tables.

    Use ``RuleModel.build()`` to derive the tables from side descriptors or
    ``RuleModel.from_adjacency()`` for hand-written neighbour sets.
    """

    def __init__(self, tiles: Sequence[Tile], tables: dict[Direction, np.ndarray]):
        self.tiles: tuple[Tile, ...] = tuple(tiles)
        self.tile_ids: list[TileId] = [tile.tile_id for tile in self.tiles]
        self.num_tiles = len(self.tiles)

        # Map tile_id -> index into the tables and the wave
        self.tile_index: dict[TileId, int] = {
            tid: i for i, tid in enumerate(self.tile_ids)
        }

        # Tile weights indexed by tile position
        self.weights = np.array([tile.weight for tile in self.tiles], dtype=np.float64)

        self.tables = tables

        # compatible() lookups, keyed by (tile_index, direction)
        self._compatible: dict[tuple[int, Direction], frozenset[TileId]] = {}
        for direction in DIRECTIONS:
            table = self.tables[direction]
            for i in range(self.num_tiles):
                self._compatible[(i, direction)] = frozenset(
                    self.tile_ids[j] for j in np.flatnonzero(table[i])
                )

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def build(cls, tiles: Sequence[Tile]) -> RuleModel:
        """Derive the compatibility tables from the tiles' side descriptors.

        Tile ``a``'s side facing direction ``d`` is compared with tile ``b``'s
        side facing the opposite direction.

        Raises:
            InvalidRuleError: For an empty tile set, duplicate identifiers,
                non-positive weights, or an unequal flag naming a side name
                that no tile declares.
        """
        _validate_tiles(tiles)

        side_names = {side.name for tile in tiles for side in tile.sides}
        for tile in tiles:
            for side in tile.sides:
                if side.unequal is not None and side.unequal not in side_names:
                    raise InvalidRuleError(
                        f"Tile {tile.tile_id!r} side {side} flags unknown side "
                        f"name {side.unequal!r}"
                    )

        num_tiles = len(tiles)
        tables: dict[Direction, np.ndarray] = {}
        for direction in DIRECTIONS:
            opposite = OPPOSITE_DIR[direction]
            table = np.zeros((num_tiles, num_tiles), dtype=bool)
            for a, tile_a in enumerate(tiles):
                side_a = tile_a.side(direction)
                for b, tile_b in enumerate(tiles):
                    table[a, b] = sides_fit(side_a, tile_b.side(opposite))
            tables[direction] = table

        return cls(tiles, tables)

    @classmethod
    def from_adjacency(
        cls,
        tiles: Sequence[Tile],
        neighbors: Mapping[TileId, Mapping[Direction, Iterable[TileId]]],
    ) -> RuleModel:
        """Build a model from explicit neighbour sets instead of side labels.

        Args:
            tiles: The tiles; their side descriptors are ignored.
            neighbors: For each tile id, the tile ids allowed next to it in
                each direction. Missing directions allow nothing.

        Raises:
            InvalidRuleError: If a tile id is unknown or the rules are not
                symmetric.
        """
        _validate_tiles(tiles)

        index = {tile.tile_id: i for i, tile in enumerate(tiles)}
        num_tiles = len(tiles)
        tables = {d: np.zeros((num_tiles, num_tiles), dtype=bool) for d in DIRECTIONS}

        for tile_id, by_direction in neighbors.items():
            if tile_id not in index:
                raise InvalidRuleError(f"Adjacency given for unknown tile {tile_id!r}")
            for direction, allowed in by_direction.items():
                if direction not in tables:
                    raise InvalidRuleError(
                        f"Unknown direction {direction!r} for tile {tile_id!r}"
                    )
                for neighbor_id in allowed:
                    if neighbor_id not in index:
                        raise InvalidRuleError(
                            f"Tile {tile_id!r} allows unknown neighbor "
                            f"{neighbor_id!r} to the {direction}"
                        )
                    tables[direction][index[tile_id], index[neighbor_id]] = True

        model = cls(tiles, tables)
        model.check_symmetry()
        return model

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def index_of(self, tile: Tile | TileId) -> int:
        """Return the table index of a tile or tile id.

        Raises:
            KeyError: If the tile is not part of this model.
        """
        tile_id = tile.tile_id if isinstance(tile, Tile) else tile
        return self.tile_index[tile_id]

    def tile(self, tile_id: TileId) -> Tile:
        return self.tiles[self.tile_index[tile_id]]

    def compatible(self, tile: Tile | TileId, direction: Direction) -> frozenset[TileId]:
        """Return the tile ids that may sit next to ``tile`` in ``direction``."""
        return self._compatible[(self.index_of(tile), direction)]

    def allowed_neighbors(self, candidates: np.ndarray, direction: Direction) -> np.ndarray:
        """Union of tiles compatible with any candidate in ``direction``.

        Args:
            candidates: Boolean mask of length ``num_tiles``.

        Returns:
            Boolean mask of tiles the neighbour in ``direction`` may still hold.
        """
        return self.tables[direction][candidates].any(axis=0)

    def check_symmetry(self) -> None:
        """Verify ``b in compatible(a, d)`` iff ``a in compatible(b, opposite(d))``.

        Raises:
            InvalidRuleError: Naming the first asymmetric pair found.
        """
        for direction in DIRECTIONS:
            forward = self.tables[direction]
            backward = self.tables[OPPOSITE_DIR[direction]].T
            mismatch = np.argwhere(forward != backward)
            if mismatch.size:
                a, b = (int(v) for v in mismatch[0])
                raise InvalidRuleError(
                    f"Asymmetric adjacency: {self.tile_ids[a]!r} and "
                    f"{self.tile_ids[b]!r} disagree about direction {direction}"
                )

    def __len__(self) -> int:
        return self.num_tiles

    def __contains__(self, tile_id: object) -> bool:
        return tile_id in self.tile_index


def _validate_tiles(tiles: Sequence[Tile]) -> None:
    if not tiles:
        raise InvalidRuleError("Tile set is empty")

    seen: set[TileId] = set()
    for tile in tiles:
        if tile.tile_id in seen:
            raise InvalidRuleError(f"Duplicate tile id {tile.tile_id!r}")
        seen.add(tile.tile_id)

        if not math.isfinite(tile.weight) or tile.weight <= 0:
            raise InvalidRuleError(
                f"Tile {tile.tile_id!r} has non-positive weight {tile.weight}"
            )
