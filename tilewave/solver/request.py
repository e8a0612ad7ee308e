"""Generation request and its resolution against a rule model."""

from __future__ import annotations

import math
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field

import numpy as np

from tilewave import config
from tilewave.errors import InvalidRequestError
from tilewave.rules.model import RuleModel
from tilewave.rules.sides import DIRECTIONS
from tilewave.types import Direction, GridPos, RandomSeed, TileId


@dataclass
class GenerationRequest:
    """Everything a solve needs besides the rule model.

    Attributes:
        width: Grid width in cells.
        height: Grid height in cells.
        tile_weights: Weight overrides keyed by tile id, or by tile name to
            cover every rotation of a tile. Tiles not listed keep the weight
            from their tile set.
        random_seed: Master seed; None gives non-deterministic output.
        max_attempts: Full attempts allowed before giving up.
        backtrack_enabled: Restore snapshots on contradiction instead of
            restarting straight away.
        max_backtracks: Snapshot restores allowed per attempt.
        max_snapshot_depth: Snapshots kept on the backtrack stack.
        border: Tiles assumed just outside the grid, per side. Edge cells on
            that side must be compatible with at least one of them.
        constraints: Allowed tiles for individual cells, applied before the
            first collapse.
    """

    width: int = config.DEFAULT_GRID_WIDTH
    height: int = config.DEFAULT_GRID_HEIGHT
    tile_weights: Mapping[TileId, float] = field(default_factory=dict)
    random_seed: RandomSeed = None
    max_attempts: int = config.DEFAULT_MAX_ATTEMPTS
    backtrack_enabled: bool = config.DEFAULT_BACKTRACK_ENABLED
    max_backtracks: int = config.DEFAULT_MAX_BACKTRACKS
    max_snapshot_depth: int = config.DEFAULT_MAX_SNAPSHOT_DEPTH
    border: Mapping[Direction, Collection[TileId]] = field(default_factory=dict)
    constraints: Mapping[GridPos, Collection[TileId]] = field(default_factory=dict)

    def validate(self) -> None:
        """Check values that do not depend on the rule model.

        Raises:
            InvalidRequestError: Describing the first bad value.
        """
        for name in ("width", "height", "max_attempts", "max_snapshot_depth"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise InvalidRequestError(f"{name} must be a positive integer, got {value!r}")
        backtracks = self.max_backtracks
        if isinstance(backtracks, bool) or not isinstance(backtracks, int) or backtracks < 0:
            raise InvalidRequestError(
                f"max_backtracks must be a non-negative integer, got {self.max_backtracks!r}"
            )
        for direction in self.border:
            if direction not in DIRECTIONS:
                raise InvalidRequestError(f"Unknown border direction {direction!r}")
        for pos in self.constraints:
            if not _is_grid_pos(pos):
                raise InvalidRequestError(f"Constraint key {pos!r} is not an (x, y) pair")
            x, y = pos
            if not (0 <= x < self.width and 0 <= y < self.height):
                raise InvalidRequestError(f"Constraint position {pos} is outside the grid")


def resolve_weights(rules: RuleModel, tile_weights: Mapping[TileId, float]) -> np.ndarray:
    """Return per-tile weights with the request's overrides applied.

    Name keys are applied first so that an explicit variant id such as
    ``"corner@90"`` wins over ``"corner"``.

    Raises:
        InvalidRequestError: For unknown tiles or non-positive weights.
    """
    weights = rules.weights.copy()
    names = {tile.name for tile in rules.tiles}

    by_name = [(k, v) for k, v in tile_weights.items() if k in names]
    by_id = [(k, v) for k, v in tile_weights.items() if k not in names]

    for key, value in by_name + by_id:
        weight = _positive_weight(key, value)
        if key in names:
            for i, tile in enumerate(rules.tiles):
                if tile.name == key:
                    weights[i] = weight
        elif key in rules:
            weights[rules.index_of(key)] = weight
        else:
            raise InvalidRequestError(f"Weight given for unknown tile {key!r}")

    return weights


def resolve_tile_mask(rules: RuleModel, tile_ids: Collection[TileId], what: str) -> np.ndarray:
    """Turn a collection of tile ids into a boolean mask over the rule model."""
    mask = np.zeros(rules.num_tiles, dtype=bool)
    for tile_id in tile_ids:
        if tile_id not in rules:
            raise InvalidRequestError(f"Unknown tile {tile_id!r} in {what}")
        mask[rules.index_of(tile_id)] = True
    return mask


def _positive_weight(key: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidRequestError(f"Weight for {key!r} must be a number, got {value!r}")
    weight = float(value)
    if not math.isfinite(weight) or weight <= 0:
        raise InvalidRequestError(f"Weight for {key!r} must be positive, got {value!r}")
    return weight


def check_request(rules: RuleModel, request: GenerationRequest) -> None:
    """Validate ``request`` and every tile id it names against ``rules``.

    Raises:
        InvalidRequestError: Describing the first problem found.
    """
    request.validate()
    resolve_weights(rules, request.tile_weights)
    for direction, tile_ids in request.border.items():
        resolve_tile_mask(rules, tile_ids, f"{direction} border")
    for pos, tile_ids in request.constraints.items():
        resolve_tile_mask(rules, tile_ids, f"constraint at {pos}")


def _is_grid_pos(pos: object) -> bool:
    return (
        isinstance(pos, tuple)
        and len(pos) == 2
        and all(isinstance(c, int) and not isinstance(c, bool) for c in pos)
    )
