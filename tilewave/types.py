from __future__ import annotations

from typing import Literal, TypeAlias

# =============================================================================
# GRID TYPES
# =============================================================================

GridCoord: TypeAlias = int  # Always integer cell position

# Grid positions are (x, y) with (0, 0) in the top-left corner.
GridPos: TypeAlias = tuple[GridCoord, GridCoord]  # Example: (5, 3) = column 5, row 3

# Cardinal directions. Side lists are always ordered N, E, S, W.
Direction: TypeAlias = Literal["N", "E", "S", "W"]

# =============================================================================
# TILE TYPES
# =============================================================================

# Identifier of a tile variant: the tile name for the unrotated variant,
# "<name>@<degrees>" for rotated variants (e.g. "corner@90").
TileId: TypeAlias = str

# Quarter-turn rotations in degrees.
Rotation: TypeAlias = Literal[0, 90, 180, 270]

# Row-major output grid: grid[y][x].
TileGrid: TypeAlias = list[list[TileId]]

# =============================================================================
# UTILITY TYPES
# =============================================================================

# Random seed for deterministic generation.
# Can be an int for numeric seeds or a descriptive string like "burrito1".
RandomSeed: TypeAlias = int | str | None
