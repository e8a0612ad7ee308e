"""Read-only access to a finished grid."""

from __future__ import annotations

from dataclasses import dataclass

from tilewave.errors import IncompleteError
from tilewave.rules.model import RuleModel
from tilewave.rules.sides import DIR_OFFSETS
from tilewave.rules.tiles import Tile
from tilewave.solver.grid import Grid
from tilewave.types import Direction, GridPos, TileGrid


def extract(grid: Grid) -> TileGrid:
    """Return the tile id of every cell as rows, ``result[y][x]``.

    Raises:
        IncompleteError: If any cell is empty or still has several candidates.
    """
    rows: TileGrid = []
    for y in range(grid.height):
        row = []
        for x in range(grid.width):
            tile_id = grid.decided_tile((x, y))
            if tile_id is None:
                raise IncompleteError(
                    f"Cell ({x}, {y}) has {grid.count((x, y))} candidates; "
                    "the grid is not fully collapsed"
                )
            row.append(tile_id)
        rows.append(row)
    return rows


def extract_tiles(grid: Grid) -> list[list[Tile]]:
    """Like ``extract()`` but returns Tile objects."""
    return [[grid.rules.tile(tile_id) for tile_id in row] for row in extract(grid)]


@dataclass(frozen=True)
class AdjacencyViolation:
    """Two neighbouring cells whose tiles are not compatible."""

    pos: GridPos
    direction: Direction
    neighbor: GridPos

    def __str__(self) -> str:
        return f"{self.pos} -{self.direction}-> {self.neighbor}"


def check_consistency(tiles: TileGrid, rules: RuleModel) -> list[AdjacencyViolation]:
    """List every neighbour pair in a row-major tile grid that breaks the rules.

    Only east and south neighbours are checked; the rule tables are symmetric.
    """
    violations: list[AdjacencyViolation] = []
    height = len(tiles)
    for y, row in enumerate(tiles):
        for x, tile_id in enumerate(row):
            for direction in ("E", "S"):
                dx, dy = DIR_OFFSETS[direction]
                nx, ny = x + dx, y + dy
                if ny >= height or nx >= len(tiles[ny]):
                    continue
                if tiles[ny][nx] not in rules.compatible(tile_id, direction):
                    violations.append(AdjacencyViolation((x, y), direction, (nx, ny)))
    return violations
