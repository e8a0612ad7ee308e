"""Shared tile sets and assertions for the tilewave tests."""

from __future__ import annotations

from tilewave import config
from tilewave.rules import RuleModel, Tile, load_tileset_file
from tilewave.solver import check_consistency
from tilewave.types import TileGrid

ROADS_PATH = config.PROJECT_ROOT_PATH / "res" / "roads.json"


def uniform_tile(name: str, side: str = "i-x", weight: float = 1.0) -> Tile:
    """A tile with the same descriptor on all four sides."""
    return Tile.from_strings(name, [side] * 4, weight)


def two_tile_rules() -> RuleModel:
    """Tiles A and B whose sides all read ``i-x``: everything fits."""
    return RuleModel.build([uniform_tile("A"), uniform_tile("B")])


def gradient_rules() -> RuleModel:
    """Three tiles where A and C can never touch.

    A carries ``i-a`` on all sides, C carries ``i-c``, and B is a two-faced
    transition: ``i-a`` on N/W and ``i-c`` on E/S. Only rows and columns that
    run A... B ... C (reading west to east / north to south) are valid.
    """
    return RuleModel.build(
        [
            uniform_tile("A", "i-a", weight=3.0),
            Tile.from_strings("B", ["i-a", "i-c", "i-c", "i-a"], weight=2.0),
            uniform_tile("C", "i-c", weight=1.0),
        ]
    )


def incompatible_pair_rules() -> RuleModel:
    """Two tiles that cannot sit next to each other (or themselves) east-west.

    A's east side ``i-edge`` would match B's west side by name, but B's flag
    ``u_edge`` forbids touching an ``edge`` side. Every other east-west
    pairing has mismatched names.
    """
    return RuleModel.build(
        [
            Tile.from_strings("A", ["i-x", "i-edge", "i-x", "i-wall"]),
            Tile.from_strings("B", ["i-x", "i-stone", "i-x", "i-edge-u_edge"]),
        ]
    )


def twisted_rules() -> RuleModel:
    """Three tiles that pass arc consistency but fill no 2x2 block.

    East-west pairs follow the swap (T0 T1) and north-south pairs the swap
    (T1 T2). Every tile has exactly one partner in each direction, so an
    unconstrained grid is arc consistent, yet going east then south never
    lands on the same tile as going south then east. Any grid at least
    2x2 is unsatisfiable and only search can prove it.
    """
    tiles = [uniform_tile("T0"), uniform_tile("T1"), uniform_tile("T2")]
    east = {"T0": {"T1"}, "T1": {"T0"}, "T2": {"T2"}}
    south = {"T0": {"T0"}, "T1": {"T2"}, "T2": {"T1"}}
    return RuleModel.from_adjacency(
        tiles,
        {
            tile_id: {
                "N": south[tile_id],
                "E": east[tile_id],
                "S": south[tile_id],
                "W": east[tile_id],
            }
            for tile_id in east
        },
    )


def roads_rules() -> RuleModel:
    return load_tileset_file(ROADS_PATH).build_rules()


def assert_consistent(grid: TileGrid, rules: RuleModel) -> None:
    """Fail with the offending pairs if any neighbours are incompatible."""
    violations = check_consistency(grid, rules)
    assert not violations, ", ".join(str(v) for v in violations)
