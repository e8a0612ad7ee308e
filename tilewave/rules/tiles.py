"""Tiles and their rotation variants."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from tilewave import config
from tilewave.errors import InvalidRuleError
from tilewave.rules.sides import DIRECTIONS, SideDescriptor, parse_side
from tilewave.types import Direction, Rotation, TileId


@dataclass(frozen=True)
class Tile:
    """An immutable tile with one side descriptor per direction.

    Attributes:
        name: Name of the source tile (shared by all its rotations).
        sides: Side descriptors ordered N, E, S, W.
        weight: Relative probability weight for selection (higher = more common).
        rotation: Clockwise rotation in degrees relative to the source tile.
    """

    name: str
    sides: tuple[SideDescriptor, SideDescriptor, SideDescriptor, SideDescriptor]
    weight: float = config.DEFAULT_TILE_WEIGHT
    rotation: Rotation = 0

    @classmethod
    def from_strings(
        cls,
        name: str,
        sides: Sequence[str],
        weight: float = config.DEFAULT_TILE_WEIGHT,
    ) -> Tile:
        """Create a tile from four descriptor strings ordered N, E, S, W."""
        if len(sides) != len(DIRECTIONS):
            raise InvalidRuleError(
                f"Tile {name!r} needs {len(DIRECTIONS)} sides, got {len(sides)}"
            )
        parsed = tuple(parse_side(side) for side in sides)
        return cls(name, parsed, float(weight))  # type: ignore[arg-type]

    @property
    def tile_id(self) -> TileId:
        if self.rotation == 0:
            return self.name
        return f"{self.name}{config.ROTATION_ID_SEPARATOR}{self.rotation}"

    def side(self, direction: Direction) -> SideDescriptor:
        """Return the side facing ``direction``."""
        return self.sides[DIRECTIONS.index(direction)]

    def rotated(self, quarter_turns: int) -> Tile:
        """Return this tile turned clockwise by ``quarter_turns`` * 90 degrees.

        Turning clockwise moves each side one slot on: the new north side is
        the old west side.
        """
        turns = quarter_turns % 4
        sides = tuple(self.sides[(i - turns) % 4] for i in range(4))
        rotation = (self.rotation + 90 * turns) % 360
        return Tile(self.name, sides, self.weight, rotation)  # type: ignore[arg-type]

    def variants(self, rotateable: bool) -> list[Tile]:
        """Return the tile itself, or all four rotations when ``rotateable``."""
        if not rotateable:
            return [self]
        return [self.rotated(turns) for turns in range(4)]

    def __str__(self) -> str:
        return f"{self.tile_id}[{', '.join(str(s) for s in self.sides)}]"
