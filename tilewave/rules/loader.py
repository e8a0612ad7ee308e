"""Tile set loading.

Two input shapes are accepted.

The fields document, with an image directory and one entry per source tile::

    {
        "dir": "circuit",
        "fields": [
            {"name": "bridge.png", "rotateable": true,
             "sides": ["i-wire", "i-track", "i-wire", "i-track"], "weight": 2}
        ]
    }

and a plain mapping from tile name to either its four sides or a field object
without the ``name`` key::

    {"A": ["i-x", "i-x", "i-x", "i-x"], "B": {"sides": [...], "weight": 3}}

Rotateable fields expand into four variants. Image decoding is left to the
caller; ``dir`` is passed through untouched.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tilewave import config
from tilewave.errors import InvalidRuleError
from tilewave.rules.model import RuleModel
from tilewave.rules.tiles import Tile

logger = logging.getLogger(__name__)


@dataclass
class TileSet:
    """Tiles loaded from a tile set document.

    Attributes:
        tiles: All tile variants, rotations included, in document order.
        dir: Image directory named by the document, relative to it.
    """

    tiles: list[Tile] = field(default_factory=list)
    dir: str | None = None

    def build_rules(self) -> RuleModel:
        return RuleModel.build(self.tiles)


def load_tileset(data: Mapping[str, Any]) -> TileSet:
    """Build a TileSet from an already parsed document.

    Raises:
        InvalidRuleError: If the document does not have one of the accepted
            shapes or a field is malformed.
    """
    if not isinstance(data, Mapping):
        raise InvalidRuleError(
            f"Tile set must be a mapping, got {type(data).__name__}"
        )

    if "fields" in data:
        fields = data["fields"]
        if not isinstance(fields, list):
            raise InvalidRuleError("'fields' must be a list")
        directory = data.get("dir")
        if directory is not None and not isinstance(directory, str):
            raise InvalidRuleError("'dir' must be a string")
        entries = [(_field_name(raw), raw) for raw in fields]
    else:
        directory = None
        entries = list(data.items())

    tiles: list[Tile] = []
    for name, raw in entries:
        tiles.extend(_parse_field(name, raw))

    logger.debug(f"Loaded {len(entries)} tiles ({len(tiles)} variants)")
    return TileSet(tiles=tiles, dir=directory)


def load_tileset_file(path: str | Path) -> TileSet:
    """Read and parse a JSON tile set file."""
    path = Path(path)
    try:
        with path.open() as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise InvalidRuleError(f"Couldn't parse tile set {path}: {exc}") from exc
    return load_tileset(data)


def _field_name(raw: Any) -> str:
    if not isinstance(raw, Mapping) or "name" not in raw:
        raise InvalidRuleError(f"Tile set field without a name: {raw!r}")
    return raw["name"]


def _parse_field(name: Any, raw: Any) -> list[Tile]:
    if not isinstance(name, str) or not name:
        raise InvalidRuleError(f"Tile name must be a non-empty string, got {name!r}")
    if config.ROTATION_ID_SEPARATOR in name:
        raise InvalidRuleError(
            f"Tile name {name!r} may not contain {config.ROTATION_ID_SEPARATOR!r}"
        )

    if isinstance(raw, list):
        sides, weight, rotateable = raw, config.DEFAULT_TILE_WEIGHT, False
    elif isinstance(raw, Mapping):
        if "sides" not in raw:
            raise InvalidRuleError(f"Tile {name!r} has no 'sides'")
        sides = raw["sides"]
        weight = raw.get("weight", config.DEFAULT_TILE_WEIGHT)
        rotateable = raw.get("rotateable", False)
    else:
        raise InvalidRuleError(f"Tile {name!r} must be a list of sides or an object")

    if not isinstance(sides, list):
        raise InvalidRuleError(f"Tile {name!r} sides must be a list")
    if isinstance(weight, bool) or not isinstance(weight, int | float):
        raise InvalidRuleError(f"Tile {name!r} weight must be a number")
    if not isinstance(rotateable, bool):
        raise InvalidRuleError(f"Tile {name!r} 'rotateable' must be true or false")

    return Tile.from_strings(name, sides, weight).variants(rotateable)
