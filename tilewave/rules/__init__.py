"""Adjacency rule model.

- Side descriptors (``i-road``, ``p-wall``, ``i-edge-u_edge``) and matching
- Tiles and their rotation variants
- RuleModel: precomputed per-direction compatibility tables
- Tile set loading from mappings and JSON files
"""

from .loader import TileSet, load_tileset, load_tileset_file
from .model import RuleModel
from .sides import (
    DIR_OFFSETS,
    DIRECTIONS,
    OPPOSITE_DIR,
    SideDescriptor,
    Symmetry,
    parse_side,
    sides_fit,
)
from .tiles import Tile

__all__ = [
    "DIRECTIONS",
    "DIR_OFFSETS",
    "OPPOSITE_DIR",
    "RuleModel",
    "SideDescriptor",
    "Symmetry",
    "Tile",
    "TileSet",
    "load_tileset",
    "load_tileset_file",
    "parse_side",
    "sides_fit",
]
