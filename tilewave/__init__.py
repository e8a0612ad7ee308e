"""Wave Function Collapse for side-labelled tile sets.

Usage:
    from tilewave import GenerationRequest, generate, load_tileset_file

    tileset = load_tileset_file("res/roads.json")
    rules = tileset.build_rules()
    result = generate(rules, GenerationRequest(width=32, height=32, random_seed=7))
    if result.ok:
        for row in result.grid:
            print(" ".join(row))
"""

from .errors import (
    AttemptsExhaustedError,
    CancelledError,
    ContradictionError,
    IncompleteError,
    InvalidRequestError,
    InvalidRuleError,
    TileWaveError,
)
from .rules import RuleModel, Tile, TileSet, load_tileset, load_tileset_file
from .solver import (
    CollapseEngine,
    FailureKind,
    GenerationRequest,
    GenerationResult,
    SolverState,
    generate,
    generate_parallel,
)

__all__ = [
    "AttemptsExhaustedError",
    "CancelledError",
    "CollapseEngine",
    "ContradictionError",
    "FailureKind",
    "GenerationRequest",
    "GenerationResult",
    "IncompleteError",
    "InvalidRequestError",
    "InvalidRuleError",
    "RuleModel",
    "SolverState",
    "Tile",
    "TileSet",
    "TileWaveError",
    "generate",
    "generate_parallel",
    "load_tileset",
    "load_tileset_file",
]
