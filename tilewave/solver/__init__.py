"""Wave Function Collapse solver.

- Grid: per-cell candidate sets and entropy bookkeeping
- propagate(): arc-consistency propagation to a fixed point
- CollapseEngine: collapse / backtrack / restart state machine
- extract(): read the finished grid
- generate() / generate_parallel(): request in, structured result out
"""

from .engine import CollapseEngine, Snapshot, SolverState, SolverStats
from .generator import (
    FailureKind,
    GenerationFailure,
    GenerationResult,
    generate,
    generate_parallel,
)
from .grid import Grid, GridState
from .observer import AdjacencyViolation, check_consistency, extract, extract_tiles
from .propagator import PropagationQueue, propagate, propagate_from
from .request import GenerationRequest

__all__ = [
    "AdjacencyViolation",
    "CollapseEngine",
    "FailureKind",
    "GenerationFailure",
    "GenerationRequest",
    "GenerationResult",
    "Grid",
    "GridState",
    "PropagationQueue",
    "Snapshot",
    "SolverState",
    "SolverStats",
    "check_consistency",
    "extract",
    "extract_tiles",
    "generate",
    "generate_parallel",
    "propagate",
    "propagate_from",
]
