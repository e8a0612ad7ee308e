"""
Configuration constants.

Centralizes the solver defaults used throughout the codebase.
Organized by functional area for easy maintenance.
"""

from pathlib import Path

# =============================================================================
# GENERAL
# =============================================================================

PROJECT_ROOT_PATH = Path(__file__).resolve().parent.parent

# Seed used by the command line entry point when none is given.
RANDOM_SEED = 0

# =============================================================================
# GENERATION REQUEST DEFAULTS
# =============================================================================

DEFAULT_GRID_WIDTH = 32
DEFAULT_GRID_HEIGHT = 32

# Full attempts (fresh grid, fresh RNG stream) before giving up.
DEFAULT_MAX_ATTEMPTS = 10

# Backtracking is on unless a request turns it off.
DEFAULT_BACKTRACK_ENABLED = True

# Snapshot restores allowed within one attempt before it is abandoned
# and the engine restarts.
DEFAULT_MAX_BACKTRACKS = 1000

# Maximum number of snapshots kept on the backtrack stack. When the stack is
# full the oldest snapshot is discarded, which bounds memory at
# depth * width * height * tile_count bytes.
DEFAULT_MAX_SNAPSHOT_DEPTH = 256

# =============================================================================
# SOLVER TUNING
# =============================================================================

# Cells whose entropy is within this distance of the minimum count as tied.
ENTROPY_TIE_TOLERANCE = 1e-9

# Worker threads used by generate_parallel() when the caller gives none.
DEFAULT_PARALLEL_WORKERS = 4

# =============================================================================
# TILE SETS
# =============================================================================

# Weight assigned to tiles that do not declare one.
DEFAULT_TILE_WEIGHT = 1.0

# Separator between tile name and rotation in variant identifiers.
ROTATION_ID_SEPARATOR = "@"
