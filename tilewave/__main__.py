"""Command line entry point: generate a grid from a tile set and print it.

    python -m tilewave res/roads.json --seed 3 --width 16 --height 12
"""

from __future__ import annotations

import argparse
import logging
import sys

from . import config
from .errors import InvalidRequestError, InvalidRuleError
from .rules import load_tileset_file
from .solver import GenerationRequest, generate


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tilewave", description="Wave Function Collapse for side-labelled tiles"
    )
    parser.add_argument("tileset", help="Path to a JSON tile set")
    parser.add_argument(
        "--seed",
        default=config.RANDOM_SEED,
        help=f"Random seed, int or string (default: {config.RANDOM_SEED})",
    )
    parser.add_argument("--width", type=int, default=config.DEFAULT_GRID_WIDTH)
    parser.add_argument("--height", type=int, default=config.DEFAULT_GRID_HEIGHT)
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=config.DEFAULT_MAX_ATTEMPTS,
        help=f"Attempts before giving up (default: {config.DEFAULT_MAX_ATTEMPTS})",
    )
    parser.add_argument(
        "--no-backtrack",
        action="store_true",
        help="Restart on every contradiction instead of backtracking",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def _parse_seed(value: str | int) -> int | str:
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except ValueError:
        return value


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        rules = load_tileset_file(args.tileset).build_rules()
        request = GenerationRequest(
            width=args.width,
            height=args.height,
            random_seed=_parse_seed(args.seed),
            max_attempts=args.max_attempts,
            backtrack_enabled=not args.no_backtrack,
        )
        result = generate(rules, request)
    except (InvalidRuleError, InvalidRequestError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if not result.ok:
        assert result.failure is not None
        print(
            f"failed: {result.failure.kind.name.lower()} "
            f"after {result.failure.attempts_used} attempt(s)",
            file=sys.stderr,
        )
        return 1

    assert result.grid is not None
    cell_width = max(len(tile_id) for row in result.grid for tile_id in row)
    for row in result.grid:
        print(" ".join(tile_id.ljust(cell_width) for tile_id in row).rstrip())
    return 0


if __name__ == "__main__":
    sys.exit(main())
