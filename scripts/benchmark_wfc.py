#!/usr/bin/env python3
"""Benchmark Wave Function Collapse solver performance."""

from __future__ import annotations

import argparse
import json
import time
from pathlib import Path

from tilewave import config
from tilewave.rules import RuleModel, load_tileset_file
from tilewave.solver import GenerationRequest, generate

GRID_SIZES: tuple[tuple[int, int], ...] = (
    (16, 16),
    (32, 32),
    (48, 32),
    (64, 64),
)

DEFAULT_TILESET = config.PROJECT_ROOT_PATH / "res" / "roads.json"


class WFCBenchmark:
    """Benchmark runner for the collapse engine."""

    def __init__(self, rules: RuleModel, iterations: int, backtrack: bool) -> None:
        self.rules = rules
        self.iterations = iterations
        self.backtrack = backtrack
        self.results: dict[str, dict[str, float]] = {}

    def _run_case(self, width: int, height: int) -> tuple[float, float]:
        """Run one case; return average solve time (ms) and average attempts."""
        elapsed_total = 0.0
        attempts_total = 0

        for i in range(self.iterations):
            request = GenerationRequest(
                width=width,
                height=height,
                random_seed=(width * 1_000_000) + (height * 1_000) + i,
                backtrack_enabled=self.backtrack,
            )

            start = time.perf_counter()
            result = generate(self.rules, request)
            elapsed_total += time.perf_counter() - start
            attempts_total += result.attempts_used

        return (
            (elapsed_total / self.iterations) * 1000.0,
            attempts_total / self.iterations,
        )

    def run(self) -> None:
        """Run all configured grid-size benchmarks."""
        print("WFC Benchmark")
        print("=" * 42)
        print(f"Iterations per size: {self.iterations}")
        print(f"Tiles: {self.rules.num_tiles}, backtracking: {self.backtrack}")
        print()
        print(f"{'Size':>12} {'Solve (ms)':>14} {'Attempts':>10}")
        print("-" * 42)

        for width, height in GRID_SIZES:
            solve_ms, attempts = self._run_case(width, height)

            size_key = f"{width}x{height}"
            self.results[size_key] = {
                "solve_ms": solve_ms,
                "attempts": attempts,
            }

            print(f"{size_key:>12} {solve_ms:14.2f} {attempts:10.2f}")

    def save_results(self, filename: str) -> None:
        """Save benchmark output to a JSON file."""
        with Path(filename).open("w") as f:
            json.dump(self.results, f, indent=2)
        print(f"\nSaved benchmark results to {filename}")

    def compare_with_baseline(self, baseline_file: str) -> None:
        """Compare current run with a saved baseline JSON file."""
        try:
            with Path(baseline_file).open() as f:
                baseline: dict[str, dict[str, float]] = json.load(f)
        except FileNotFoundError:
            print(f"\nBaseline file not found: {baseline_file}")
            return

        print(f"\nComparison vs baseline: {baseline_file}")
        print("=" * 64)

        for size_key, current in self.results.items():
            if size_key not in baseline:
                continue

            old_ms = baseline[size_key].get("solve_ms", 0.0)
            new_ms = current["solve_ms"]
            if old_ms <= 0:
                continue

            delta_pct = ((new_ms - old_ms) / old_ms) * 100.0
            speed_ratio = old_ms / new_ms if new_ms > 0 else 0.0
            trend = "faster" if speed_ratio > 1.0 else "slower"

            print(
                f"{size_key:>12}: {new_ms:8.2f}ms "
                f"vs {old_ms:8.2f}ms | {speed_ratio:5.2f}x {trend} "
                f"({delta_pct:+6.1f}%)"
            )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Benchmark the WFC solver")
    parser.add_argument(
        "--tileset",
        type=str,
        default=str(DEFAULT_TILESET),
        help="Tile set JSON to benchmark (default: res/roads.json)",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=5,
        help="Number of runs per grid size (default: 5)",
    )
    parser.add_argument(
        "--no-backtrack",
        action="store_true",
        help="Restart on contradiction instead of backtracking",
    )
    parser.add_argument("--save", type=str, help="Save current results to JSON")
    parser.add_argument(
        "--compare",
        type=str,
        help="Compare current results against baseline JSON",
    )
    args = parser.parse_args(argv)

    rules = load_tileset_file(args.tileset).build_rules()
    benchmark = WFCBenchmark(rules, iterations=args.iterations, backtrack=not args.no_backtrack)
    benchmark.run()

    if args.save:
        benchmark.save_results(args.save)

    if args.compare:
        benchmark.compare_with_baseline(args.compare)


if __name__ == "__main__":
    main()
