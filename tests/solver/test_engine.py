"""Tests for the collapse engine state machine."""

from __future__ import annotations

import threading

import numpy as np
import pytest

from tests.helpers import (
    assert_consistent,
    gradient_rules,
    incompatible_pair_rules,
    roads_rules,
    twisted_rules,
    two_tile_rules,
    uniform_tile,
)
from tilewave.errors import (
    AttemptsExhaustedError,
    CancelledError,
    IncompleteError,
    InvalidRequestError,
)
from tilewave.events import (
    BacktrackEvent,
    CellCollapsedEvent,
    ContradictionEvent,
    EventBus,
    RestartEvent,
    SolveFinishedEvent,
    SolverEvent,
    subscribe_to_event,
)
from tilewave.rules import RuleModel
from tilewave.solver import CollapseEngine, GenerationRequest, SolverState

# =============================================================================
# Basic Operation
# =============================================================================


class TestEngineBasics:
    """Tests for solving satisfiable requests."""

    def test_two_tile_scenario_produces_valid_grid(self) -> None:
        """Two all-matching tiles on 3x3: every cell is A or B and consistent."""
        rules = two_tile_rules()
        request = GenerationRequest(
            width=3, height=3, tile_weights={"A": 1, "B": 1}, random_seed=42
        )
        engine = CollapseEngine(rules, request)

        grid = engine.run()

        assert engine.state is SolverState.DONE
        assert len(grid) == 3
        assert all(len(row) == 3 for row in grid)
        assert all(tile_id in {"A", "B"} for row in grid for tile_id in row)
        assert_consistent(grid, rules)

    def test_grid_is_row_major(self) -> None:
        """The result has `height` rows of `width` tiles."""
        rules = two_tile_rules()
        grid = CollapseEngine(
            rules, GenerationRequest(width=5, height=2, random_seed=1)
        ).run()
        assert len(grid) == 2
        assert all(len(row) == 5 for row in grid)

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_roads_grid_respects_adjacency(self, seed: int) -> None:
        """Generated road maps never place incompatible neighbours."""
        rules = roads_rules()
        grid = CollapseEngine(
            rules, GenerationRequest(width=10, height=10, random_seed=seed)
        ).run()
        assert_consistent(grid, rules)

    def test_gradient_grid_respects_adjacency(self) -> None:
        """A and C are never adjacent in the output."""
        rules = gradient_rules()
        grid = CollapseEngine(
            rules, GenerationRequest(width=12, height=12, random_seed=123)
        ).run()
        assert_consistent(grid, rules)

    def test_single_tile_finishes_without_collapsing(self) -> None:
        """With one tile the grid is decided by construction."""
        rules = RuleModel.build([uniform_tile("only")])
        engine = CollapseEngine(rules, GenerationRequest(width=2, height=2, random_seed=0))

        states = list(engine.iter_steps())

        assert states == [SolverState.COLLAPSED, SolverState.UNCOLLAPSED, SolverState.DONE]
        assert engine.result() == [["only", "only"], ["only", "only"]]
        assert engine.stats.collapses == 0

    def test_result_requires_finished_solve(self) -> None:
        """A grid decided before the engine reaches DONE is not readable yet."""
        rules = RuleModel.build([uniform_tile("only")])
        engine = CollapseEngine(rules, GenerationRequest(width=2, height=2, random_seed=0))

        assert engine.grid.undecided_count() == 0
        assert engine.state is SolverState.PROPAGATING
        with pytest.raises(IncompleteError, match="PROPAGATING"):
            engine.result()

        engine.step()
        assert engine.state is SolverState.COLLAPSED
        with pytest.raises(IncompleteError):
            engine.result()

    def test_single_cell_grid(self) -> None:
        """A 1x1 grid has no neighbours to conflict with."""
        grid = CollapseEngine(
            twisted_rules(), GenerationRequest(width=1, height=1, random_seed=5)
        ).run()
        assert len(grid) == 1
        assert grid[0][0] in {"T0", "T1", "T2"}

    @pytest.mark.parametrize(("width", "height"), [(6, 1), (1, 6)])
    def test_single_row_or_column_of_twisted_tiles(self, width: int, height: int) -> None:
        """A strip has no 2x2 block, so the twisted set solves it."""
        rules = twisted_rules()
        engine = CollapseEngine(
            rules, GenerationRequest(width=width, height=height, random_seed=9)
        )
        grid = engine.run()
        assert_consistent(grid, rules)
        assert engine.stats.contradictions == 0

    def test_engine_starts_by_propagating(self) -> None:
        """The first step is the initial propagation over every cell."""
        engine = CollapseEngine(two_tile_rules(), GenerationRequest(width=2, height=2))
        assert engine.state is SolverState.PROPAGATING
        assert engine.step() is SolverState.COLLAPSED
        assert engine.step() is SolverState.UNCOLLAPSED
        assert engine.step() is SolverState.PROPAGATING
        assert engine.stats.collapses == 1

    def test_terminal_state_stays_put(self) -> None:
        """step() on a finished engine does nothing."""
        engine = CollapseEngine(two_tile_rules(), GenerationRequest(width=2, height=2))
        engine.run()
        assert engine.step() is SolverState.DONE
        assert list(engine.iter_steps()) == []

    def test_counts_only_shrink_between_backtracks(self) -> None:
        """Within an attempt, and without a restore, no cell regains candidates."""
        engine = CollapseEngine(
            roads_rules(), GenerationRequest(width=8, height=8, random_seed=11)
        )
        previous = engine.grid.counts.copy()
        restores = (engine.stats.backtracks, engine.stats.restarts)

        for _ in engine.iter_steps():
            current = engine.grid.counts.copy()
            now = (engine.stats.backtracks, engine.stats.restarts)
            if now == restores:
                assert (current <= previous).all()
            previous, restores = current, now


# =============================================================================
# Weights and Constraints
# =============================================================================


class TestWeightsAndConstraints:
    """Tests for request weights, borders and seeded cells."""

    def test_heavy_weight_dominates(self) -> None:
        """A tile with overwhelming weight fills the grid."""
        request = GenerationRequest(
            width=3, height=3, tile_weights={"A": 1e6, "B": 1e-6}, random_seed=3
        )
        grid = CollapseEngine(two_tile_rules(), request).run()
        assert all(tile_id == "A" for row in grid for tile_id in row)

    def test_seeded_cell_keeps_its_tile(self) -> None:
        """A cell constrained to one tile ends up with that tile."""
        rules = gradient_rules()
        request = GenerationRequest(
            width=5, height=5, random_seed=8, constraints={(2, 2): ["B"]}
        )
        grid = CollapseEngine(rules, request).run()
        assert grid[2][2] == "B"
        assert_consistent(grid, rules)

    def test_west_border_restricts_first_column(self) -> None:
        """Only tiles that may sit east of the border tile appear at x=0."""
        rules = gradient_rules()
        request = GenerationRequest(width=4, height=3, random_seed=2, border={"W": ["C"]})
        grid = CollapseEngine(rules, request).run()
        # Only C may sit east of C, and that forces every row
        assert all(tile_id == "C" for row in grid for tile_id in row)

    def test_north_border_restricts_first_row(self) -> None:
        """Only tiles allowed south of A appear in the top row."""
        rules = gradient_rules()
        request = GenerationRequest(width=6, height=4, random_seed=4, border={"N": ["A"]})
        grid = CollapseEngine(rules, request).run()
        assert set(grid[0]) <= {"A", "B"}
        assert_consistent(grid, rules)

    def test_conflicting_border_and_seed_are_unsatisfiable(self) -> None:
        """Contradictory constraints fail before any random choice."""
        request = GenerationRequest(
            width=3,
            height=3,
            random_seed=0,
            border={"W": ["A"]},
            constraints={(0, 0): ["C"]},
        )
        engine = CollapseEngine(gradient_rules(), request)
        assert engine.state is SolverState.CONTRADICTED

        with pytest.raises(AttemptsExhaustedError) as excinfo:
            engine.run()

        assert excinfo.value.unsatisfiable
        assert excinfo.value.attempts_used == 1
        assert engine.stats.collapses == 0

    def test_unknown_constraint_tile_is_rejected(self) -> None:
        """Constraints must name tiles of the rule model."""
        request = GenerationRequest(width=2, height=2, constraints={(0, 0): ["Z"]})
        with pytest.raises(InvalidRequestError, match="Unknown tile 'Z'"):
            CollapseEngine(two_tile_rules(), request)

    def test_unknown_border_tile_is_rejected(self) -> None:
        """Borders must name tiles of the rule model."""
        request = GenerationRequest(width=2, height=2, border={"S": ["Z"]})
        with pytest.raises(InvalidRequestError, match="S border"):
            CollapseEngine(two_tile_rules(), request)

    def test_invalid_request_fails_at_construction(self) -> None:
        """Bad dimensions are reported before any attempt."""
        with pytest.raises(InvalidRequestError, match="width"):
            CollapseEngine(two_tile_rules(), GenerationRequest(width=0, height=2))


# =============================================================================
# Contradiction, Backtracking and Restarts
# =============================================================================


class TestContradictionHandling:
    """Tests for recovery and failure reporting."""

    def test_incompatible_pair_is_never_done(self) -> None:
        """Two tiles with no east-west pairing cannot fill a 2x1 grid."""
        engine = CollapseEngine(
            incompatible_pair_rules(), GenerationRequest(width=2, height=1, random_seed=0)
        )
        with pytest.raises(AttemptsExhaustedError) as excinfo:
            engine.run()
        assert engine.state is SolverState.FAILED
        assert excinfo.value.unsatisfiable

    def test_incompatible_pair_fits_a_column(self) -> None:
        """North-south sides match, so a 1x2 column is fine."""
        grid = CollapseEngine(
            incompatible_pair_rules(), GenerationRequest(width=1, height=2, random_seed=0)
        ).run()
        assert len(grid) == 2

    def test_backtracking_proves_twisted_grid_unsatisfiable(self) -> None:
        """Search exhausts every choice and reports the request unsatisfiable."""
        engine = CollapseEngine(
            twisted_rules(), GenerationRequest(width=2, height=2, random_seed=1)
        )
        with pytest.raises(AttemptsExhaustedError) as excinfo:
            engine.run()

        assert excinfo.value.unsatisfiable
        assert excinfo.value.attempts_used == 1
        assert engine.stats.contradictions >= 1
        assert engine.stats.backtracks >= 1
        assert engine.stats.restarts == 0

    def test_restarts_without_backtracking(self) -> None:
        """With backtracking off, each contradiction starts a new attempt."""
        engine = CollapseEngine(
            twisted_rules(),
            GenerationRequest(
                width=2, height=2, random_seed=1, max_attempts=3, backtrack_enabled=False
            ),
        )
        with pytest.raises(AttemptsExhaustedError) as excinfo:
            engine.run()

        assert not excinfo.value.unsatisfiable
        assert excinfo.value.attempts_used == 3
        assert engine.stats.attempts == 3
        assert engine.stats.restarts == 2
        assert engine.stats.backtracks == 0

    def test_spent_backtrack_budget_restarts(self) -> None:
        """A zero backtrack budget behaves like restarting."""
        engine = CollapseEngine(
            twisted_rules(),
            GenerationRequest(
                width=2, height=2, random_seed=1, max_attempts=2, max_backtracks=0
            ),
        )
        with pytest.raises(AttemptsExhaustedError) as excinfo:
            engine.run()

        assert not excinfo.value.unsatisfiable
        assert excinfo.value.attempts_used == 2
        assert engine.stats.backtracks == 0

    def test_snapshot_stack_is_bounded(self) -> None:
        """The backtrack stack never grows beyond its configured depth."""
        engine = CollapseEngine(
            two_tile_rules(),
            GenerationRequest(width=4, height=4, random_seed=0, max_snapshot_depth=2),
        )
        for _ in engine.iter_steps():
            assert len(engine._snapshots) <= 2

    def test_no_snapshots_without_backtracking(self) -> None:
        """Restart-only solving keeps no snapshots."""
        engine = CollapseEngine(
            two_tile_rules(),
            GenerationRequest(width=3, height=3, random_seed=0, backtrack_enabled=False),
        )
        for _ in engine.iter_steps():
            assert len(engine._snapshots) == 0


# =============================================================================
# Determinism
# =============================================================================


class TestDeterminism:
    """Tests that a fixed seed reproduces the same grid."""

    def test_same_seed_same_grid(self) -> None:
        """Two engines with the same seed agree."""
        rules = roads_rules()
        request = GenerationRequest(width=12, height=12, random_seed=77)
        assert CollapseEngine(rules, request).run() == CollapseEngine(rules, request).run()

    def test_string_seed_is_deterministic(self) -> None:
        """Descriptive string seeds work like numbers."""
        rules = roads_rules()
        request = GenerationRequest(width=8, height=8, random_seed="burrito1")
        assert CollapseEngine(rules, request).run() == CollapseEngine(rules, request).run()

    def test_different_seeds_differ(self) -> None:
        """Different seeds explore different grids."""
        rules = roads_rules()
        first = CollapseEngine(rules, GenerationRequest(width=12, height=12, random_seed=1))
        second = CollapseEngine(rules, GenerationRequest(width=12, height=12, random_seed=2))
        assert first.run() != second.run()

    def test_stepping_matches_run(self) -> None:
        """Observing every step does not change the outcome."""
        rules = roads_rules()
        request = GenerationRequest(width=10, height=10, random_seed=5)

        stepped = CollapseEngine(rules, request)
        for _ in stepped.iter_steps():
            _ = stepped.grid.undecided_count()

        assert stepped.result() == CollapseEngine(rules, request).run()

    def test_failure_path_is_deterministic(self) -> None:
        """Backtracks and restarts replay identically for a fixed seed."""
        request = GenerationRequest(
            width=3, height=3, random_seed=21, max_attempts=3, max_backtracks=2
        )

        def trace() -> list[SolverEvent]:
            bus = EventBus()
            events: list[SolverEvent] = []
            bus.subscribe(SolverEvent, events.append)
            engine = CollapseEngine(twisted_rules(), request, event_bus=bus)
            with pytest.raises(AttemptsExhaustedError):
                engine.run()
            return events

        events = trace()
        assert any(isinstance(e, BacktrackEvent) for e in events)
        assert events == trace()

    def test_attempt_offset_reproduces_attempt(self) -> None:
        """An engine started at attempt k draws attempt k's random stream."""
        rules = roads_rules()
        request = GenerationRequest(width=6, height=6, random_seed=3)
        engine_a = CollapseEngine(rules, request, first_attempt=2)
        engine_b = CollapseEngine(rules, request, first_attempt=2)
        assert engine_a.run() == engine_b.run()
        assert engine_a.attempt >= 2
        assert engine_a.attempts_used == engine_a.attempt - 1


# =============================================================================
# Events and Cancellation
# =============================================================================


class TestEventsAndCancellation:
    """Tests for published events and cooperative cancellation."""

    def test_collapse_events_count_down(self) -> None:
        """Each decision reports how many cells are still undecided."""
        bus = EventBus()
        collapsed: list[CellCollapsedEvent] = []
        finished: list[SolveFinishedEvent] = []
        bus.subscribe(CellCollapsedEvent, collapsed.append)
        bus.subscribe(SolveFinishedEvent, finished.append)

        engine = CollapseEngine(
            two_tile_rules(), GenerationRequest(width=3, height=3, random_seed=0), event_bus=bus
        )
        engine.run()

        assert [e.remaining for e in collapsed] == list(range(8, -1, -1))
        assert len(finished) == 1
        assert finished[0].success
        assert finished[0].state == "DONE"

    def test_backtrack_and_contradiction_events(self) -> None:
        """Search on an unsatisfiable grid reports its contradictions."""
        bus = EventBus()
        seen: list[SolverEvent] = []
        bus.subscribe(SolverEvent, seen.append)

        engine = CollapseEngine(
            twisted_rules(), GenerationRequest(width=2, height=2, random_seed=0), event_bus=bus
        )
        with pytest.raises(AttemptsExhaustedError):
            engine.run()

        assert any(isinstance(e, ContradictionEvent) for e in seen)
        assert any(isinstance(e, BacktrackEvent) for e in seen)
        assert not any(isinstance(e, RestartEvent) for e in seen)
        assert isinstance(seen[-1], SolveFinishedEvent)
        assert not seen[-1].success

    def test_global_bus_is_used_by_default(self) -> None:
        """Engines without a bus publish to the global one."""
        finished: list[SolveFinishedEvent] = []
        subscribe_to_event(SolveFinishedEvent, finished.append)

        CollapseEngine(two_tile_rules(), GenerationRequest(width=2, height=2)).run()

        assert len(finished) == 1

    def test_failing_handler_does_not_change_result(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A raising subscriber is logged and the solve carries on."""
        rules = roads_rules()
        request = GenerationRequest(width=8, height=8, random_seed=13)
        expected = CollapseEngine(rules, request, event_bus=EventBus()).run()

        bus = EventBus()

        def broken_handler(event: SolverEvent) -> None:
            raise RuntimeError("renderer crashed")

        bus.subscribe(SolverEvent, broken_handler)
        grid = CollapseEngine(rules, request, event_bus=bus).run()

        assert grid == expected
        assert "Error handling event CellCollapsedEvent" in caplog.text

    def test_cancel_before_first_collapse(self) -> None:
        """A set cancel event stops the solve at the first decision point."""
        cancel = threading.Event()
        cancel.set()
        engine = CollapseEngine(
            two_tile_rules(), GenerationRequest(width=3, height=3), cancel_event=cancel
        )

        with pytest.raises(CancelledError) as excinfo:
            engine.run()

        assert engine.state is SolverState.CANCELLED
        assert excinfo.value.attempts_used == 1
        assert engine.stats.collapses == 0

    def test_cancel_mid_solve(self) -> None:
        """Cancelling from an event handler stops before the next decision."""
        cancel = threading.Event()
        bus = EventBus()
        collapses: list[CellCollapsedEvent] = []

        def on_collapse(event: CellCollapsedEvent) -> None:
            collapses.append(event)
            if len(collapses) == 3:
                cancel.set()

        bus.subscribe(CellCollapsedEvent, on_collapse)
        engine = CollapseEngine(
            two_tile_rules(),
            GenerationRequest(width=4, height=4, random_seed=0),
            cancel_event=cancel,
            event_bus=bus,
        )

        with pytest.raises(CancelledError):
            engine.run()

        assert engine.stats.collapses == 3
        assert np.count_nonzero(engine.grid.counts == 1) == 3
