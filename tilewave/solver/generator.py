"""Generation facade: request in, structured result out.

``generate()`` runs attempts one after another inside a single collapse
engine. ``generate_parallel()`` runs attempts concurrently on a thread pool,
each with its own engine, grid and snapshot stack, and reports the outcome of
the lowest-numbered attempt that decides the solve. Because every attempt
draws from its own seeded stream, both functions return the same grid for
the same request.

Neither function raises for search failures; they return a
``GenerationResult`` whose ``failure`` says what went wrong. Rule and
request errors are still raised before any attempt starts.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from enum import Enum, auto

from tilewave import config
from tilewave.errors import AttemptsExhaustedError, CancelledError
from tilewave.events import EventBus
from tilewave.rules.model import RuleModel
from tilewave.solver.engine import CollapseEngine, SolverStats
from tilewave.solver.request import GenerationRequest, check_request
from tilewave.types import TileGrid

logger = logging.getLogger(__name__)

# How often the parallel coordinator re-checks the caller's cancel event
_PARALLEL_POLL_SECONDS = 0.05


class FailureKind(Enum):
    """Why a generation produced no grid."""

    CONTRADICTION = auto()  # No grid satisfies the rules and constraints
    ATTEMPTS_EXHAUSTED = auto()  # Every allowed attempt failed
    CANCELLED = auto()


@dataclass(frozen=True)
class GenerationFailure:
    kind: FailureKind
    attempts_used: int
    message: str = ""


@dataclass
class GenerationResult:
    """Outcome of a generation request.

    Attributes:
        grid: Tile ids as rows (``grid[y][x]``), or None on failure.
        failure: Why no grid was produced, or None on success.
        stats: Counters accumulated over the attempts that count toward
            the result.
    """

    grid: TileGrid | None = None
    failure: GenerationFailure | None = None
    stats: SolverStats = field(default_factory=SolverStats)

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def attempts_used(self) -> int:
        if self.failure is not None:
            return self.failure.attempts_used
        return self.stats.attempts


def generate(
    rules: RuleModel,
    request: GenerationRequest,
    *,
    cancel_event: threading.Event | None = None,
    event_bus: EventBus | None = None,
) -> GenerationResult:
    """Solve ``request`` sequentially.

    Raises:
        InvalidRequestError: If the request does not fit the rule model.
    """
    engine = CollapseEngine(rules, request, cancel_event=cancel_event, event_bus=event_bus)
    return _run_engine(engine)


def generate_parallel(
    rules: RuleModel,
    request: GenerationRequest,
    *,
    workers: int | None = None,
    cancel_event: threading.Event | None = None,
    event_bus: EventBus | None = None,
) -> GenerationResult:
    """Solve ``request`` by racing independent attempts on a thread pool.

    Attempt ``k`` uses the same random stream it would use in ``generate()``,
    and the result is taken from the lowest attempt that succeeds (or proves
    the request unsatisfiable), so the output matches ``generate()``. Later
    attempts are stopped once that outcome is known.

    Attempts are started in order as workers free up, and each builds its
    engine inside the worker, so at most ``workers`` grids exist at a time.

    Raises:
        InvalidRequestError: If the request does not fit the rule model.
    """
    check_request(rules, request)
    workers = workers or config.DEFAULT_PARALLEL_WORKERS
    single = replace(request, max_attempts=1)

    def cancel_requested() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    stop_events: dict[int, threading.Event] = {}
    outcomes: dict[int, GenerationResult] = {}
    decided: int | None = None

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tilewave") as pool:
        futures: dict[Future[GenerationResult], int] = {}
        pending: set[Future[GenerationResult]] = set()
        next_attempt = 0

        while True:
            while len(pending) < workers and next_attempt < request.max_attempts:
                stop = threading.Event()
                if cancel_requested():
                    stop.set()
                stop_events[next_attempt] = stop
                future = pool.submit(_run_attempt, rules, single, next_attempt, stop, event_bus)
                futures[future] = next_attempt
                pending.add(future)
                next_attempt += 1

            if not pending:
                break

            done, pending = wait(
                pending, timeout=_PARALLEL_POLL_SECONDS, return_when=FIRST_COMPLETED
            )
            for future in done:
                outcomes[futures[future]] = future.result()

            if cancel_requested():
                for stop in stop_events.values():
                    stop.set()

            decided = _first_decisive(outcomes, request.max_attempts)
            if decided is not None:
                for attempt, stop in stop_events.items():
                    if attempt > decided:
                        stop.set()
                break

    stats = SolverStats()
    last = decided if decided is not None else request.max_attempts - 1
    for attempt in range(last + 1):
        if attempt in outcomes:
            stats = stats.merge(outcomes[attempt].stats)

    if decided is None or decided >= request.max_attempts:
        logger.debug(f"All {request.max_attempts} parallel attempts failed")
        return GenerationResult(
            failure=GenerationFailure(
                FailureKind.ATTEMPTS_EXHAUSTED,
                request.max_attempts,
                f"Generation failed after {request.max_attempts} attempt(s)",
            ),
            stats=stats,
        )

    outcome = outcomes[decided]
    failure = None
    if outcome.failure is not None:
        failure = replace(outcome.failure, attempts_used=decided + 1)
    return GenerationResult(grid=outcome.grid, failure=failure, stats=stats)


def _first_decisive(outcomes: dict[int, GenerationResult], max_attempts: int) -> int | None:
    """Return the attempt whose outcome settles the race, if already known.

    Returns ``max_attempts`` when every attempt finished without deciding.
    """
    for attempt in range(max_attempts):
        outcome = outcomes.get(attempt)
        if outcome is None:
            return None
        if outcome.failure is None or outcome.failure.kind is not FailureKind.ATTEMPTS_EXHAUSTED:
            return attempt
    return max_attempts


def _run_engine(engine: CollapseEngine) -> GenerationResult:
    try:
        grid = engine.run()
    except AttemptsExhaustedError as exc:
        kind = FailureKind.CONTRADICTION if exc.unsatisfiable else FailureKind.ATTEMPTS_EXHAUSTED
        return GenerationResult(
            failure=GenerationFailure(kind, exc.attempts_used, str(exc)),
            stats=engine.stats,
        )
    except CancelledError as exc:
        return GenerationResult(
            failure=GenerationFailure(FailureKind.CANCELLED, exc.attempts_used, str(exc)),
            stats=engine.stats,
        )
    return GenerationResult(grid=grid, stats=engine.stats)


def _run_attempt(
    rules: RuleModel,
    request: GenerationRequest,
    attempt: int,
    stop_event: threading.Event,
    event_bus: EventBus | None,
) -> GenerationResult:
    engine = CollapseEngine(
        rules, request, cancel_event=stop_event, event_bus=event_bus, first_attempt=attempt
    )
    return _run_engine(engine)
