"""
abc_core/colony.py
──────────────────
The BeeColony: orchestrates all bees across all iterations.

How the colony works
─────────────────────
The colony is the outer loop of the Artificial Bee Colony algorithm. It:

  1. Validates the task list and derives the swarm shape:
       population_size = options.population_size, bumped to even
       employed_count  = onlooker_count = population_size / 2
       dimensions      = n_tasks
       limit           = round(LIMIT_FACTOR × employed_count × dimensions)
  2. Builds and scores a random initial population (the Hive).
  3. For each iteration, strictly in this order:
       a. Employed phase   — every employed source tries one neighbour.
       b. Onlooker phase   — fitness-weighted revisits of employed sources.
       c. Best tracking    — if the hive's best beats the best-so-far,
                             deep-copy it (later in-place writes to that
                             slot must not touch the tracked best).
       d. Scout phase      — abandon at most one stagnant employed source.
       e. Opposition phase — optional, see opposition.py.
  4. After the last iteration: return the best-so-far assignment.

There is no early stopping. The run always completes `iterations` cycles.

Why round half up for the limit?
  0.5 × employed × dimensions is often exactly x.5. Python's round() would
  send 2.5 to 2; the abandonment threshold has always been half-up (→ 3).

Randomness
───────────
Every random draw comes from one numpy Generator owned by the run. Pass
rng= to control it directly, or set options.seed. Two runs with the same
generator state and the same inputs return identical results.

Progress reporting
───────────────────
The colony logs through the standard logging module and, if given an
on_event callback, emits ColonyEvent objects (see
cloud_scheduler/shared/telemetry.py). It never prints.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np
from pydantic import ValidationError

from cloud_scheduler.shared.models import ColonyOptions, ColonyResult, Task
from cloud_scheduler.shared.telemetry import ColonyEvent, ColonyEventType, ColonyPhase
from abc_core.bees import (
    employed_bee_phase,
    most_abandoned_index,
    onlooker_bee_phase,
    scout_bee_phase,
)
from abc_core.fitness import FitnessEvaluator, InvalidInputError, coerce_tasks
from abc_core.food_source import FoodSource, create_initial_population
from abc_core.hive import Hive
from abc_core.opposition import apply_opposition

logger = logging.getLogger(__name__)

EventCallback = Callable[[ColonyEvent], None]
OptionsLike = Union[ColonyOptions, Dict[str, Any], None]

# ── Colony hyperparameters ─────────────────────────────────────────────────────

LIMIT_FACTOR: float = 0.5
"""Abandonment threshold = LIMIT_FACTOR × employed_count × dimensions.
The usual ABC choice: a source may fail about half a sweep over every
dimension by every employed bee before a scout gives up on it.
"""


class ColonyFailedError(Exception):
    """
    Raised when the colony finishes without ever recording a best solution.

    When is this raised?
        • iterations = 0: the initial population is scored but best tracking
          never runs, so there is no result to return.

    Attributes:
        n_tasks:   Number of tasks that were being assigned.
        n_workers: Number of workers available.
    """

    def __init__(
        self,
        n_tasks: int,
        n_workers: int,
        message: str = "",
    ) -> None:
        self.n_tasks = n_tasks
        self.n_workers = n_workers
        default_msg = (
            f"Colony failed: no food source was ever recorded as best for "
            f"{n_tasks} task(s) on {n_workers} worker(s)."
        )
        super().__init__(message or default_msg)


def abandonment_limit(employed_count: int, dimensions: int) -> int:
    """round(LIMIT_FACTOR × employed_count × dimensions), halves rounded up."""
    return int(math.floor(LIMIT_FACTOR * employed_count * dimensions + 0.5))


def _coerce_options(options: OptionsLike) -> ColonyOptions:
    if options is None:
        return ColonyOptions()
    if isinstance(options, ColonyOptions):
        return options
    if isinstance(options, dict):
        try:
            return ColonyOptions(**options)
        except ValidationError as exc:
            raise InvalidInputError(f"invalid options: {exc}") from exc
    raise InvalidInputError(
        f"invalid options: expected ColonyOptions, dict or None, "
        f"got {type(options).__name__}"
    )


class BeeColony:
    """
    Runs the full ABC search and returns a ColonyResult.

    Usage:
        colony = BeeColony(n_tasks, n_workers, tasks, {"iterations": 20})
        result = colony.run()
        result.best_assignment     # List[int], worker index per task

    After run():
        colony.last_run_ms  → wall-clock time of the last run() call.
        colony.hive         → the final population (for inspection/tests).

    Attributes:
        n_tasks, n_workers    : problem size (n_tasks corrected to len(tasks)).
        options               : validated ColonyOptions.
        population_size       : even swarm size actually used.
        employed_count        : half of population_size.
        limit                 : scout abandonment threshold.
    """

    def __init__(
        self,
        n_tasks: Optional[int],
        n_workers: int,
        tasks: Optional[Sequence[Any]],
        options: OptionsLike = None,
        *,
        rng: Optional[np.random.Generator] = None,
        on_event: Optional[EventCallback] = None,
    ) -> None:
        """
        Validate inputs and derive the swarm shape. No population work yet.

        Args:
            n_tasks:   Expected task count. Replaced by len(tasks) (with a
                       warning) if it disagrees.
            n_workers: Number of workers. Must be a positive integer.
            tasks:     Ordered list/tuple of Task, dict, or weight-class str.
            options:   ColonyOptions, an equivalent dict, or None for defaults.
            rng:       Optional numpy Generator. Overrides options.seed.
            on_event:  Optional callback receiving ColonyEvent objects.

        Raises:
            InvalidInputError: on any fatal input problem.
        """
        self._tasks: List[Task] = coerce_tasks(tasks)

        if isinstance(n_workers, bool) or not isinstance(n_workers, (int, np.integer)) \
                or n_workers < 1:
            raise InvalidInputError(
                f"worker_count must be a positive integer, got {n_workers!r}"
            )

        if n_tasks != len(self._tasks):
            logger.warning(
                "Task count (%s) does not match tasks length (%d). Using tasks length.",
                n_tasks, len(self._tasks),
            )

        self.n_tasks: int = len(self._tasks)
        self.n_workers: int = int(n_workers)
        self.options: ColonyOptions = _coerce_options(options)

        self.population_size: int = self.options.effective_population_size
        self.employed_count: int = self.population_size // 2
        self.dimensions: int = self.n_tasks
        self.limit: int = abandonment_limit(self.employed_count, self.dimensions)

        self._rng: np.random.Generator = (
            rng if rng is not None else np.random.default_rng(self.options.seed)
        )
        self._evaluator = FitnessEvaluator(self._tasks)
        self._on_event = on_event

        # Populated by run()
        self.hive: Optional[Hive] = None
        self.last_run_ms: float = 0.0

    # ── Events ────────────────────────────────────────────────────────────────

    def _emit(self, event_type: ColonyEventType, iteration: int = 0, **fields: Any) -> None:
        if self._on_event is None:
            return
        self._on_event(ColonyEvent(event_type=event_type, iteration=iteration, **fields))

    def _phase(self, phase: ColonyPhase, iteration: int) -> None:
        logger.debug("Iteration %d: %s phase", iteration, phase.value)
        self._emit(ColonyEventType.PHASE_STARTED, iteration, phase=phase)

    # ── Main colony loop ───────────────────────────────────────────────────────

    def run(self) -> ColonyResult:
        """
        Execute the full bee colony and return the best result found.

        Returns:
            ColonyResult with the best assignment and run statistics.

        Raises:
            ColonyFailedError: if no best solution was ever recorded.
        """
        start = time.perf_counter()
        opts = self.options

        logger.info(
            "ABC colony: swarm=%d (employed=%d, onlooker=%d), dimensions=%d, "
            "limit=%d, iterations=%d, opposition=%s",
            self.population_size, self.employed_count, self.employed_count,
            self.dimensions, self.limit, opts.iterations,
            f"on (d={opts.opposition_coefficient})"
            if opts.use_opposition_learning else "off",
        )
        self._emit(
            ColonyEventType.CONFIGURED,
            population_size=self.population_size,
            employed_count=self.employed_count,
            dimensions=self.dimensions,
            limit=self.limit,
            iterations=opts.iterations,
        )

        hive = Hive(
            create_initial_population(
                self.population_size, self.n_tasks, self.n_workers, self._rng
            ),
            self.employed_count,
            self.n_workers,
            self._evaluator,
            self._rng,
        )
        hive.evaluate_all()
        self.hive = hive

        best: Optional[FoodSource] = None
        history: List[float] = []
        scout_replacements = 0
        opposition_replacements = 0

        for iteration in range(1, opts.iterations + 1):

            self._phase(ColonyPhase.EMPLOYED, iteration)
            employed_bee_phase(hive)

            self._phase(ColonyPhase.ONLOOKER, iteration)
            onlooker_bee_phase(hive)

            # Best tracking: deep copy, never a reference into the hive
            current = hive[hive.best_index()]
            if best is None or current.fitness > best.fitness:
                best = current.copy()
                logger.debug(
                    "Iteration %d: new best fitness %.6f (makespan %.2f, cost %.2f)",
                    iteration, best.fitness, best.makespan, best.total_cost,
                )
                self._emit(
                    ColonyEventType.BEST_UPDATED, iteration,
                    fitness=best.fitness,
                    makespan=best.makespan,
                    total_cost=best.total_cost,
                )

            self._phase(ColonyPhase.SCOUT, iteration)
            stale_trials = hive[most_abandoned_index(hive)].trials
            scouted = scout_bee_phase(hive, self.limit)
            if scouted is not None:
                scout_replacements += 1
                self._emit(
                    ColonyEventType.SCOUT_DISPATCHED, iteration,
                    index=scouted,
                    trials=stale_trials,
                    limit=self.limit,
                    fitness=hive[scouted].fitness,
                )

            if opts.use_opposition_learning:
                self._phase(ColonyPhase.OPPOSITION, iteration)
                outcome = apply_opposition(hive, opts.opposition_coefficient)
                if outcome.accepted:
                    opposition_replacements += 1
                self._emit(
                    ColonyEventType.OPPOSITION_APPLIED, iteration,
                    accepted=outcome.accepted,
                    index=outcome.replaced_index,
                    fitness=outcome.candidate_fitness,
                    previous_best=outcome.previous_best,
                )

            history.append(best.fitness)
            self._emit(
                ColonyEventType.ITERATION_COMPLETED, iteration, fitness=best.fitness
            )

        self.last_run_ms = (time.perf_counter() - start) * 1000.0

        if best is None:
            raise ColonyFailedError(self.n_tasks, self.n_workers)

        result = ColonyResult(
            best_assignment=best.to_list(),
            best_fitness=best.fitness,
            makespan=best.makespan,
            total_cost=best.total_cost,
            population_size=self.population_size,
            employed_count=self.employed_count,
            limit=self.limit,
            iterations=opts.iterations,
            history=history,
            scout_replacements=scout_replacements,
            opposition_replacements=opposition_replacements,
            run_ms=self.last_run_ms,
        )

        logger.info(
            "ABC colony finished in %.2fms: fitness=%.6f makespan=%.2f cost=%.2f",
            self.last_run_ms, result.best_fitness, result.makespan, result.total_cost,
        )
        self._emit(
            ColonyEventType.FINISHED, opts.iterations,
            fitness=result.best_fitness,
            makespan=result.makespan,
            total_cost=result.total_cost,
        )
        return result

    def __repr__(self) -> str:
        return (
            f"BeeColony(tasks={self.n_tasks}, workers={self.n_workers}, "
            f"swarm={self.population_size}, limit={self.limit}, "
            f"last_run_ms={self.last_run_ms:.2f})"
        )


def run_optimization(
    task_count: Optional[int],
    worker_count: int,
    tasks: Optional[Sequence[Any]],
    options: OptionsLike = None,
    *,
    rng: Optional[np.random.Generator] = None,
    on_event: Optional[EventCallback] = None,
) -> List[int]:
    """
    Assign every task to a worker with the bee colony; return the best assignment.

    Thin wrapper over BeeColony(...).run() for callers that only need the
    assignment. See BeeColony.__init__ for argument details.

    Returns:
        List[int] of length len(tasks), each value in [0, worker_count − 1].

    Raises:
        InvalidInputError: on invalid tasks, worker_count, or options.
        ColonyFailedError: if no best solution was ever recorded.
    """
    colony = BeeColony(
        task_count, worker_count, tasks, options, rng=rng, on_event=on_event
    )
    return colony.run().best_assignment
