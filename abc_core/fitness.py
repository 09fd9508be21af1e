"""
abc_core/fitness.py
───────────────────
FitnessEvaluator: turns an assignment into a single scalar score.

What this is
─────────────
Every bee phase needs to answer "is this candidate better than that one?".
The evaluator answers it by simulating where each task's execution time and
resource cost land, then folding both objectives into one number.

The cost model
───────────────
For task i placed on worker w = assignment[i]:

  exec_time(i) = CLOUDLET_LENGTH / MIPS(weight_class)
  cost(i)      = exec_time × COST_PER_MIPS
               + RAM_USAGE × COST_PER_RAM
               + BANDWIDTH_USAGE × COST_PER_BW

  load[w] += exec_time(i)
  cost[w] += cost(i)

  makespan   = max_w load[w]            (+inf if no worker received a task)
  total_cost = Σ_w cost[w]

The composite fitness
──────────────────────
  fitness = 1 / (makespan + MAKESPAN_EPSILON) + 1 / (total_cost + COST_EPSILON)

Higher is better. Both terms shrink as their objective grows, and the
epsilons keep the divisions finite. A +inf makespan scores 0 on that term:
extremely poor, but defined.

Per-task terms are pre-computed once in __init__ (they depend only on the
task list), so evaluate() is two np.bincount calls plus a max and a sum.

Worked example (one light task alone on a worker):
  exec_time = 10000 / 400 = 25
  cost      = 25 × 0.5 + 512 × 0.05 + 1000 × 0.1 = 138.1
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence

import numpy as np
from pydantic import ValidationError

from cloud_scheduler.shared.models import FitnessReport, Task
from abc_core.food_source import FoodSource

# ── Cost model constants ───────────────────────────────────────────────────────
# Module-level so tests can import and assert against them directly.

CLOUDLET_LENGTH: float = 10000.0
"""Instruction length of every task (MI). Execution time = length / MIPS."""

COST_PER_MIPS: float = 0.5
"""Price per unit of execution time."""

COST_PER_RAM: float = 0.05
"""Price per MB of RAM reserved by a task."""

COST_PER_BW: float = 0.1
"""Price per Mbps of bandwidth reserved by a task."""

RAM_USAGE: float = 512.0
"""RAM reserved by every task (MB)."""

BANDWIDTH_USAGE: float = 1000.0
"""Bandwidth reserved by every task (Mbps)."""

MAKESPAN_EPSILON: float = 1.0
"""Added to makespan before inversion."""

COST_EPSILON: float = 0.1
"""Added to total cost before inversion."""


class InvalidInputError(ValueError):
    """
    Raised for fatal input problems detected before any population work.

    Attributes:
        reason: Human-readable explanation. Starts with one of the stable
                prefixes "tasks required", "tasks must be a list",
                "tasks cannot be empty", "tasks required for fitness",
                "worker_count", "invalid task", "invalid assignment",
                "invalid options".
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


def coerce_tasks(
    tasks: Any,
    missing_reason: str = "tasks required",
    allow_empty: bool = False,
) -> List[Task]:
    """
    Validate the caller's task sequence and normalise every entry to a Task.

    Accepted entries: Task instances, dicts ({"weight_class": ...},
    {"weightClass": ...} or the legacy {"weight": ...}), or bare
    weight-class strings.

    allow_empty=True lets an empty sequence through. The fitness helpers use
    it: an empty task list is scored (makespan +inf), not rejected.

    Raises:
        InvalidInputError: tasks is None, not a list/tuple, empty (unless
                           allowed), or holds an entry that cannot be read
                           as a Task.
    """
    if tasks is None:
        raise InvalidInputError(missing_reason)
    if not isinstance(tasks, (list, tuple)):
        raise InvalidInputError(
            f"tasks must be a list (got {type(tasks).__name__})"
        )
    if len(tasks) == 0 and not allow_empty:
        raise InvalidInputError("tasks cannot be empty")

    return [_coerce_task(entry, i) for i, entry in enumerate(tasks)]


def _coerce_task(entry: Any, position: int) -> Task:
    if isinstance(entry, Task):
        return entry
    try:
        if isinstance(entry, str):
            return Task(weight_class=entry)
        if isinstance(entry, dict):
            return Task.model_validate(entry)
    except ValidationError as exc:
        raise InvalidInputError(f"invalid task at position {position}: {exc}") from exc
    raise InvalidInputError(
        f"invalid task at position {position}: "
        f"expected Task, dict or str, got {type(entry).__name__}"
    )


def task_execution_time(task: Task) -> float:
    """CLOUDLET_LENGTH / MIPS for this task's weight class."""
    return CLOUDLET_LENGTH / task.processing_power


def task_cost(execution_time: float) -> float:
    """Resource cost of one task given its execution time."""
    return (
        execution_time * COST_PER_MIPS
        + RAM_USAGE * COST_PER_RAM
        + BANDWIDTH_USAGE * COST_PER_BW
    )


class FitnessEvaluator:
    """
    Scores assignments against one fixed task list.

    Stateless between calls apart from the pre-computed per-task terms.
    The only side effect of evaluate() is attaching a FitnessReport to the
    food source it was given.

    Usage:
        evaluator = FitnessEvaluator(tasks)
        fitness   = evaluator.evaluate(food)    # food.report is now set
    """

    def __init__(self, tasks: Optional[Sequence[Any]]) -> None:
        """
        Args:
            tasks: Ordered sequence of Task, dict or weight-class str.
                   Required, may be empty.

        Raises:
            InvalidInputError: if tasks is None or holds an unreadable entry.
        """
        self._tasks: List[Task] = coerce_tasks(
            tasks, missing_reason="tasks required for fitness", allow_empty=True
        )
        self._exec_times: np.ndarray = np.array(
            [task_execution_time(t) for t in self._tasks], dtype=np.float64
        )
        self._costs: np.ndarray = np.array(
            [task_cost(e) for e in self._exec_times], dtype=np.float64
        )

    @property
    def n_tasks(self) -> int:
        return len(self._tasks)

    def report_for(self, assignment: Iterable[int]) -> FitnessReport:
        """
        Compute makespan, total cost and fitness for a raw assignment.

        Tasks beyond the assignment's length (or genes beyond the task
        list's length) are ignored.

        Raises:
            InvalidInputError: if any gene is a negative worker index.
        """
        genes = np.asarray(assignment, dtype=np.int64)
        n = min(genes.shape[0], self.n_tasks)
        lowest = int(genes[:n].min()) if n > 0 else 0
        if lowest < 0:
            raise InvalidInputError(
                f"invalid assignment: worker index {lowest} is negative"
            )

        if n == 0:
            makespan = float("inf")
            total_cost = 0.0
        else:
            genes = genes[:n]
            # bincount accumulates per worker in task order
            worker_load = np.bincount(genes, weights=self._exec_times[:n])
            worker_cost = np.bincount(genes, weights=self._costs[:n])
            makespan = float(worker_load.max())
            total_cost = float(worker_cost.sum())

        fitness = (
            1.0 / (makespan + MAKESPAN_EPSILON)
            + 1.0 / (total_cost + COST_EPSILON)
        )
        return FitnessReport(fitness=fitness, makespan=makespan, total_cost=total_cost)

    def evaluate(self, food: FoodSource) -> float:
        """Score a food source, attach its report, return the fitness."""
        food.report = self.report_for(food.assignment)
        return food.report.fitness

    def __repr__(self) -> str:
        return f"FitnessEvaluator(tasks={self.n_tasks})"


# ── Convenience wrappers ───────────────────────────────────────────────────────

def calculate_fitness(food: FoodSource, tasks: Optional[Sequence[Any]]) -> float:
    """
    One-shot evaluation of a single food source.

    Raises:
        InvalidInputError: "tasks required for fitness" if tasks is None.
    """
    return FitnessEvaluator(tasks).evaluate(food)


def evaluate_assignment(
    assignment: Iterable[int],
    tasks: Optional[Sequence[Any]],
) -> FitnessReport:
    """
    Score an arbitrary assignment (e.g. one produced by another scheduler).

    Useful for comparing the colony's result against baselines on the same
    cost model.

    Raises:
        InvalidInputError: "tasks required for fitness" if tasks is None, or
                           an unreadable task or negative worker index.
    """
    return FitnessEvaluator(tasks).report_for(list(assignment))
