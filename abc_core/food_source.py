"""
abc_core/food_source.py
───────────────────────
A food source: one candidate task-to-worker assignment.

What is a food source?
──────────────────────
In a real hive, a food source is a patch of flowers and its nectar amount is
how good the patch is. In this scheduler:

  • "Position" = assignment[i] is the worker index task i runs on.
  • "Nectar"   = fitness, derived from makespan and total resource cost.
  • "Trials"   = how many times in a row a bee tried to improve this source
                 and failed. Enough failures and a scout abandons it.

Evaluation state
────────────────
A food source carries an optional FitnessReport written by the fitness
evaluator. report is None means the source has never been scored; its
comparison fitness is then UNEVALUATED (−inf) so it never wins a greedy
comparison against a scored source.

Storage
───────
assignment is a numpy int64 vector owned by exactly one food source.
copy() duplicates it, so mutating one population slot can never alias
another slot's storage.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np

from cloud_scheduler.shared.models import FitnessReport

UNEVALUATED: float = float("-inf")
"""Comparison fitness of a food source that has no FitnessReport yet."""


class FoodSource:
    """
    One candidate assignment plus its search bookkeeping.

    Attributes:
        assignment : np.ndarray[int64] — worker index per task.
        trials     : int               — consecutive non-improving perturbations.
        report     : FitnessReport | None — set by FitnessEvaluator.evaluate().
    """

    __slots__ = ("assignment", "trials", "report")

    def __init__(
        self,
        assignment: np.ndarray,
        trials: int = 0,
        report: Optional[FitnessReport] = None,
    ) -> None:
        self.assignment: np.ndarray = np.asarray(assignment, dtype=np.int64)
        self.trials: int = trials
        self.report: Optional[FitnessReport] = report

    @property
    def is_evaluated(self) -> bool:
        return self.report is not None

    @property
    def fitness(self) -> float:
        """Scored fitness, or UNEVALUATED if never scored."""
        return self.report.fitness if self.report is not None else UNEVALUATED

    @property
    def makespan(self) -> Optional[float]:
        return self.report.makespan if self.report is not None else None

    @property
    def total_cost(self) -> Optional[float]:
        return self.report.total_cost if self.report is not None else None

    @property
    def n_tasks(self) -> int:
        return int(self.assignment.shape[0])

    def copy(self) -> "FoodSource":
        """Independent copy. The report is frozen, so it is shared safely."""
        return FoodSource(self.assignment.copy(), self.trials, self.report)

    def to_list(self) -> List[int]:
        return [int(w) for w in self.assignment]

    def __repr__(self) -> str:
        score = f"{self.fitness:.6f}" if self.is_evaluated else "unevaluated"
        return (
            f"FoodSource(tasks={self.n_tasks}, "
            f"fitness={score}, trials={self.trials})"
        )


def create_food_source(
    n_tasks: int,
    n_workers: int,
    rng: np.random.Generator,
) -> FoodSource:
    """
    Build a food source with a uniformly random assignment.

    Each gene is drawn independently from [0, n_workers − 1].
    The new source is unevaluated with trials = 0.
    """
    assignment = rng.integers(0, n_workers, size=n_tasks, dtype=np.int64)
    return FoodSource(assignment)


def create_initial_population(
    size: int,
    n_tasks: int,
    n_workers: int,
    rng: np.random.Generator,
) -> List[FoodSource]:
    """Return `size` independently created food sources."""
    return [create_food_source(n_tasks, n_workers, rng) for _ in range(size)]
