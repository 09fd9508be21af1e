"""
abc_core — Artificial Bee Colony task-to-worker assignment core.

Public API:
    run_optimization   — assign tasks to workers, returns List[int]
    BeeColony          — the full run, returns ColonyResult
    InvalidInputError  — raised on fatal input problems (tasks, workers, options)
    ColonyFailedError  — raised when no best solution was ever recorded

Usage:
    from abc_core import run_optimization

    assignment = run_optimization(
        task_count=len(tasks),
        worker_count=4,
        tasks=[{"weight_class": "light"}, {"weight_class": "heavy"}, ...],
        options={"iterations": 20, "seed": 7},
    )                                   # [worker index per task]
"""

from abc_core.colony import BeeColony, ColonyFailedError, run_optimization
from abc_core.fitness import (
    FitnessEvaluator,
    InvalidInputError,
    calculate_fitness,
    evaluate_assignment,
)
from abc_core.food_source import FoodSource

__all__ = [
    "BeeColony",
    "ColonyFailedError",
    "run_optimization",
    "FitnessEvaluator",
    "InvalidInputError",
    "calculate_fitness",
    "evaluate_assignment",
    "FoodSource",
]
