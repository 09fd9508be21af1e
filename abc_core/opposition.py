"""
abc_core/opposition.py
──────────────────────
Opposition-based learning: explore the far side of the search space.

Why?
─────
After a few iterations the swarm tends to cluster around its best source.
Opposition-based learning reflects that best source across a scaled midpoint
of the worker range and checks whether the mirror image is even better.
It is one cheap evaluation per iteration that occasionally jumps the swarm
somewhere it would not have walked to.

The reflection (per gene)
──────────────────────────
  opposite_i = floor((lo + hi) × d) − best_i        lo = 0, hi = n_workers − 1

If opposite_i falls outside [lo, hi] that gene alone is redrawn uniformly
at random. The other genes keep their reflected values.

Acceptance
───────────
The opposite source enters the hive only if it STRICTLY beats the current
global best. It then overwrites the globally worst source (first on ties),
which may be an employed or an onlooker slot.
"""

from __future__ import annotations

import logging
import math
from typing import NamedTuple, Optional

import numpy as np

from abc_core.food_source import FoodSource
from abc_core.hive import Hive

logger = logging.getLogger(__name__)


def opposite_food_source(
    best: FoodSource,
    n_workers: int,
    coefficient: float,
    rng: np.random.Generator,
) -> FoodSource:
    """
    Reflect `best` gene by gene. Returned source is unevaluated.

    One random draw per out-of-range gene, in gene order.
    """
    lo, hi = 0, n_workers - 1
    pivot = math.floor((lo + hi) * coefficient)

    assignment = np.empty_like(best.assignment)
    for i, gene in enumerate(best.assignment):
        candidate = pivot - int(gene)
        if candidate < lo or candidate > hi:
            candidate = int(rng.integers(0, n_workers))
        assignment[i] = candidate
    return FoodSource(assignment)


class OppositionOutcome(NamedTuple):
    """What one apply_opposition() call did."""
    candidate_fitness: float
    previous_best: float
    replaced_index: Optional[int]   # None → candidate discarded

    @property
    def accepted(self) -> bool:
        return self.replaced_index is not None


def apply_opposition(hive: Hive, coefficient: float) -> OppositionOutcome:
    """
    Try the opposite of the global best; keep it only if it is strictly better.

    Returns:
        OppositionOutcome. replaced_index is the slot that received the
        opposite source, or None if it was rejected.
    """
    best = hive[hive.best_index()]
    best_fitness = best.fitness

    opposite = opposite_food_source(best, hive.n_workers, coefficient, hive.rng)
    hive.evaluator.evaluate(opposite)

    if opposite.fitness <= best_fitness:
        logger.debug(
            "Opposition: candidate %.6f did not beat best %.6f",
            opposite.fitness, best_fitness,
        )
        return OppositionOutcome(opposite.fitness, best_fitness, None)

    worst_idx = hive.worst_index()
    hive[worst_idx] = opposite
    logger.debug(
        "Opposition: candidate %.6f beat best %.6f, replaced slot %d",
        opposite.fitness, best_fitness, worst_idx,
    )
    return OppositionOutcome(opposite.fitness, best_fitness, worst_idx)
