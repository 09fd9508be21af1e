"""
abc_core/bees.py
────────────────
The three kinds of bee, one function per phase.

What each phase does
─────────────────────
1. Employed bees  — one per employed food source. Each tries a one-gene
                    neighbour of its own source and keeps it only if it is
                    strictly better (greedy selection). Failures add a trial.

2. Onlooker bees  — watch the employed bees' "waggle dance": sources are
                    picked with probability proportional to fitness, so good
                    sources get more attention. Each onlooker perturbs its
                    chosen source, always parks the candidate in its own
                    onlooker slot, and separately applies greedy selection
                    against the chosen employed source.

3. Scout bee      — exactly one per iteration. If the most-stagnant employed
                    source has exceeded the abandonment limit, it is replaced
                    by a brand-new random source.

Ordering contract
──────────────────
Within a phase, slots are visited in index order and updated in place.
Bee i + 1 sees whatever bee i wrote. The employed phase must fully finish
before the onlooker phase computes its selection probabilities.

Selection probabilities
────────────────────────
  p_i = max(f_i, 0) / Σ_j max(f_j, 0)      for employed i
  p_i = 1 / employed_count                 if that sum is 0
  p_i = 0                                  for onlooker slots

Sampling is a roulette wheel over the employed half:
  cumsum = [0.10, 0.45, 0.70, 1.00]
  r      = 0.52  →  first index with cumsum ≥ r  →  2
np.searchsorted(side="left") finds that index in one call. If floating-point
rounding leaves cumsum[-1] < r, a uniformly random employed index is used.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from abc_core.food_source import create_food_source
from abc_core.hive import Hive

logger = logging.getLogger(__name__)


# ── Phase 1: employed bees ─────────────────────────────────────────────────────

def employed_bee_phase(hive: Hive) -> int:
    """
    Perturb every employed source once and apply greedy selection.

    Returns:
        Number of employed sources that improved.
    """
    improved = 0
    for i in range(hive.employed_count):
        candidate = hive.neighbour(i)
        if candidate.fitness > hive[i].fitness:
            # candidate is fresh: trials == 0
            hive[i] = candidate
            improved += 1
        else:
            hive[i].trials += 1

    logger.debug(
        "Employed phase: %d/%d sources improved", improved, hive.employed_count
    )
    return improved


# ── Probability & selection ────────────────────────────────────────────────────

def calculate_probabilities(hive: Hive) -> np.ndarray:
    """
    Fitness-proportional selection weights over the employed half.

    Returns:
        np.ndarray of length len(hive). Onlooker slots are 0.0.
    """
    employed = hive.employed_count
    fitness = np.array(
        [hive[i].fitness for i in range(employed)], dtype=np.float64
    )
    clamped = np.maximum(fitness, 0.0)
    total = float(clamped.sum())

    probabilities = np.zeros(len(hive), dtype=np.float64)
    if total > 0.0:
        probabilities[:employed] = clamped / total
    else:
        probabilities[:employed] = 1.0 / employed
    return probabilities


def select_food_source(
    probabilities: np.ndarray,
    employed_count: int,
    rng: np.random.Generator,
) -> int:
    """
    Roulette-wheel pick of one employed index.

    Returns the first index whose cumulative probability is ≥ r, r ~ U[0, 1).
    Falls back to a uniformly random employed index if none qualifies.
    """
    r = float(rng.random())
    cumsum = np.cumsum(probabilities[:employed_count])
    chosen = int(np.searchsorted(cumsum, r, side="left"))
    if chosen < employed_count:
        return chosen
    return int(rng.integers(0, employed_count))


# ── Phase 2: onlooker bees ─────────────────────────────────────────────────────

def onlooker_bee_phase(hive: Hive) -> int:
    """
    Send every onlooker to a fitness-weighted employed source.

    For onlooker i:
      1. pick a source s via select_food_source()
      2. build a neighbour of s
      3. store it in slot employed_count + i, unconditionally
      4. if it beats s, copy it into slot s (trials 0); else s.trials += 1

    Probabilities are computed once, from the employed half as the employed
    phase left it.

    Returns:
        Number of employed sources improved by onlookers.
    """
    employed = hive.employed_count
    probabilities = calculate_probabilities(hive)

    improved = 0
    for i in range(hive.onlooker_count):
        selected = select_food_source(probabilities, employed, hive.rng)
        candidate = hive.neighbour(selected)

        hive[employed + i] = candidate

        if candidate.fitness > hive[selected].fitness:
            hive[selected] = candidate.copy()
            improved += 1
        else:
            hive[selected].trials += 1

    logger.debug(
        "Onlooker phase: %d/%d visits improved their source",
        improved, hive.onlooker_count,
    )
    return improved


# ── Phase 3: scout bee ─────────────────────────────────────────────────────────

def most_abandoned_index(hive: Hive) -> int:
    """Employed index with the most trials (first on ties)."""
    worst = 0
    for i in range(1, hive.employed_count):
        if hive[i].trials > hive[worst].trials:
            worst = i
    return worst


def scout_bee_phase(hive: Hive, limit: int) -> Optional[int]:
    """
    Replace the most-stagnant employed source if its trials exceed `limit`.

    Only employed slots are considered. At most one replacement per call.
    The replacement is random, evaluated immediately, and starts at 0 trials.

    Returns:
        The replaced index, or None if nothing was abandoned.
    """
    idx = most_abandoned_index(hive)
    trials = hive[idx].trials
    if trials <= limit:
        logger.debug("Scout phase: no source abandoned (max trials %d ≤ limit %d)",
                     trials, limit)
        return None

    scout = create_food_source(hive.n_tasks, hive.n_workers, hive.rng)
    hive.evaluator.evaluate(scout)
    hive[idx] = scout

    logger.debug(
        "Scout phase: source %d abandoned after %d trials (limit %d); "
        "new fitness %.6f",
        idx, trials, limit, scout.fitness,
    )
    return idx
