"""
abc_core/hive.py
────────────────
The hive: the colony's single shared, mutable population buffer.

Layout
──────
  Slots [0, employed_count)                  → employed food sources
  Slots [employed_count, 2 × employed_count) → latest onlooker candidates

The split is positional only. Every phase reads and overwrites slots in
place, and later bees in a phase see the writes of earlier bees in the same
phase. That ordering is part of the algorithm's contract, so phases iterate
slots sequentially and never work on a snapshot.

The hive also owns the two pieces every phase needs:
  • the FitnessEvaluator (scores candidates), and
  • the numpy Generator (the only source of randomness in a run).

Neighbour generation
─────────────────────
The canonical ABC move, restricted to integer worker indices:

  v_d = x_d + φ × (x_d − x_k,d)     φ ∈ {−1, 0, 1},  clamped to [0, n_workers − 1]

One randomly chosen dimension d is changed; every other gene is copied from
the source. x_k is a randomly chosen employed partner k ≠ source.
"""

from __future__ import annotations

from typing import Iterator, List

import numpy as np

from abc_core.fitness import FitnessEvaluator
from abc_core.food_source import FoodSource


class Hive:
    """
    Population buffer plus the shared evaluator and random generator.

    Not thread-safe. The colony delegates write access to one phase at a time.

    Attributes:
        sources        : List[FoodSource] — the population, length 2 × employed_count.
        employed_count : int             — size of each half.
        n_tasks        : int             — genes per assignment.
        n_workers      : int             — valid genes are [0, n_workers − 1].
        evaluator      : FitnessEvaluator
        rng            : np.random.Generator
    """

    def __init__(
        self,
        sources: List[FoodSource],
        employed_count: int,
        n_workers: int,
        evaluator: FitnessEvaluator,
        rng: np.random.Generator,
    ) -> None:
        if employed_count < 1:
            raise ValueError("Hive requires at least one employed food source.")
        if len(sources) != 2 * employed_count:
            raise ValueError(
                f"Hive needs exactly {2 * employed_count} food sources, "
                f"got {len(sources)}."
            )

        self.sources = sources
        self.employed_count = employed_count
        self.n_workers = n_workers
        self.n_tasks = evaluator.n_tasks
        self.evaluator = evaluator
        self.rng = rng

    # ── Sequence protocol ─────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self.sources)

    def __getitem__(self, index: int) -> FoodSource:
        return self.sources[index]

    def __setitem__(self, index: int, food: FoodSource) -> None:
        self.sources[index] = food

    def __iter__(self) -> Iterator[FoodSource]:
        return iter(self.sources)

    @property
    def onlooker_count(self) -> int:
        return len(self.sources) - self.employed_count

    # ── Evaluation ────────────────────────────────────────────────────────────

    def evaluate_all(self) -> None:
        """Score every food source in place."""
        for food in self.sources:
            self.evaluator.evaluate(food)

    # ── Neighbour generation ──────────────────────────────────────────────────

    def pick_partner(self, source_idx: int) -> int:
        """
        Uniformly random employed index k ≠ source_idx.

        Draws once from the employed_count − 1 other indices and shifts past
        source_idx. With a single employed source there is no other peer, so
        the source is its own partner (the move then changes nothing).
        """
        if self.employed_count == 1:
            return source_idx
        k = int(self.rng.integers(0, self.employed_count - 1))
        return k + 1 if k >= source_idx else k

    def neighbour(self, source_idx: int) -> FoodSource:
        """
        Build and score a candidate one gene away from sources[source_idx].

        Random draws, in order: dimension, partner, φ.
        """
        source = self.sources[source_idx]
        dimension = int(self.rng.integers(0, self.n_tasks))
        partner = self.sources[self.pick_partner(source_idx)]
        phi = int(self.rng.integers(-1, 2))

        x = int(source.assignment[dimension])
        value = x + phi * (x - int(partner.assignment[dimension]))
        value = max(0, min(self.n_workers - 1, value))

        assignment = source.assignment.copy()
        assignment[dimension] = value
        candidate = FoodSource(assignment)
        self.evaluator.evaluate(candidate)
        return candidate

    # ── Lookups ───────────────────────────────────────────────────────────────

    def best_index(self) -> int:
        """Index of the highest fitness in the whole hive (first on ties)."""
        best_idx = 0
        for i in range(1, len(self.sources)):
            if self.sources[i].fitness > self.sources[best_idx].fitness:
                best_idx = i
        return best_idx

    def worst_index(self) -> int:
        """Index of the lowest fitness in the whole hive (first on ties)."""
        worst_idx = 0
        for i in range(1, len(self.sources)):
            if self.sources[i].fitness < self.sources[worst_idx].fitness:
                worst_idx = i
        return worst_idx

    def __repr__(self) -> str:
        return (
            f"Hive(size={len(self.sources)}, employed={self.employed_count}, "
            f"tasks={self.n_tasks}, workers={self.n_workers})"
        )
