"""
tests/test_bee_phases.py
────────────────────────
Test suite for the search operators: food sources, the hive, the three bee
phases and opposition-based learning.

Test groups
────────────
Group 1: Food sources        — random construction, copies, evaluation state
Group 2: Hive                — layout checks, partner choice, neighbour moves
Group 3: Employed phase      — greedy selection and trial bookkeeping
Group 4: Selection           — probabilities and roulette-wheel sampling
Group 5: Onlooker phase      — candidate parking, greedy update of the source
Group 6: Scout phase         — abandonment threshold and tie-breaking
Group 7: Opposition          — reflection maths and strict acceptance
"""

from __future__ import annotations

import numpy as np
import pytest

from abc_core.bees import (
    calculate_probabilities,
    employed_bee_phase,
    most_abandoned_index,
    onlooker_bee_phase,
    scout_bee_phase,
    select_food_source,
)
from abc_core.fitness import FitnessEvaluator
from abc_core.food_source import (
    UNEVALUATED,
    FoodSource,
    create_food_source,
    create_initial_population,
)
from abc_core.hive import Hive
from abc_core.opposition import apply_opposition, opposite_food_source
from cloud_scheduler.shared.models import Task


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _tasks(*classes: str):
    return [Task(weight_class=c) for c in classes]


def _make_hive(assignments, n_workers, tasks, rng=None, evaluate=True) -> Hive:
    """Build a hive from explicit assignments (first half employed)."""
    sources = [FoodSource(np.array(a, dtype=np.int64)) for a in assignments]
    hive = Hive(
        sources,
        len(sources) // 2,
        n_workers,
        FitnessEvaluator(tasks),
        rng if rng is not None else np.random.default_rng(0),
    )
    if evaluate:
        hive.evaluate_all()
    return hive


def _make_random_hive(seed=7, employed=5, n_tasks=8, n_workers=4) -> Hive:
    rng = np.random.default_rng(seed)
    tasks = [Task(weight_class=str(c)) for c in rng.choice(["light", "medium", "heavy"], n_tasks)]
    sources = create_initial_population(2 * employed, n_tasks, n_workers, rng)
    hive = Hive(sources, employed, n_workers, FitnessEvaluator(tasks), rng)
    hive.evaluate_all()
    return hive


class _ScriptedRng:
    """Stands in for np.random.Generator with pre-chosen draws."""

    def __init__(self, integers=(), randoms=()):
        self._integers = list(integers)
        self._randoms = list(randoms)

    def integers(self, low, high=None, size=None, dtype=None):
        return self._integers.pop(0)

    def random(self):
        return self._randoms.pop(0)


# ─────────────────────────────────────────────────────────────────────────────
# Group 1 — Food sources
# ─────────────────────────────────────────────────────────────────────────────

class TestFoodSource:
    def test_random_source_shape_and_range(self):
        rng = np.random.default_rng(1)
        for _ in range(50):
            food = create_food_source(12, 3, rng)
            assert food.n_tasks == 12
            assert food.assignment.min() >= 0
            assert food.assignment.max() <= 2

    def test_new_source_is_unevaluated(self):
        food = create_food_source(4, 2, np.random.default_rng(0))
        assert food.trials == 0
        assert not food.is_evaluated
        assert food.fitness == UNEVALUATED
        assert food.makespan is None
        assert food.total_cost is None

    def test_population_storage_is_independent(self):
        population = create_initial_population(6, 5, 3, np.random.default_rng(2))
        assert len(population) == 6
        for a in range(6):
            for b in range(a + 1, 6):
                assert not np.shares_memory(
                    population[a].assignment, population[b].assignment
                )

    def test_copy_is_independent(self):
        evaluator = FitnessEvaluator(_tasks("light", "heavy"))
        food = FoodSource(np.array([0, 1]), trials=3)
        evaluator.evaluate(food)

        clone = food.copy()
        clone.assignment[0] = 1
        clone.trials = 0

        assert food.to_list() == [0, 1]
        assert food.trials == 3
        assert clone.fitness == food.fitness

    def test_to_list_returns_python_ints(self):
        food = FoodSource(np.array([2, 0, 1]))
        assert food.to_list() == [2, 0, 1]
        assert all(type(w) is int for w in food.to_list())

    def test_repr_mentions_evaluation_state(self):
        assert "unevaluated" in repr(FoodSource(np.array([0])))


# ─────────────────────────────────────────────────────────────────────────────
# Group 2 — Hive
# ─────────────────────────────────────────────────────────────────────────────

class TestHive:
    def test_rejects_wrong_population_size(self):
        sources = [FoodSource(np.array([0])) for _ in range(3)]
        with pytest.raises(ValueError):
            Hive(sources, 2, 2, FitnessEvaluator(_tasks("light")), np.random.default_rng(0))

    def test_rejects_zero_employed(self):
        with pytest.raises(ValueError):
            Hive([], 0, 2, FitnessEvaluator(_tasks("light")), np.random.default_rng(0))

    def test_layout(self):
        hive = _make_random_hive(employed=4)
        assert len(hive) == 8
        assert hive.employed_count == 4
        assert hive.onlooker_count == 4
        assert hive.n_tasks == 8

    def test_partner_never_self(self):
        hive = _make_random_hive(employed=4)
        for i in range(hive.employed_count):
            partners = {hive.pick_partner(i) for _ in range(200)}
            assert i not in partners
            assert partners <= set(range(hive.employed_count))

    def test_partner_covers_all_peers(self):
        hive = _make_random_hive(employed=3)
        partners = {hive.pick_partner(1) for _ in range(200)}
        assert partners == {0, 2}

    def test_single_employed_source_is_own_partner(self):
        hive = _make_hive([[0, 1], [1, 0]], 2, _tasks("light", "light"))
        assert hive.pick_partner(0) == 0

    def test_neighbour_changes_at_most_one_gene(self):
        hive = _make_random_hive()
        for _ in range(100):
            i = int(hive.rng.integers(0, hive.employed_count))
            candidate = hive.neighbour(i)
            diff = np.count_nonzero(candidate.assignment != hive[i].assignment)
            assert diff <= 1
            assert candidate.assignment.min() >= 0
            assert candidate.assignment.max() <= hive.n_workers - 1
            assert candidate.is_evaluated
            assert candidate.trials == 0

    def test_neighbour_does_not_mutate_source(self):
        hive = _make_random_hive()
        before = hive[0].to_list()
        for _ in range(20):
            hive.neighbour(0)
        assert hive[0].to_list() == before

    def test_neighbour_clamps_to_worker_range(self):
        """x = 2, partner = 0, φ = +1 → 2 + 2 = 4 → clamped to 2 (3 workers)."""
        hive = _make_hive([[2], [0], [0], [0]], 3, _tasks("light"))
        # dimension 0, partner draw 0 (→ index 1), φ = +1
        hive.rng = _ScriptedRng(integers=[0, 0, 1])
        assert hive.neighbour(0).to_list() == [2]

    def test_best_and_worst_first_on_ties(self):
        tasks = _tasks("light", "light")
        hive = _make_hive([[0, 0], [0, 1], [1, 1], [1, 0]], 2, tasks)
        assert hive.best_index() == 1
        assert hive.worst_index() == 0


# ─────────────────────────────────────────────────────────────────────────────
# Group 3 — Employed phase
# ─────────────────────────────────────────────────────────────────────────────

class TestEmployedPhase:
    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_greedy_bookkeeping(self, seed):
        hive = _make_random_hive(seed=seed)
        before_fitness = [hive[i].fitness for i in range(hive.employed_count)]
        before_trials = [hive[i].trials for i in range(hive.employed_count)]

        improved = employed_bee_phase(hive)

        count = 0
        for i in range(hive.employed_count):
            if hive[i].fitness > before_fitness[i]:
                assert hive[i].trials == 0
                count += 1
            else:
                assert hive[i].fitness == before_fitness[i]
                assert hive[i].trials == before_trials[i] + 1
        assert improved == count

    def test_identical_population_only_adds_trials(self):
        """Every partner equals the source, so no move can change anything."""
        tasks = _tasks("light", "medium", "heavy")
        hive = _make_hive([[0, 1, 1]] * 6, 2, tasks)

        assert employed_bee_phase(hive) == 0
        assert [hive[i].trials for i in range(3)] == [1, 1, 1]
        assert all(hive[i].trials == 0 for i in range(3, 6))

    def test_later_bees_see_earlier_writes(self):
        """
        Bee 0 moves [0, 0] to [1, 0]. Bee 1 then uses slot 0 as its partner
        and reads the updated gene: 1 + (−1)(1 − 1) = 1, so its move is a
        no-op and is rejected. Against the pre-phase [0, 0] the same draws
        would have produced the improving [0, 1].
        """
        hive = _make_hive([[0, 0], [1, 1], [0, 0], [0, 0]], 2, _tasks("light", "light"))
        # per bee: dimension, partner draw, φ
        hive.rng = _ScriptedRng(integers=[0, 0, -1, 0, 0, -1])

        assert employed_bee_phase(hive) == 1
        assert hive[0].to_list() == [1, 0]
        assert hive[0].trials == 0
        assert hive[1].to_list() == [1, 1]
        assert hive[1].trials == 1

    def test_onlooker_slots_untouched(self):
        hive = _make_random_hive()
        onlookers = [hive[i] for i in range(hive.employed_count, len(hive))]
        employed_bee_phase(hive)
        assert [hive[i] for i in range(hive.employed_count, len(hive))] == onlookers


# ─────────────────────────────────────────────────────────────────────────────
# Group 4 — Selection
# ─────────────────────────────────────────────────────────────────────────────

class TestSelection:
    def test_probabilities_proportional_to_fitness(self):
        hive = _make_random_hive(employed=4)
        probabilities = calculate_probabilities(hive)

        assert probabilities.shape == (8,)
        assert probabilities[:4].sum() == pytest.approx(1.0)
        assert np.all(probabilities[4:] == 0.0)

        fitness = np.array([hive[i].fitness for i in range(4)])
        assert probabilities[:4] == pytest.approx(fitness / fitness.sum())

    def test_zero_total_fitness_is_uniform(self):
        """Unevaluated sources score −inf, clamp to 0, and fall back to 1/E."""
        hive = _make_hive([[0]] * 6, 2, _tasks("light"), evaluate=False)
        probabilities = calculate_probabilities(hive)
        assert probabilities[:3] == pytest.approx([1 / 3] * 3)
        assert np.all(probabilities[3:] == 0.0)

    def test_select_first_cumulative_at_or_above_r(self):
        """cumsum = [0.25, 0.5, 1.0], r = 0.5 → index 1 (boundary counts)."""
        probabilities = np.array([0.25, 0.25, 0.5, 0.0, 0.0, 0.0])
        rng = _ScriptedRng(randoms=[0.5])
        assert select_food_source(probabilities, 3, rng) == 1

    def test_select_only_weighted_index(self):
        probabilities = np.array([0.0, 1.0, 0.0, 0.0])
        rng = np.random.default_rng(3)
        assert {select_food_source(probabilities, 2, rng) for _ in range(50)} == {1}

    def test_select_falls_back_to_uniform(self):
        """cumsum[-1] < r → a uniformly random employed index."""
        probabilities = np.array([0.1, 0.1, 0.0, 0.0])
        rng = _ScriptedRng(randoms=[0.9], integers=[1])
        assert select_food_source(probabilities, 2, rng) == 1

    def test_select_never_returns_onlooker_slot(self):
        hive = _make_random_hive(employed=5)
        probabilities = calculate_probabilities(hive)
        picks = {select_food_source(probabilities, 5, hive.rng) for _ in range(500)}
        assert picks <= set(range(5))


# ─────────────────────────────────────────────────────────────────────────────
# Group 5 — Onlooker phase
# ─────────────────────────────────────────────────────────────────────────────

class TestOnlookerPhase:
    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_employed_fitness_never_decreases(self, seed):
        hive = _make_random_hive(seed=seed)
        before = [hive[i].fitness for i in range(hive.employed_count)]
        onlooker_bee_phase(hive)
        for i in range(hive.employed_count):
            assert hive[i].fitness >= before[i], f"slot {i} got worse"

    def test_onlooker_slots_hold_fresh_candidates(self):
        hive = _make_random_hive(seed=9)
        onlooker_bee_phase(hive)
        for i in range(hive.employed_count, len(hive)):
            assert hive[i].is_evaluated
            assert hive[i].trials == 0

    def test_no_storage_shared_between_slots(self):
        hive = _make_random_hive(seed=11)
        for _ in range(5):
            employed_bee_phase(hive)
            onlooker_bee_phase(hive)
        for a in range(len(hive)):
            for b in range(a + 1, len(hive)):
                assert not np.shares_memory(hive[a].assignment, hive[b].assignment)

    def test_accepted_candidate_copied_into_selected_source(self):
        """
        Onlooker 0 picks slot 0 ([0, 0], makespan 50) and finds [0, 1]
        (makespan 25): parked in slot 2 and copied into slot 0 with trials
        reset. Onlooker 1 picks slot 1, draws φ = 0, and is rejected.
        """
        tasks = _tasks("light", "light")
        hive = _make_hive([[0, 0], [0, 1], [1, 1], [1, 1]], 2, tasks)
        hive[0].trials = 5
        # onlooker 0: dimension 1, partner → 1, φ = −1;  onlooker 1: dimension 0, partner → 0, φ = 0
        hive.rng = _ScriptedRng(integers=[1, 0, -1, 0, 0, 0], randoms=[0.0, 0.999])

        assert onlooker_bee_phase(hive) == 1

        assert hive[0].to_list() == hive[2].to_list() == [0, 1]
        assert hive[0] is not hive[2]
        assert not np.shares_memory(hive[0].assignment, hive[2].assignment)
        assert hive[0].trials == 0
        assert hive[0].makespan == pytest.approx(25.0)

        assert hive[1].to_list() == [0, 1]
        assert hive[1].trials == 1
        assert hive[3].to_list() == [0, 1]
        assert not np.shares_memory(hive[1].assignment, hive[3].assignment)

    def test_identical_population_counts_one_trial_per_onlooker(self):
        tasks = _tasks("light", "medium")
        hive = _make_hive([[1, 0]] * 8, 2, tasks)

        assert onlooker_bee_phase(hive) == 0
        assert sum(hive[i].trials for i in range(4)) == 4
        for i in range(4, 8):
            assert hive[i].to_list() == [1, 0]


# ─────────────────────────────────────────────────────────────────────────────
# Group 6 — Scout phase
# ─────────────────────────────────────────────────────────────────────────────

class TestScoutPhase:
    def _hive_with_trials(self, trials):
        tasks = _tasks("light", "heavy")
        hive = _make_hive([[0, 1]] * len(trials), 3, tasks)
        for i, t in enumerate(trials):
            hive[i].trials = t
        return hive

    def test_most_abandoned_first_on_ties(self):
        hive = self._hive_with_trials([3, 7, 7, 1, 0, 0, 0, 0])
        assert most_abandoned_index(hive) == 1

    def test_replaces_when_trials_exceed_limit(self):
        hive = self._hive_with_trials([3, 7, 7, 1, 0, 0, 0, 0])
        others = [hive[i] for i in range(len(hive)) if i != 1]

        assert scout_bee_phase(hive, limit=5) == 1
        assert hive[1].trials == 0
        assert hive[1].is_evaluated
        assert hive[1].assignment.max() <= 2
        assert [hive[i] for i in range(len(hive)) if i != 1] == others
        assert hive[2].trials == 7

    def test_trials_equal_to_limit_do_not_fire(self):
        hive = self._hive_with_trials([3, 7, 7, 1, 0, 0, 0, 0])
        assert scout_bee_phase(hive, limit=7) is None
        assert hive[1].trials == 7

    def test_onlooker_trials_ignored(self):
        hive = self._hive_with_trials([0, 0, 50, 50])
        assert scout_bee_phase(hive, limit=1) is None


# ─────────────────────────────────────────────────────────────────────────────
# Group 7 — Opposition-based learning
# ─────────────────────────────────────────────────────────────────────────────

class TestOpposition:
    def test_full_coefficient_reflects_exactly(self):
        """5 workers, d = 1.0 → pivot = floor(4 × 1.0) = 4 → g ↦ 4 − g."""
        best = FoodSource(np.array([0, 1, 4, 2]))
        opposite = opposite_food_source(best, 5, 1.0, np.random.default_rng(0))
        assert opposite.to_list() == [4, 3, 0, 2]
        assert not opposite.is_evaluated

    def test_out_of_range_genes_redrawn(self):
        """5 workers, d = 0.3 → pivot = floor(1.2) = 1; gene 3 → −2 → redrawn."""
        best = FoodSource(np.array([0, 1, 3]))
        rng = _ScriptedRng(integers=[4])
        assert opposite_food_source(best, 5, 0.3, rng).to_list() == [1, 0, 4]

    def test_coefficient_above_one(self):
        """5 workers, d = 1.5 → pivot = 6; gene 0 → 6 is redrawn, 3 → 3, 4 → 2."""
        best = FoodSource(np.array([0, 3, 4]))
        rng = _ScriptedRng(integers=[2])
        assert opposite_food_source(best, 5, 1.5, rng).to_list() == [2, 3, 2]

    def test_random_genes_stay_in_range(self):
        rng = np.random.default_rng(5)
        best = create_food_source(30, 6, rng)
        for d in (0.0, 0.3, 0.7, 1.0):
            opposite = opposite_food_source(best, 6, d, rng)
            assert opposite.assignment.min() >= 0
            assert opposite.assignment.max() <= 5

    def _hive(self, rng):
        # 4 light tasks on 3 workers; makespans 75, 100, 100, 75
        tasks = _tasks("light", "light", "light", "light")
        return _make_hive(
            [[1, 1, 1, 2], [1, 1, 1, 1], [1, 1, 1, 1], [2, 2, 2, 1]], 3, tasks, rng=rng
        )

    def test_better_opposite_replaces_worst(self):
        """d = 0 → pivot 0, every gene ≥ 1 is redrawn → [0, 1, 2, 0] (makespan 50)."""
        hive = self._hive(_ScriptedRng(integers=[0, 1, 2, 0]))
        best_before = hive[0]

        outcome = apply_opposition(hive, 0.0)

        assert outcome.accepted
        assert outcome.replaced_index == 1
        assert outcome.candidate_fitness > outcome.previous_best
        assert hive[1].to_list() == [0, 1, 2, 0]
        assert hive[1].makespan == pytest.approx(50.0)
        assert hive[0] is best_before

    def test_worse_opposite_discarded(self):
        hive = self._hive(_ScriptedRng(integers=[0, 0, 0, 0]))
        before = list(hive)

        outcome = apply_opposition(hive, 0.0)

        assert not outcome.accepted
        assert outcome.replaced_index is None
        assert list(hive) == before

    def test_equal_opposite_discarded(self):
        """Strictly better only: a tie with the best is rejected."""
        hive = self._hive(_ScriptedRng(integers=[0, 0, 0, 1]))
        outcome = apply_opposition(hive, 0.0)
        assert outcome.candidate_fitness == pytest.approx(outcome.previous_best)
        assert not outcome.accepted
