"""
cloud_scheduler/shared/models.py
────────────────────────────────
Data structures shared by the bee-colony engine and the tooling that calls it.

Design philosophy
-----------------
Every model answers one question: "What does the optimiser *need to know*
about this thing in order to score an assignment?"

A task only contributes its weight class. Everything else (execution time,
per-task cost) is derived from fixed lookup tables in abc_core/fitness.py.

Reading guide
-------------
Read top-to-bottom. Each model builds on the ones above it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 1: ENUMERATIONS
# ─────────────────────────────────────────────────────────────────────────────

class WeightClass(str, Enum):
    """
    Workload class of a task.

    Each class maps to a processing-power unit (MIPS) used to derive the
    task's execution time:

    LIGHT   → 400 MIPS
    MEDIUM  → 500 MIPS
    HEAVY   → 600 MIPS
    """
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"


# Keys are plain strings: a str-Enum member hashes by name, not by value.
WEIGHT_TO_MIPS = {
    WeightClass.LIGHT.value: 400,
    WeightClass.MEDIUM.value: 500,
    WeightClass.HEAVY.value: 600,
}
"""Fixed processing-power table (MIPS per weight class)."""

DEFAULT_MIPS: int = 500
"""Processing power used for any weight class not in WEIGHT_TO_MIPS."""

WEIGHT_CLASS_ALIASES = {
    "ringan": WeightClass.LIGHT.value,
    "sedang": WeightClass.MEDIUM.value,
    "berat": WeightClass.HEAVY.value,
}
"""Labels emitted by the legacy simulation task generators."""


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 2: TASKS
# ─────────────────────────────────────────────────────────────────────────────

class Task(BaseModel):
    """
    One unit of work to be placed on a worker.

    Immutable. Supplied by the caller as an ordered sequence; position in
    the sequence is the task's index in every assignment.

    Fields:
        weight_class → "light" | "medium" | "heavy". Any other string is
                       accepted and treated as DEFAULT_MIPS. Also read from
                       the "weightClass" and legacy "weight" keys.
    """
    model_config = ConfigDict(frozen=True)

    weight_class: str = Field(
        ...,
        validation_alias=AliasChoices("weight_class", "weightClass", "weight"),
        description="Workload class of this task",
    )

    @field_validator("weight_class", mode="before")
    @classmethod
    def _normalise_weight_class(cls, value: Any) -> Any:
        if isinstance(value, WeightClass):
            return value.value
        if isinstance(value, str):
            return WEIGHT_CLASS_ALIASES.get(value, value)
        return value

    @property
    def processing_power(self) -> int:
        """MIPS for this task's weight class (DEFAULT_MIPS if unrecognised)."""
        return WEIGHT_TO_MIPS.get(self.weight_class, DEFAULT_MIPS)


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 3: CONFIGURATION
# ─────────────────────────────────────────────────────────────────────────────

DEFAULT_POPULATION_SIZE: int = 30
"""Swarm size when the caller does not set one. 15 employed + 15 onlookers."""

DEFAULT_ITERATIONS: int = 5
"""Colony cycles when the caller does not set them."""

DEFAULT_OPPOSITION_COEFFICIENT: float = 0.3
"""Reflection coefficient d for opposition-based learning."""


class ColonyOptions(BaseModel):
    """
    Per-run tuning for the bee colony. All fields optional.

    Fields:
        population_size         → Swarm size. Odd values are bumped to the
                                  next even number so the swarm splits 50/50
                                  into employed and onlooker bees.
        iterations              → Fixed number of colony cycles. No early stop.
        use_opposition_learning → Run the opposition enhancer after each scout
                                  phase.
        opposition_coefficient  → d in  opposite = floor((min + max) × d) − x.
        seed                    → Seeds the random generator when the caller
                                  does not pass one explicitly.

    Each field is also accepted under its camelCase name (populationSize,
    useOppositionLearning, oppositionCoefficient). Unknown keys are rejected
    so a misspelt option cannot silently fall back to its default.

    opposition_coefficient has no upper bound: genes the reflection pushes
    outside the worker range are redrawn at random.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    population_size: int = Field(
        DEFAULT_POPULATION_SIZE, ge=1, alias="populationSize",
        description="Swarm size (forced even)"
    )
    iterations: int = Field(
        DEFAULT_ITERATIONS, ge=0,
        description="Number of colony cycles"
    )
    use_opposition_learning: bool = Field(
        False, alias="useOppositionLearning",
        description="Apply opposition-based learning after the scout phase"
    )
    opposition_coefficient: float = Field(
        DEFAULT_OPPOSITION_COEFFICIENT, ge=0.0, alias="oppositionCoefficient",
        description="Reflection coefficient d for opposition-based learning"
    )
    seed: Optional[int] = Field(
        None,
        description="Seed for numpy.random.default_rng. None = OS entropy."
    )

    @property
    def effective_population_size(self) -> int:
        """population_size rounded up to the next even number."""
        if self.population_size % 2 == 0:
            return self.population_size
        return self.population_size + 1


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 4: RESULTS
# ─────────────────────────────────────────────────────────────────────────────

class FitnessReport(BaseModel):
    """
    Why a food source scored what it scored.

    Written only by the fitness evaluator and attached to the food source it
    evaluated. Frozen: nothing downstream may edit it.

    Fields:
        fitness     → 1/(makespan + 1) + 1/(total_cost + 0.1). Higher is better.
        makespan    → Largest accumulated execution time across workers.
                      +inf when no worker received a task.
        total_cost  → Sum of every worker's accumulated resource cost.
    """
    model_config = ConfigDict(frozen=True)

    fitness: float
    makespan: float
    total_cost: float


class ColonyResult(BaseModel):
    """
    Summary of one BeeColony.run() call.

    best_assignment is the value run_optimization() returns; the remaining
    fields are reporting extras for simulation tooling.
    """
    best_assignment: List[int] = Field(..., description="Worker index per task")
    best_fitness: float
    makespan: float
    total_cost: float

    population_size: int = Field(..., ge=2)
    employed_count: int = Field(..., ge=1)
    limit: int = Field(..., ge=0, description="Scout abandonment threshold")
    iterations: int = Field(..., ge=0)

    history: List[float] = Field(
        default_factory=list,
        description="Best-so-far fitness after each iteration (non-decreasing)"
    )
    scout_replacements: int = Field(0, ge=0)
    opposition_replacements: int = Field(0, ge=0)
    run_ms: float = Field(0.0, ge=0.0)
