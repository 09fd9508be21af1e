"""
cloud_scheduler/shared/telemetry.py
───────────────────────────────────
Structured progress events emitted by the bee colony.

Why events and not print()
--------------------------
The colony is used inside simulation tooling that decides for itself how
progress is rendered (console banners, CSV traces, nothing at all). The
engine therefore never writes output. It hands a ColonyEvent to an optional
callback at each notable point of the run:

    CONFIGURED           → once, before the initial population is built
    PHASE_STARTED        → before each employed / onlooker / scout / opposition phase
    BEST_UPDATED         → the best-so-far food source improved
    SCOUT_DISPATCHED     → an abandoned food source was replaced
    OPPOSITION_APPLIED   → the opposition enhancer ran (accepted or not)
    ITERATION_COMPLETED  → end of one colony cycle
    FINISHED             → run complete

ColonyHistory is a ready-made callback that simply keeps everything.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ColonyEventType(str, Enum):
    CONFIGURED = "configured"
    PHASE_STARTED = "phase-started"
    BEST_UPDATED = "best-updated"
    SCOUT_DISPATCHED = "scout-dispatched"
    OPPOSITION_APPLIED = "opposition-applied"
    ITERATION_COMPLETED = "iteration-completed"
    FINISHED = "finished"


class ColonyPhase(str, Enum):
    EMPLOYED = "employed"
    ONLOOKER = "onlooker"
    SCOUT = "scout"
    OPPOSITION = "opposition"


class ColonyEvent(BaseModel):
    """
    One progress notification from a running colony.

    Only the fields relevant to event_type are populated; the rest stay None.

    Fields:
        event_type      → What happened.
        iteration       → 1-based colony cycle. 0 for CONFIGURED.
        phase           → PHASE_STARTED only.
        index           → Population slot touched (scout / opposition).
        fitness         → New fitness (best, scout, or opposition candidate).
        previous_best   → Best fitness before an opposition attempt.
        makespan        → BEST_UPDATED / FINISHED.
        total_cost      → BEST_UPDATED / FINISHED.
        trials          → Trials of the abandoned source (SCOUT_DISPATCHED).
        limit           → Abandonment threshold (CONFIGURED, SCOUT_DISPATCHED).
        accepted        → OPPOSITION_APPLIED: did the candidate enter the swarm?
        population_size, employed_count, dimensions, iterations
                        → CONFIGURED only.
    """
    event_type: ColonyEventType
    iteration: int = Field(0, ge=0)
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    phase: Optional[ColonyPhase] = None
    index: Optional[int] = None
    fitness: Optional[float] = None
    previous_best: Optional[float] = None
    makespan: Optional[float] = None
    total_cost: Optional[float] = None
    trials: Optional[int] = None
    limit: Optional[int] = None
    accepted: Optional[bool] = None

    population_size: Optional[int] = None
    employed_count: Optional[int] = None
    dimensions: Optional[int] = None
    iterations: Optional[int] = None


class ColonyHistory:
    """
    Callable event sink that records every ColonyEvent it receives.

    Usage:
        history = ColonyHistory()
        run_optimization(n_tasks, n_workers, tasks, on_event=history)
        history.best_fitness_trajectory   # one value per iteration
    """

    def __init__(self) -> None:
        self.events: List[ColonyEvent] = []

    def __call__(self, event: ColonyEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: ColonyEventType) -> List[ColonyEvent]:
        """All recorded events of one type, in emission order."""
        return [e for e in self.events if e.event_type == event_type]

    @property
    def best_fitness_trajectory(self) -> List[float]:
        """Best-so-far fitness reported at the end of each iteration."""
        return [
            e.fitness
            for e in self.of_type(ColonyEventType.ITERATION_COMPLETED)
            if e.fitness is not None
        ]

    @property
    def phase_sequence(self) -> List[ColonyPhase]:
        """Order in which phases started across the whole run."""
        return [
            e.phase
            for e in self.of_type(ColonyEventType.PHASE_STARTED)
            if e.phase is not None
        ]

    def __len__(self) -> int:
        return len(self.events)

    def __repr__(self) -> str:
        return f"ColonyHistory(events={len(self.events)})"
