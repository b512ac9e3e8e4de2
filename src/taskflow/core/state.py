# src/taskflow/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..graph.dependency_graph import DependencyGraphService
from ..recurrence.dates import MonthlyPolicy
from ..recurrence.materializer import RecurrenceMaterializer
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    task_store: TaskStore
    graph: DependencyGraphService
    materializer: RecurrenceMaterializer

    @property
    def monthly_policy(self) -> MonthlyPolicy:
        return self.materializer.policy

    @property
    def projection_limit(self) -> int:
        return int(getattr(self.settings, "projection_max_occurrences", 50))
