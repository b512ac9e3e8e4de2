# src/taskflow/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The recurrence and dependency services depend on Protocols instead of the
concrete SQLite store. This keeps persistence swappable (a remote record
store, an in-memory fake in tests) without touching the algorithms.
"""

from collections.abc import Mapping
from typing import Any, Protocol

from ..tasks.task_models import DependencyEdge, Task, TaskStatus, TaskSummary


class TaskRepo(Protocol):
    # Reads
    def get_task(self, task_id: int) -> Task: ...
    def list_blockers_of(self, task_id: int) -> list[TaskSummary]: ...
    def list_blocked_by(self, task_id: int) -> list[TaskSummary]: ...

    # Writes
    def create_task(self, fields: Mapping[str, Any]) -> Task: ...
    def update_task_status(self, task_id: int, new_status: TaskStatus) -> Task: ...
    def mark_done(self, task_id: int) -> tuple[Task, bool]: ...


class DependencyRepo(Protocol):
    """
    Edge storage.

    Naming follows the blocked task's point of view:
    - list_edges_blocking(t):   edges with task_id == t (t's blockers)
    - list_edges_blocked_by(t): edges with blocker_id == t (tasks t blocks)

    create_edge raises EdgeConstraintError when storage rejects the pair.
    """

    def create_edge(self, task_id: int, blocker_id: int) -> DependencyEdge: ...
    def delete_edge(self, edge_id: int) -> bool: ...
    def get_edge(self, edge_id: int) -> DependencyEdge | None: ...
    def find_edge(self, task_id: int, blocker_id: int) -> DependencyEdge | None: ...
    def list_edges_blocking(self, task_id: int) -> list[DependencyEdge]: ...
    def list_edges_blocked_by(self, task_id: int) -> list[DependencyEdge]: ...
