# src/taskflow/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Notes:
    - "blocked" is a manual/UI value; readiness derived from the dependency
      graph is never written into this field.
    """

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"
    CANCELLED = "cancelled"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(raw)
        except ValueError:
            return cls.TODO

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.DONE, TaskStatus.CANCELLED)


class Recurrence(StrEnum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

    @classmethod
    def from_db(cls, raw: str | None) -> Recurrence:
        if not raw:
            return cls.NONE
        try:
            return cls(raw)
        except ValueError:
            return cls.NONE


@dataclass(slots=True)
class Task:
    id: int
    status: TaskStatus
    title: str
    description: str | None = None

    due_date: date | None = None
    scheduled_time: datetime | None = None
    duration: int = 60

    recurrence: Recurrence = Recurrence.NONE
    recurrence_end: date | None = None

    priority: str | None = None
    # Opaque descriptive fields (category, project, context, ...).
    payload: dict[str, Any] = field(default_factory=dict)

    completed_at: float | None = None
    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not Recurrence.NONE


@dataclass(slots=True, frozen=True)
class TaskSummary:
    """Minimal view of a task as seen from the other end of a dependency edge."""

    id: int
    status: TaskStatus
    title: str = ""
    edge_id: int | None = None


@dataclass(slots=True, frozen=True)
class DependencyEdge:
    id: int
    task_id: int  # the blocked task
    blocker_id: int  # must be done first
    created_at: float = 0.0


@dataclass(slots=True, frozen=True)
class VirtualOccurrence:
    """
    A projected, never persisted, future instance of a recurring task.

    The id is a string ("<original>_virtual_<index>") so it can never collide
    with the integer ids handed out by the store.
    """

    id: str
    original_task_id: int
    index: int

    title: str
    description: str | None
    status: TaskStatus
    due_date: date
    scheduled_time: datetime | None
    duration: int
    recurrence: Recurrence
    recurrence_end: date | None
    priority: str | None
    payload: dict[str, Any]

    is_virtual: bool = True


# ---- errors ----


class TaskNotFound(LookupError):
    def __init__(self, task_id: object) -> None:
        super().__init__(f"task {task_id!r} not found")
        self.task_id = task_id


class EdgeErrorKind(StrEnum):
    SELF_DEPENDENCY = "self_dependency"
    CYCLIC_DEPENDENCY = "cyclic_dependency"
    DUPLICATE_EDGE = "duplicate_edge"
    UNKNOWN_TASK = "unknown_task"


EDGE_ERROR_MESSAGES: dict[EdgeErrorKind, str] = {
    EdgeErrorKind.SELF_DEPENDENCY: "A task cannot block itself",
    EdgeErrorKind.CYCLIC_DEPENDENCY: "Circular dependency detected: this would create a cycle",
    EdgeErrorKind.DUPLICATE_EDGE: "This blocker already exists",
    EdgeErrorKind.UNKNOWN_TASK: "Both tasks must exist",
}


class EdgeConstraintError(ValueError):
    """Raised by a DependencyRepo when storage rejects an edge."""

    def __init__(self, kind: EdgeErrorKind, detail: str = "") -> None:
        super().__init__(detail or EDGE_ERROR_MESSAGES[kind])
        self.kind = kind


class MaterializationFailed(RuntimeError):
    """The next occurrence of a recurring task could not be created."""

    def __init__(self, source_task_id: object, cause: BaseException | None = None) -> None:
        super().__init__(f"could not create next occurrence of task {source_task_id!r}")
        self.source_task_id = source_task_id
        self.cause = cause
