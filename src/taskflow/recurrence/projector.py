# src/taskflow/recurrence/projector.py

"""
Recurrence projector.

Turns one recurring task into a bounded run of VirtualOccurrence previews for
calendar/agenda rendering. Nothing here is persisted: the real next instance
is created by the materializer when the current one is completed.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from ..tasks.task_models import Task, TaskStatus, VirtualOccurrence
from .dates import MonthlyPolicy, anchor_date, exceeds_end, step, with_time_of

DEFAULT_MAX_OCCURRENCES = 50


def virtual_id(task_id: object, index: int) -> str:
    return f"{task_id}_virtual_{index}"


class Projection:
    """
    Lazy, finite, restartable sequence of virtual occurrences.

    Every iter() starts from the task's anchor again; the task is only read.
    """

    __slots__ = ("_task", "_max", "_policy")

    def __init__(self, task: Task, max_occurrences: int, policy: MonthlyPolicy) -> None:
        self._task = task
        self._max = max(0, int(max_occurrences))
        self._policy = policy

    def __iter__(self) -> Iterator[VirtualOccurrence]:
        task = self._task
        if not task.is_recurring or task.status.is_terminal or self._max == 0:
            return

        current = anchor_date(task.due_date, task.scheduled_time)
        if current is None:
            return

        for index in range(self._max):
            nxt = step(current, task.recurrence, self._policy)
            if nxt is None or exceeds_end(nxt, task.recurrence_end):
                return
            yield VirtualOccurrence(
                id=virtual_id(task.id, index),
                original_task_id=task.id,
                index=index,
                title=task.title,
                description=task.description,
                status=TaskStatus.TODO,
                due_date=nxt,
                scheduled_time=with_time_of(nxt, task.scheduled_time),
                duration=task.duration,
                recurrence=task.recurrence,
                recurrence_end=task.recurrence_end,
                priority=task.priority,
                payload=task.payload,
            )
            current = nxt

    def __repr__(self) -> str:
        return f"Projection(task_id={self._task.id!r}, max={self._max}, policy={self._policy.value})"


def project(
    task: Task,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
    *,
    policy: MonthlyPolicy = MonthlyPolicy.CLAMP,
) -> Projection:
    """
    Project `task` into future occurrences.

    Empty when the task is not recurring, is done/cancelled, or has neither
    due_date nor scheduled_time to anchor on.
    """
    return Projection(task, max_occurrences, policy)


def expand_with_virtual_occurrences(
    tasks: Iterable[Task],
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
    *,
    policy: MonthlyPolicy = MonthlyPolicy.CLAMP,
) -> list[Task | VirtualOccurrence]:
    """Each task followed by its projected occurrences, in input order."""
    out: list[Task | VirtualOccurrence] = []
    for task in tasks:
        out.append(task)
        if task.is_recurring:
            out.extend(project(task, max_occurrences, policy=policy))
    return out
