# src/taskflow/recurrence/materializer.py

from __future__ import annotations

"""
Recurrence materializer.

Hooked into the status update: when an instance of a recurring series is
marked done, exactly one successor task is created (or none once the series
has passed its recurrence_end).

Partial-failure policy ("the close wins"):
- the completion of the source task is the primary mutation and is never
  rolled back here,
- a failed create is logged and reported as a non-fatal warning on the result.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from ..core.ports import TaskRepo
from ..tasks.task_models import MaterializationFailed, Task, TaskStatus
from .dates import MonthlyPolicy, anchor_date, exceeds_end, step, with_time_of

logger = logging.getLogger(__name__)

PARENT_KEY = "recurrence_parent_id"


@dataclass(slots=True, frozen=True)
class MaterializationResult:
    created: Task | None = None
    next_date: date | None = None
    error: MaterializationFailed | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def series_ended(self) -> bool:
        """The step landed after recurrence_end, so the series is over."""
        return self.created is None and self.error is None and self.next_date is not None

    @property
    def warning(self) -> str | None:
        if self.error is None:
            return None
        return "Task completed, but the next occurrence could not be created."


class RecurrenceMaterializer:
    def __init__(self, tasks: TaskRepo, *, policy: MonthlyPolicy = MonthlyPolicy.CLAMP) -> None:
        self._tasks = tasks
        self._policy = policy

    @property
    def policy(self) -> MonthlyPolicy:
        return self._policy

    def next_date(self, task: Task) -> date | None:
        if not task.is_recurring:
            return None
        anchor = anchor_date(task.due_date, task.scheduled_time)
        if anchor is None:
            return None
        return step(anchor, task.recurrence, self._policy)

    def next_occurrence_fields(self, task: Task) -> dict[str, Any] | None:
        """
        Fields of the successor task, or None when nothing should be created.

        Pure: reads `task`, never the store.
        """
        nxt = self.next_date(task)
        if nxt is None or exceeds_end(nxt, task.recurrence_end):
            return None

        payload = dict(task.payload)
        payload[PARENT_KEY] = task.id

        return {
            "title": task.title,
            "description": task.description,
            "status": TaskStatus.TODO,
            "priority": task.priority,
            "due_date": nxt,
            "scheduled_time": with_time_of(nxt, task.scheduled_time),
            "duration": task.duration,
            "recurrence": task.recurrence,
            "recurrence_end": task.recurrence_end,
            "payload": payload,
        }

    def on_completed(
        self,
        task: Task,
        *,
        new_status: TaskStatus = TaskStatus.DONE,
    ) -> MaterializationResult:
        if new_status != TaskStatus.DONE:
            return MaterializationResult()

        nxt = self.next_date(task)
        if nxt is None:
            return MaterializationResult()

        fields = self.next_occurrence_fields(task)
        if fields is None:
            logger.info(
                "Recurring series ended task_id=%s next=%s end=%s",
                task.id,
                nxt,
                task.recurrence_end,
            )
            return MaterializationResult(next_date=nxt)

        try:
            created = self._tasks.create_task(fields)
        except Exception as e:
            logger.exception("Failed to create next occurrence task_id=%s next=%s", task.id, nxt)
            return MaterializationResult(next_date=nxt, error=MaterializationFailed(task.id, e))

        logger.info(
            "Materialized next occurrence task_id=%s -> new_id=%s due=%s",
            task.id,
            created.id,
            nxt,
        )
        return MaterializationResult(created=created, next_date=nxt)
