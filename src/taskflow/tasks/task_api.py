# src/taskflow/tasks/task_api.py

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..core.state import AppState
from ..graph.dependency_graph import is_ready
from ..recurrence.projector import expand_with_virtual_occurrences
from .task_models import Task, TaskStatus, TaskSummary, VirtualOccurrence

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class StatusUpdate:
    task: Task
    next_task: Task | None = None
    warning: str | None = None


def update_task_status(state: AppState, task_id: int, new_status: TaskStatus) -> StatusUpdate:
    """
    Apply a status change and run the recurrence hook.

    The successor of a recurring task is only materialized on a real
    not-done -> done transition, decided by the store in the same write, so
    repeating "done" (even concurrently) never duplicates it.
    A failed materialization is reported in `warning`; the status change stands.
    """
    new_status = TaskStatus(new_status)
    if new_status != TaskStatus.DONE:
        return StatusUpdate(task=state.task_store.update_task_status(task_id, new_status))

    updated, transitioned = state.task_store.mark_done(task_id)
    if not transitioned:
        logger.debug("Task %s already done; recurrence hook skipped", task_id)
        return StatusUpdate(task=updated)

    result = state.materializer.on_completed(updated, new_status=new_status)
    if result.failed:
        logger.warning("Task %s done; next occurrence not created: %s", task_id, result.error)
    return StatusUpdate(task=updated, next_task=result.created, warning=result.warning)


def complete_task(state: AppState, task_id: int) -> StatusUpdate:
    return update_task_status(state, task_id, TaskStatus.DONE)


def list_upcoming(state: AppState, task_ids: Iterable[int] | None = None) -> list[Task | VirtualOccurrence]:
    """
    Tasks followed by their projected occurrences (calendar feed).

    Without `task_ids`, every task in the store is included.
    """
    if task_ids is None:
        tasks = state.task_store.list_tasks()
    else:
        tasks = [state.task_store.get_task(tid) for tid in task_ids]
    return expand_with_virtual_occurrences(
        tasks,
        state.projection_limit,
        policy=state.monthly_policy,
    )


def blockers_with_readiness(state: AppState, task_id: int) -> tuple[list[TaskSummary], bool]:
    """Blockers of `task_id` plus whether the task is ready to start."""
    blockers = state.graph.blockers_of(task_id)
    return blockers, is_ready(blockers)
