# src/taskflow/graph/dependency_graph.py

from __future__ import annotations

"""
Dependency ("blocked by") graph.

An edge (task_id, blocker_id) means task_id cannot start until blocker_id is done.

Validation happens in two layers:
- add_edge pre-checks self-loops, cycles and duplicates and returns a typed
  EdgeError (never raises for user-correctable input),
- the store enforces self-loop, uniqueness and reverse-edge constraints at
  insert time; a violation there surfaces as the same typed EdgeError.

Readiness is computed at read time and never stored on the task.
"""

import logging
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from ..core.ports import DependencyRepo, TaskRepo
from ..tasks.task_models import (
    EDGE_ERROR_MESSAGES,
    DependencyEdge,
    EdgeConstraintError,
    EdgeErrorKind,
    TaskNotFound,
    TaskStatus,
    TaskSummary,
)

logger = logging.getLogger(__name__)


class CycleCheck(StrEnum):
    DIRECT = "direct"  # only A<->B
    REACHABILITY = "reachability"  # any A->...->A

    @classmethod
    def parse(cls, raw: str | None) -> CycleCheck:
        if not raw:
            return cls.REACHABILITY
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.REACHABILITY


class Readiness(StrEnum):
    READY = "ready"
    BLOCKED = "blocked"


@dataclass(slots=True, frozen=True)
class EdgeError:
    kind: EdgeErrorKind
    message: str

    @classmethod
    def of(cls, kind: EdgeErrorKind) -> EdgeError:
        return cls(kind=kind, message=EDGE_ERROR_MESSAGES[kind])


@dataclass(slots=True, frozen=True)
class EdgeResult:
    edge: DependencyEdge | None = None
    error: EdgeError | None = None
    removed: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


# ---- pure readiness queries ----


def is_blocked(blockers: Sequence[TaskSummary]) -> bool:
    return any(b.status != TaskStatus.DONE for b in blockers)


def is_ready(blockers: Sequence[TaskSummary]) -> bool:
    return all(b.status == TaskStatus.DONE for b in blockers)


def readiness(blockers: Sequence[TaskSummary]) -> Readiness:
    return Readiness.BLOCKED if is_blocked(blockers) else Readiness.READY


# ---- service ----


class DependencyGraphService:
    def __init__(
        self,
        tasks: TaskRepo,
        edges: DependencyRepo,
        *,
        cycle_check: CycleCheck = CycleCheck.REACHABILITY,
    ) -> None:
        self._tasks = tasks
        self._edges = edges
        self._cycle_check = cycle_check

    @property
    def cycle_check(self) -> CycleCheck:
        return self._cycle_check

    def _reject(self, kind: EdgeErrorKind, task_id: int, blocker_id: int) -> EdgeResult:
        logger.info("Edge rejected kind=%s task_id=%s blocker_id=%s", kind.value, task_id, blocker_id)
        return EdgeResult(error=EdgeError.of(kind))

    def _exists(self, task_id: int) -> bool:
        try:
            self._tasks.get_task(task_id)
        except TaskNotFound:
            return False
        return True

    def _reaches(self, start: int, target: int) -> bool:
        """True if `target` is a (transitive) blocker of `start`."""
        seen = {start}
        queue = deque([start])
        while queue:
            node = queue.popleft()
            for edge in self._edges.list_edges_blocking(node):
                nxt = edge.blocker_id
                if nxt == target:
                    return True
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)
        return False

    def add_edge(self, task_id: int, blocker_id: int) -> EdgeResult:
        """
        Make `blocker_id` block `task_id`.

        Check order: self-dependency, unknown task, cycle, duplicate.
        The graph is unchanged on any failure.
        """
        if task_id == blocker_id:
            return self._reject(EdgeErrorKind.SELF_DEPENDENCY, task_id, blocker_id)

        if not task_id or not blocker_id or not self._exists(task_id) or not self._exists(blocker_id):
            return self._reject(EdgeErrorKind.UNKNOWN_TASK, task_id, blocker_id)

        if self._edges.find_edge(blocker_id, task_id) is not None:
            return self._reject(EdgeErrorKind.CYCLIC_DEPENDENCY, task_id, blocker_id)

        # blocker already (transitively) waits on task -> the new edge closes a loop
        if self._cycle_check is CycleCheck.REACHABILITY and self._reaches(blocker_id, task_id):
            return self._reject(EdgeErrorKind.CYCLIC_DEPENDENCY, task_id, blocker_id)

        if self._edges.find_edge(task_id, blocker_id) is not None:
            return self._reject(EdgeErrorKind.DUPLICATE_EDGE, task_id, blocker_id)

        try:
            edge = self._edges.create_edge(task_id, blocker_id)
        except EdgeConstraintError as e:
            # Lost a race with a concurrent writer; storage kept the invariant.
            return self._reject(e.kind, task_id, blocker_id)

        logger.info("Edge added id=%s task_id=%s blocker_id=%s", edge.id, task_id, blocker_id)
        return EdgeResult(edge=edge)

    def remove_edge(self, edge_id: int) -> EdgeResult:
        """Idempotent: an unknown id is a successful no-op."""
        edge = self._edges.get_edge(edge_id)
        if edge is None:
            logger.debug("remove_edge: no edge id=%s", edge_id)
            return EdgeResult()
        removed = self._edges.delete_edge(edge_id)
        if removed:
            logger.info("Edge removed id=%s task_id=%s blocker_id=%s", edge_id, edge.task_id, edge.blocker_id)
        return EdgeResult(edge=edge, removed=removed)

    # ---- read helpers ----

    def blockers_of(self, task_id: int) -> list[TaskSummary]:
        return self._tasks.list_blockers_of(task_id)

    def blocked_by(self, task_id: int) -> list[TaskSummary]:
        """Tasks that `task_id` blocks."""
        return self._tasks.list_blocked_by(task_id)

    def readiness_of(self, task_id: int) -> Readiness:
        return readiness(self.blockers_of(task_id))
