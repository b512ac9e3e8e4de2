# tests/test_task_store.py

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import pytest

from taskflow.tasks.task_models import (
    EdgeConstraintError,
    EdgeErrorKind,
    Recurrence,
    TaskNotFound,
    TaskStatus,
)
from taskflow.tasks.task_store import TaskStore


def test_create_and_get_roundtrip(store: TaskStore) -> None:
    task = store.create_task(
        {
            "title": "  Standup  ",
            "due_date": "2024-01-10",
            "scheduled_time": "2024-01-10T09:15:00",
            "recurrence": "weekly",
            "recurrence_end": date(2024, 6, 30),
            "priority": "low",
            "category_id": "work",
            "description": "",
        }
    )

    loaded = store.get_task(task.id)
    assert loaded.title == "Standup"
    assert loaded.status is TaskStatus.TODO
    assert loaded.due_date == date(2024, 1, 10)
    assert loaded.scheduled_time == datetime(2024, 1, 10, 9, 15)
    assert loaded.recurrence is Recurrence.WEEKLY
    assert loaded.recurrence_end == date(2024, 6, 30)
    assert loaded.duration == 60
    assert loaded.description is None  # empty string sanitized
    assert loaded.payload == {"category_id": "work"}  # unknown key folded into payload


def test_create_validates_input(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        store.create_task({"title": "   "})
    with pytest.raises(ValueError):
        store.create_task({"title": "x", "status": "archived"})
    with pytest.raises(ValueError):
        store.create_task({"title": "x", "recurrence": "hourly"})


def test_update_status_stamps_and_clears_completed_at(store: TaskStore) -> None:
    task = store.create_task({"title": "Ship"})

    done = store.update_task_status(task.id, TaskStatus.DONE)
    assert done.status is TaskStatus.DONE
    assert done.completed_at is not None

    reopened = store.update_task_status(task.id, TaskStatus.TODO)
    assert reopened.completed_at is None


def test_unknown_task_raises(store: TaskStore) -> None:
    with pytest.raises(TaskNotFound):
        store.get_task(404)
    with pytest.raises(TaskNotFound):
        store.update_task_status(404, TaskStatus.DONE)


def test_mark_done_transitions_once(store: TaskStore) -> None:
    task = store.create_task({"title": "Ship"})

    done, transitioned = store.mark_done(task.id)
    assert transitioned
    assert done.status is TaskStatus.DONE
    assert done.completed_at is not None

    again, transitioned = store.mark_done(task.id)
    assert not transitioned
    assert again.completed_at == done.completed_at

    with pytest.raises(TaskNotFound):
        store.mark_done(404)


def test_edge_constraints_enforced_by_storage(store: TaskStore) -> None:
    a = store.create_task({"title": "A"})
    b = store.create_task({"title": "B"})
    store.create_edge(a.id, b.id)

    with pytest.raises(EdgeConstraintError) as dup:
        store.create_edge(a.id, b.id)
    assert dup.value.kind is EdgeErrorKind.DUPLICATE_EDGE

    with pytest.raises(EdgeConstraintError) as rev:
        store.create_edge(b.id, a.id)
    assert rev.value.kind is EdgeErrorKind.CYCLIC_DEPENDENCY

    with pytest.raises(EdgeConstraintError) as loop:
        store.create_edge(a.id, a.id)
    assert loop.value.kind is EdgeErrorKind.SELF_DEPENDENCY

    with pytest.raises(EdgeConstraintError) as missing:
        store.create_edge(a.id, 999)
    assert missing.value.kind is EdgeErrorKind.UNKNOWN_TASK

    assert len(store.list_edges_blocking(a.id)) == 1


def test_edge_listing_directions(store: TaskStore) -> None:
    a = store.create_task({"title": "A"})
    b = store.create_task({"title": "B"})
    c = store.create_task({"title": "C"})
    e1 = store.create_edge(a.id, b.id)  # b blocks a
    store.create_edge(c.id, b.id)  # b blocks c

    assert [e.blocker_id for e in store.list_edges_blocking(a.id)] == [b.id]
    assert sorted(e.task_id for e in store.list_edges_blocked_by(b.id)) == [a.id, c.id]

    blockers = store.list_blockers_of(a.id)
    assert [(s.id, s.title, s.edge_id) for s in blockers] == [(b.id, "B", e1.id)]
    assert sorted(s.id for s in store.list_blocked_by(b.id)) == [a.id, c.id]

    assert store.find_edge(a.id, b.id) == store.get_edge(e1.id)
    assert store.delete_edge(e1.id)
    assert not store.delete_edge(e1.id)
    assert store.get_edge(e1.id) is None


def test_delete_task_cascades_edges(store: TaskStore) -> None:
    a = store.create_task({"title": "A"})
    b = store.create_task({"title": "B"})
    store.create_edge(a.id, b.id)

    assert store.delete_task(b.id)
    assert store.list_blockers_of(a.id) == []
    assert store.list_edges_blocking(a.id) == []


def test_schema_survives_reopen(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    first = TaskStore(db)
    task = first.create_task({"title": "persisted", "payload": {"k": [1, 2]}})

    second = TaskStore(db)
    assert second.get_task(task.id).payload == {"k": [1, 2]}
    assert second.count_tasks() == 1


def test_list_tasks_orders_by_date(store: TaskStore) -> None:
    store.create_task({"title": "undated"})
    store.create_task({"title": "late", "due_date": "2024-05-01"})
    store.create_task({"title": "early", "scheduled_time": "2024-01-01T08:00:00"})

    assert [t.title for t in store.list_tasks()] == ["early", "late", "undated"]
    assert store.list_tasks(status=TaskStatus.DONE) == []
