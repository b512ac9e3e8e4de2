# src/taskflow/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any

from ..recurrence.dates import parse_local_date, parse_local_datetime
from .task_models import (
    DependencyEdge,
    EdgeConstraintError,
    EdgeErrorKind,
    Recurrence,
    Task,
    TaskNotFound,
    TaskStatus,
    TaskSummary,
)

logger = logging.getLogger(__name__)

# Columns create_task understands; anything else goes into payload.
_TASK_FIELDS = frozenset(
    {
        "title",
        "description",
        "status",
        "due_date",
        "scheduled_time",
        "duration",
        "recurrence",
        "recurrence_end",
        "priority",
        "payload",
    }
)

DEFAULT_DURATION = 60


class TaskStore:
    """
    SQLite store for tasks and their dependency edges.

    Implements both TaskRepo and DependencyRepo.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing task columns
    - add columns with ALTER TABLE only when needed

    Edge invariants are enforced by the database, not only by callers:
    - CHECK(task_id != blocker_id)
    - UNIQUE(task_id, blocker_id)
    - a trigger aborting the insert of (b, a) while (a, b) exists
    - ON DELETE CASCADE so deleting a task drops its edges

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        conn.execute("PRAGMA foreign_keys=ON")
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    status TEXT NOT NULL DEFAULT 'todo',
                    title TEXT NOT NULL,
                    description TEXT,
                    due_date TEXT,
                    scheduled_time TEXT,
                    duration INTEGER NOT NULL DEFAULT 60,
                    recurrence TEXT NOT NULL DEFAULT 'none',
                    recurrence_end TEXT,
                    priority TEXT,
                    payload TEXT NOT NULL DEFAULT '{}',
                    completed_at REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("duration", "INTEGER NOT NULL DEFAULT 60")
            add_col("recurrence", "TEXT NOT NULL DEFAULT 'none'")
            add_col("recurrence_end", "TEXT")
            add_col("priority", "TEXT")
            add_col("payload", "TEXT NOT NULL DEFAULT '{}'")
            add_col("completed_at", "REAL")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_dependencies (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    blocker_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    created_at REAL NOT NULL,
                    CHECK (task_id != blocker_id),
                    UNIQUE (task_id, blocker_id)
                )
                """
            )
            cur.execute(
                """
                CREATE TRIGGER IF NOT EXISTS trg_task_dependencies_no_reverse
                BEFORE INSERT ON task_dependencies
                WHEN EXISTS (
                    SELECT 1 FROM task_dependencies
                    WHERE task_id = NEW.blocker_id AND blocker_id = NEW.task_id
                )
                BEGIN
                    SELECT RAISE(ABORT, 'cyclic dependency');
                END
                """
            )

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status_due ON tasks(status, due_date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_deps_blocker ON task_dependencies(blocker_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _payload_to_str(payload: Mapping[str, Any] | None) -> str:
        if not payload:
            return "{}"
        try:
            return json.dumps(dict(payload), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise ValueError("payload must be JSON-serializable") from e

    @staticmethod
    def _str_to_payload(s: str | None) -> dict[str, Any]:
        if not s:
            return {}
        try:
            val = json.loads(s)
        except ValueError:
            logger.warning("Corrupt task payload ignored: %.80s", s)
            return {}
        return val if isinstance(val, dict) else {}

    @staticmethod
    def _date_to_str(d: date | None) -> str | None:
        return d.isoformat() if d is not None else None

    @staticmethod
    def _datetime_to_str(dt: datetime | None) -> str | None:
        return dt.isoformat() if dt is not None else None

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            status=TaskStatus.from_db(row["status"]),
            title=str(row["title"] or ""),
            description=row["description"],
            due_date=parse_local_date(row["due_date"]),
            scheduled_time=parse_local_datetime(row["scheduled_time"]),
            duration=int(row["duration"] if row["duration"] is not None else DEFAULT_DURATION),
            recurrence=Recurrence.from_db(row["recurrence"]),
            recurrence_end=parse_local_date(row["recurrence_end"]),
            priority=row["priority"],
            payload=self._str_to_payload(row["payload"]),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    @staticmethod
    def _row_to_edge(row: sqlite3.Row) -> DependencyEdge:
        return DependencyEdge(
            id=int(row["id"]),
            task_id=int(row["task_id"]),
            blocker_id=int(row["blocker_id"]),
            created_at=float(row["created_at"] or 0.0),
        )

    @staticmethod
    def _row_to_summary(row: sqlite3.Row) -> TaskSummary:
        return TaskSummary(
            id=int(row["id"]),
            status=TaskStatus.from_db(row["status"]),
            title=str(row["title"] or ""),
            edge_id=int(row["edge_id"]),
        )

    @staticmethod
    def _constraint_kind(err: sqlite3.IntegrityError) -> EdgeErrorKind | None:
        msg = str(err).lower()
        if "cyclic dependency" in msg:
            return EdgeErrorKind.CYCLIC_DEPENDENCY
        if "unique constraint" in msg:
            return EdgeErrorKind.DUPLICATE_EDGE
        if "check constraint" in msg:
            return EdgeErrorKind.SELF_DEPENDENCY
        if "foreign key constraint" in msg:
            return EdgeErrorKind.UNKNOWN_TASK
        return None

    @staticmethod
    def _normalize_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
        """
        Split incoming fields into known columns and payload.

        Empty strings become None; unknown keys are folded into payload.
        """
        clean = {k: (None if v == "" else v) for k, v in fields.items()}
        payload = dict(clean.pop("payload", None) or {})
        for key in [k for k in clean if k not in _TASK_FIELDS]:
            payload[key] = clean.pop(key)
        clean["payload"] = payload
        return clean

    # ---- tasks ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def create_task(self, fields: Mapping[str, Any]) -> Task:
        data = self._normalize_fields(fields)

        title = data.get("title")
        if not title or not str(title).strip():
            raise ValueError("title is required")

        status = TaskStatus(data.get("status") or TaskStatus.TODO)
        recurrence = Recurrence(data.get("recurrence") or Recurrence.NONE)
        duration = data.get("duration")
        duration = DEFAULT_DURATION if duration is None else int(duration)
        if duration < 0:
            raise ValueError("duration must be >= 0")

        due_date = parse_local_date(data.get("due_date"))
        scheduled_time = parse_local_datetime(data.get("scheduled_time"))
        recurrence_end = parse_local_date(data.get("recurrence_end"))

        now = time.time()
        completed_at = now if status is TaskStatus.DONE else None

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(
                    status, title, description,
                    due_date, scheduled_time, duration,
                    recurrence, recurrence_end,
                    priority, payload,
                    completed_at, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    status.value,
                    str(title).strip(),
                    data.get("description"),
                    self._date_to_str(due_date),
                    self._datetime_to_str(scheduled_time),
                    duration,
                    recurrence.value,
                    self._date_to_str(recurrence_end),
                    data.get("priority"),
                    self._payload_to_str(data["payload"]),
                    completed_at,
                    now,
                    now,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug(
                "Task added id=%s status=%s due=%s recurrence=%s",
                task_id,
                status.value,
                due_date,
                recurrence.value,
            )
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
            return self._row_to_task(row)
        finally:
            conn.close()

    def get_task(self, task_id: int) -> Task:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise TaskNotFound(task_id)
        return self._row_to_task(row)

    def list_tasks(self, *, status: TaskStatus | None = None, limit: int = 500) -> list[Task]:
        """Tasks ordered by their date (due_date, else scheduled_time, else creation)."""
        sql = "SELECT * FROM tasks"
        params: list[Any] = []
        if status is not None:
            sql += " WHERE status = ?"
            params.append(status.value)
        sql += " ORDER BY COALESCE(due_date, substr(scheduled_time, 1, 10)) IS NULL, "
        sql += "COALESCE(due_date, substr(scheduled_time, 1, 10)) ASC, created_at ASC LIMIT ?"
        params.append(int(limit))

        conn = self._get_conn()
        try:
            return [self._row_to_task(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()

    def update_task_status(self, task_id: int, new_status: TaskStatus) -> Task:
        """
        Set status; completed_at is stamped on done and cleared otherwise.
        """
        new_status = TaskStatus(new_status)
        now = time.time()
        completed_at = now if new_status is TaskStatus.DONE else None

        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE tasks SET status = ?, completed_at = ?, updated_at = ? WHERE id = ?",
                (new_status.value, completed_at, now, int(task_id)),
            )
            conn.commit()
            if cur.rowcount == 0:
                raise TaskNotFound(task_id)
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task(row)
        finally:
            conn.close()

    def mark_done(self, task_id: int) -> tuple[Task, bool]:
        """
        Move a task to done unless it already is.

        Returns (task, transitioned). The status check and the write are one
        conditional UPDATE, so of two concurrent calls only one sees True.
        """
        now = time.time()

        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE tasks SET status = ?, completed_at = ?, updated_at = ? WHERE id = ? AND status != ?",
                (TaskStatus.DONE.value, now, now, int(task_id), TaskStatus.DONE.value),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            if row is None:
                raise TaskNotFound(task_id)
            return self._row_to_task(row), cur.rowcount == 1
        finally:
            conn.close()

    def delete_task(self, task_id: int) -> bool:
        """Delete a task and (via cascade) every dependency edge mentioning it."""
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            deleted = cur.rowcount == 1
            if deleted:
                logger.debug("Task deleted id=%s", task_id)
            return deleted
        finally:
            conn.close()

    def list_blockers_of(self, task_id: int) -> list[TaskSummary]:
        """Tasks that block `task_id`, each tagged with the linking edge id."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                SELECT t.id, t.status, t.title, d.id AS edge_id
                FROM task_dependencies d
                JOIN tasks t ON t.id = d.blocker_id
                WHERE d.task_id = ?
                ORDER BY d.id ASC
                """,
                (int(task_id),),
            )
            return [self._row_to_summary(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def list_blocked_by(self, task_id: int) -> list[TaskSummary]:
        """Tasks that `task_id` blocks."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                SELECT t.id, t.status, t.title, d.id AS edge_id
                FROM task_dependencies d
                JOIN tasks t ON t.id = d.task_id
                WHERE d.blocker_id = ?
                ORDER BY d.id ASC
                """,
                (int(task_id),),
            )
            return [self._row_to_summary(r) for r in cur.fetchall()]
        finally:
            conn.close()

    # ---- dependency edges ----

    def create_edge(self, task_id: int, blocker_id: int) -> DependencyEdge:
        now = time.time()
        conn = self._get_conn()
        try:
            try:
                cur = conn.execute(
                    "INSERT INTO task_dependencies(task_id, blocker_id, created_at) VALUES (?, ?, ?)",
                    (int(task_id), int(blocker_id), now),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                kind = self._constraint_kind(e)
                if kind is None:
                    raise
                raise EdgeConstraintError(kind, str(e)) from e

            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for task_dependencies insert")
            return DependencyEdge(id=int(rowid), task_id=int(task_id), blocker_id=int(blocker_id), created_at=now)
        finally:
            conn.close()

    def delete_edge(self, edge_id: int) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM task_dependencies WHERE id = ?", (int(edge_id),))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def get_edge(self, edge_id: int) -> DependencyEdge | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM task_dependencies WHERE id = ?", (int(edge_id),)).fetchone()
            return self._row_to_edge(row) if row else None
        finally:
            conn.close()

    def find_edge(self, task_id: int, blocker_id: int) -> DependencyEdge | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM task_dependencies WHERE task_id = ? AND blocker_id = ?",
                (int(task_id), int(blocker_id)),
            ).fetchone()
            return self._row_to_edge(row) if row else None
        finally:
            conn.close()

    def list_edges_blocking(self, task_id: int) -> list[DependencyEdge]:
        """Edges whose task_id is `task_id` (its blockers)."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "SELECT * FROM task_dependencies WHERE task_id = ? ORDER BY id ASC",
                (int(task_id),),
            )
            return [self._row_to_edge(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def list_edges_blocked_by(self, task_id: int) -> list[DependencyEdge]:
        """Edges whose blocker_id is `task_id`."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "SELECT * FROM task_dependencies WHERE blocker_id = ? ORDER BY id ASC",
                (int(task_id),),
            )
            return [self._row_to_edge(r) for r in cur.fetchall()]
        finally:
            conn.close()
