# src/worksync/cache/store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from ..core.models import Task, TaskPhase, TaskPriority, TaskStatus, User, UserRole

logger = logging.getLogger(__name__)

TABLE_USERS = "users"
TABLE_TASKS = "tasks"
TABLE_PHASES = "task_phases"

ChangeListener = Callable[[frozenset[str]], None]

_TASK_COLUMNS = (
    "id",
    "title",
    "description",
    "assigned_to",
    "assigned_by",
    "priority",
    "status",
    "completion_percentage",
    "created_at",
    "updated_at",
    "deadline",
    "estimated_hours",
    "tags",
    "assigned_to_name",
    "assigned_by_name",
)

_PHASE_COLUMNS = (
    "id",
    "task_id",
    "title",
    "description",
    "is_completed",
    "completed_at",
    "sort_order",
    "is_custom",
    "created_by",
    "created_at",
)

_USER_COLUMNS = (
    "id",
    "email",
    "name",
    "role",
    "profile_image_url",
    "created_at",
    "is_active",
)


def _upsert_sql(table: str, columns: tuple[str, ...]) -> str:
    # ON CONFLICT ... DO UPDATE (not INSERT OR REPLACE): REPLACE deletes the old
    # row first, which would cascade away a task's phases.
    cols = ", ".join(columns)
    placeholders = ", ".join("?" for _ in columns)
    updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != "id")
    return (
        f"INSERT INTO {table} ({cols}) VALUES ({placeholders}) "
        f"ON CONFLICT(id) DO UPDATE SET {updates}"
    )


_UPSERT_TASK = _upsert_sql(TABLE_TASKS, _TASK_COLUMNS)
_UPSERT_PHASE = _upsert_sql(TABLE_PHASES, _PHASE_COLUMNS)
_UPSERT_USER = _upsert_sql(TABLE_USERS, _USER_COLUMNS)


class CacheStore:
    """
    SQLite cache of users, tasks and task phases.

    The UI reads only from here; the remote store is written through and
    pulled back via explicit sync.

    Thread-safety:
    - each method opens its own SQLite connection

    Change notification:
    - after every committed write, subscribers receive the set of touched tables
      (LiveQuery builds continuous queries on top of this)
    """

    def __init__(self, db_path: str | Path = "worksync.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._listeners: list[ChangeListener] = []
        self._listeners_lock = threading.Lock()
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("CacheStore ready db=%s tasks=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- change notification ----

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        with self._listeners_lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, *tables: str) -> None:
        touched = frozenset(tables)
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(touched)
            except Exception:
                logger.exception("Cache change listener failed tables=%s", sorted(touched))

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        # Per-connection setting in SQLite; cascades depend on it.
        conn.execute("PRAGMA foreign_keys=ON")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL DEFAULT '',
                    name TEXT NOT NULL DEFAULT '',
                    role TEXT NOT NULL DEFAULT 'employee',
                    profile_image_url TEXT,
                    created_at INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    description TEXT NOT NULL DEFAULT '',
                    assigned_to TEXT NOT NULL DEFAULT '',
                    assigned_by TEXT NOT NULL DEFAULT '',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    status TEXT NOT NULL DEFAULT 'pending',
                    completion_percentage INTEGER NOT NULL DEFAULT 0,
                    created_at INTEGER NOT NULL DEFAULT 0,
                    updated_at INTEGER NOT NULL DEFAULT 0,
                    deadline INTEGER,
                    estimated_hours INTEGER,
                    tags TEXT NOT NULL DEFAULT '[]',
                    assigned_to_name TEXT NOT NULL DEFAULT '',
                    assigned_by_name TEXT NOT NULL DEFAULT ''
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_phases (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    title TEXT NOT NULL DEFAULT '',
                    description TEXT NOT NULL DEFAULT '',
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    completed_at INTEGER,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    is_custom INTEGER NOT NULL DEFAULT 0,
                    created_by TEXT NOT NULL DEFAULT '',
                    created_at INTEGER NOT NULL DEFAULT 0
                )
                """
            )

            cur.execute("CREATE INDEX IF NOT EXISTS idx_users_email ON users(email)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_users_role ON users(role, is_active)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_assigned_to ON tasks(assigned_to, status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_assigned_by ON tasks(assigned_by)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_deadline ON tasks(deadline)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_phases_task ON task_phases(task_id, sort_order)")

            conn.commit()
        finally:
            conn.close()

    def _fetch_all(self, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
        conn = self._get_conn()
        try:
            return conn.execute(sql, tuple(params)).fetchall()
        finally:
            conn.close()

    def _fetch_one(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Row | None:
        conn = self._get_conn()
        try:
            return conn.execute(sql, tuple(params)).fetchone()
        finally:
            conn.close()

    def _write(self, tables: Iterable[str], statements: Iterable[tuple[str, tuple[Any, ...]]]) -> int:
        """Run statements in one transaction, then notify. Returns total rowcount."""
        conn = self._get_conn()
        changed = 0
        try:
            cur = conn.cursor()
            for sql, params in statements:
                cur.execute(sql, params)
                changed += max(0, cur.rowcount)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        self._notify(*tables)
        return changed

    # ---- row mapping ----

    @staticmethod
    def _tags_to_str(tags: list[str] | None) -> str:
        if not tags:
            return "[]"
        return json.dumps([str(t) for t in tags], ensure_ascii=False)

    @staticmethod
    def _str_to_tags(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except Exception:
            return []
        return [str(t) for t in val] if isinstance(val, list) else []

    def _task_params(self, task: Task) -> tuple[Any, ...]:
        return (
            task.id,
            task.title,
            task.description,
            task.assigned_to,
            task.assigned_by,
            task.priority.value,
            task.status.value,
            int(task.completion_percentage),
            int(task.created_at),
            int(task.updated_at),
            task.deadline,
            task.estimated_hours,
            self._tags_to_str(task.tags),
            task.assigned_to_name,
            task.assigned_by_name,
        )

    @staticmethod
    def _phase_params(phase: TaskPhase) -> tuple[Any, ...]:
        return (
            phase.id,
            phase.task_id,
            phase.title,
            phase.description,
            1 if phase.is_completed else 0,
            phase.completed_at,
            int(phase.order),
            1 if phase.is_custom else 0,
            phase.created_by,
            int(phase.created_at),
        )

    @staticmethod
    def _user_params(user: User) -> tuple[Any, ...]:
        return (
            user.id,
            user.email,
            user.name,
            user.role.value,
            user.profile_image_url,
            int(user.created_at),
            1 if user.is_active else 0,
        )

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            assigned_to=str(row["assigned_to"] or ""),
            assigned_by=str(row["assigned_by"] or ""),
            priority=TaskPriority.parse(row["priority"]),
            status=TaskStatus.parse(row["status"]),
            completion_percentage=int(row["completion_percentage"] or 0),
            created_at=int(row["created_at"] or 0),
            updated_at=int(row["updated_at"] or 0),
            deadline=int(row["deadline"]) if row["deadline"] is not None else None,
            estimated_hours=int(row["estimated_hours"]) if row["estimated_hours"] is not None else None,
            tags=self._str_to_tags(row["tags"]),
            assigned_to_name=str(row["assigned_to_name"] or ""),
            assigned_by_name=str(row["assigned_by_name"] or ""),
        )

    @staticmethod
    def _row_to_phase(row: sqlite3.Row) -> TaskPhase:
        return TaskPhase(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            is_completed=bool(row["is_completed"]),
            completed_at=int(row["completed_at"]) if row["completed_at"] is not None else None,
            order=int(row["sort_order"] or 0),
            is_custom=bool(row["is_custom"]),
            created_by=str(row["created_by"] or ""),
            created_at=int(row["created_at"] or 0),
        )

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=str(row["id"]),
            email=str(row["email"] or ""),
            name=str(row["name"] or ""),
            role=UserRole.parse(row["role"]),
            profile_image_url=row["profile_image_url"],
            created_at=int(row["created_at"] or 0),
            is_active=bool(row["is_active"]),
        )

    # ---- users ----

    def get_user_by_id(self, user_id: str) -> User | None:
        row = self._fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))
        return self._row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> User | None:
        row = self._fetch_one("SELECT * FROM users WHERE email = ? LIMIT 1", (email,))
        return self._row_to_user(row) if row else None

    def list_users_by_role(self, role: UserRole) -> list[User]:
        rows = self._fetch_all(
            "SELECT * FROM users WHERE role = ? AND is_active = 1 ORDER BY name ASC",
            (role.value,),
        )
        return [self._row_to_user(r) for r in rows]

    def list_active_users(self) -> list[User]:
        rows = self._fetch_all("SELECT * FROM users WHERE is_active = 1 ORDER BY name ASC")
        return [self._row_to_user(r) for r in rows]

    def list_users(self) -> list[User]:
        return [self._row_to_user(r) for r in self._fetch_all("SELECT * FROM users ORDER BY name ASC")]

    def upsert_user(self, user: User) -> None:
        self._write([TABLE_USERS], [(_UPSERT_USER, self._user_params(user))])

    def upsert_users(self, users: Iterable[User]) -> int:
        stmts = [(_UPSERT_USER, self._user_params(u)) for u in users]
        if not stmts:
            return 0
        self._write([TABLE_USERS], stmts)
        return len(stmts)

    def set_user_active(self, user_id: str, is_active: bool) -> bool:
        n = self._write(
            [TABLE_USERS],
            [("UPDATE users SET is_active = ? WHERE id = ?", (1 if is_active else 0, user_id))],
        )
        return n > 0

    def delete_user(self, user_id: str) -> bool:
        return self._write([TABLE_USERS], [("DELETE FROM users WHERE id = ?", (user_id,))]) > 0

    def delete_all_users(self) -> int:
        return self._write([TABLE_USERS], [("DELETE FROM users", ())])

    # ---- tasks ----

    def count_tasks(self) -> int:
        row = self._fetch_one("SELECT COUNT(*) FROM tasks")
        return int(row[0]) if row else 0

    def get_task(self, task_id: str) -> Task | None:
        row = self._fetch_one("SELECT * FROM tasks WHERE id = ?", (task_id,))
        return self._row_to_task(row) if row else None

    def list_tasks(
        self,
        *,
        assigned_to: str | None = None,
        assigned_by: str | None = None,
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
    ) -> list[Task]:
        """Filtered task listing, newest first. All filters are optional and ANDed."""
        where: list[str] = []
        params: list[Any] = []
        if assigned_to is not None:
            where.append("assigned_to = ?")
            params.append(assigned_to)
        if assigned_by is not None:
            where.append("assigned_by = ?")
            params.append(assigned_by)
        if status is not None:
            where.append("status = ?")
            params.append(status.value)
        if priority is not None:
            where.append("priority = ?")
            params.append(priority.value)

        sql = "SELECT * FROM tasks"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY created_at DESC, id ASC"
        return [self._row_to_task(r) for r in self._fetch_all(sql, params)]

    def list_overdue_tasks(self, now_ts: int) -> list[Task]:
        rows = self._fetch_all(
            """
            SELECT *
            FROM tasks
            WHERE deadline IS NOT NULL
              AND deadline < ?
              AND status != ?
            ORDER BY deadline ASC
            """,
            (int(now_ts), TaskStatus.COMPLETED.value),
        )
        return [self._row_to_task(r) for r in rows]

    def list_tasks_due_between(self, start_ts: int, end_ts: int) -> list[Task]:
        rows = self._fetch_all(
            """
            SELECT *
            FROM tasks
            WHERE deadline IS NOT NULL
              AND deadline BETWEEN ? AND ?
            ORDER BY deadline ASC
            """,
            (int(start_ts), int(end_ts)),
        )
        return [self._row_to_task(r) for r in rows]

    def upsert_task(self, task: Task) -> None:
        self._write([TABLE_TASKS], [(_UPSERT_TASK, self._task_params(task))])

    def upsert_tasks(self, tasks: Iterable[Task]) -> int:
        stmts = [(_UPSERT_TASK, self._task_params(t)) for t in tasks]
        if not stmts:
            return 0
        self._write([TABLE_TASKS], stmts)
        return len(stmts)

    def update_task_status(self, task_id: str, status: TaskStatus, updated_at: int) -> bool:
        n = self._write(
            [TABLE_TASKS],
            [
                (
                    "UPDATE tasks SET status = ?, updated_at = ? WHERE id = ?",
                    (status.value, int(updated_at), task_id),
                )
            ],
        )
        return n > 0

    def update_task_progress(self, task_id: str, percentage: int, updated_at: int) -> bool:
        n = self._write(
            [TABLE_TASKS],
            [
                (
                    "UPDATE tasks SET completion_percentage = ?, updated_at = ? WHERE id = ?",
                    (int(percentage), int(updated_at), task_id),
                )
            ],
        )
        return n > 0

    def delete_task(self, task_id: str) -> bool:
        # Phases go with it through ON DELETE CASCADE.
        n = self._write([TABLE_TASKS, TABLE_PHASES], [("DELETE FROM tasks WHERE id = ?", (task_id,))])
        return n > 0

    # ---- phases ----

    def get_phase(self, phase_id: str) -> TaskPhase | None:
        row = self._fetch_one("SELECT * FROM task_phases WHERE id = ?", (phase_id,))
        return self._row_to_phase(row) if row else None

    def list_phases(
        self,
        task_id: str,
        *,
        completed: bool | None = None,
        custom: bool | None = None,
    ) -> list[TaskPhase]:
        where = ["task_id = ?"]
        params: list[Any] = [task_id]
        if completed is not None:
            where.append("is_completed = ?")
            params.append(1 if completed else 0)
        if custom is not None:
            where.append("is_custom = ?")
            params.append(1 if custom else 0)
        rows = self._fetch_all(
            f"SELECT * FROM task_phases WHERE {' AND '.join(where)} ORDER BY sort_order ASC, created_at ASC",
            params,
        )
        return [self._row_to_phase(r) for r in rows]

    def phases_by_task(self, task_ids: Iterable[str]) -> dict[str, list[TaskPhase]]:
        """Phases for many tasks in one round trip, grouped by task id."""
        ids = list(dict.fromkeys(task_ids))
        out: dict[str, list[TaskPhase]] = {tid: [] for tid in ids}
        if not ids:
            return out
        placeholders = ",".join("?" for _ in ids)
        rows = self._fetch_all(
            f"SELECT * FROM task_phases WHERE task_id IN ({placeholders}) "
            "ORDER BY task_id, sort_order ASC, created_at ASC",
            ids,
        )
        for r in rows:
            phase = self._row_to_phase(r)
            out.setdefault(phase.task_id, []).append(phase)
        return out

    def count_phases(self, task_id: str) -> int:
        row = self._fetch_one("SELECT COUNT(*) FROM task_phases WHERE task_id = ?", (task_id,))
        return int(row[0]) if row else 0

    def count_completed_phases(self, task_id: str) -> int:
        row = self._fetch_one(
            "SELECT COUNT(*) FROM task_phases WHERE task_id = ? AND is_completed = 1",
            (task_id,),
        )
        return int(row[0]) if row else 0

    def upsert_phase(self, phase: TaskPhase) -> None:
        self._write([TABLE_PHASES], [(_UPSERT_PHASE, self._phase_params(phase))])

    def upsert_phases(self, phases: Iterable[TaskPhase]) -> int:
        stmts = [(_UPSERT_PHASE, self._phase_params(p)) for p in phases]
        if not stmts:
            return 0
        self._write([TABLE_PHASES], stmts)
        return len(stmts)

    def update_phase_completion(self, phase_id: str, is_completed: bool, completed_at: int | None) -> bool:
        n = self._write(
            [TABLE_PHASES],
            [
                (
                    "UPDATE task_phases SET is_completed = ?, completed_at = ? WHERE id = ?",
                    (1 if is_completed else 0, completed_at, phase_id),
                )
            ],
        )
        return n > 0

    def delete_phase(self, phase_id: str) -> bool:
        return self._write([TABLE_PHASES], [("DELETE FROM task_phases WHERE id = ?", (phase_id,))]) > 0

    def delete_phases_for_task(self, task_id: str) -> int:
        return self._write([TABLE_PHASES], [("DELETE FROM task_phases WHERE task_id = ?", (task_id,))])
