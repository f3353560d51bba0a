import logging
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import create_engine, event, exc
from sqlalchemy.engine import URL
from sqlalchemy.pool import QueuePool

from application.ports import TaskRecord, TaskRepository
from domain.errors import NotFoundError, OperationTimeoutError, PersistenceError

logger = logging.getLogger(__name__)

_TASK_COLUMNS = "id, user_id, title, description, completed, completed_at, created_at, updated_at"
_UPDATABLE = ("title", "description", "completed", "updated_at")

# Columns added after the first release; older databases get them on start.
_TASK_UPGRADES = {
    "user_id": "INTEGER NOT NULL DEFAULT 0",
    "completed_at": "TEXT",
    "updated_at": "TEXT",
}


def _on_connect(dbapi_connection, connection_record):
    dbapi_connection.row_factory = sqlite3.Row


class ConnectionPool:
    """
    SQLite connections pooled by SQLAlchemy's QueuePool.

    `max_idle` connections stay open between calls and at most `max_open`
    are live at once; callers beyond that wait up to `wait_timeout`
    seconds. Connections older than `max_lifetime` seconds are recycled
    on checkout, and connections that failed a statement are invalidated
    instead of being reused.
    """

    def __init__(
        self,
        db_name: str,
        max_open: int = 100,
        max_idle: int = 10,
        max_lifetime: float = 3600.0,
        wait_timeout: float = 30.0,
    ):
        self.db_name = db_name
        pool_size = max(min(max_idle, max_open), 1)
        self.engine = create_engine(
            URL.create("sqlite", database=db_name),
            connect_args={"check_same_thread": False},
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max(max_open - pool_size, 0),
            pool_recycle=max_lifetime,
            pool_timeout=wait_timeout,
            pool_pre_ping=True,
        )
        event.listen(self.engine, "connect", _on_connect)

    @contextmanager
    def connection(self, operation: str, timeout: Optional[float] = None) -> Iterator:
        deadline = time.monotonic() + timeout if timeout is not None else None
        try:
            conn = self.engine.raw_connection()
        except exc.TimeoutError as e:
            logger.warning("No database connection free for %s", operation)
            raise OperationTimeoutError(operation) from e
        except exc.DBAPIError as e:
            logger.error("Database connect for %s failed: %s", operation, e.orig)
            raise PersistenceError(operation, str(e.orig)) from e

        dbapi_connection = conn.dbapi_connection
        try:
            if deadline is not None:
                if time.monotonic() > deadline:
                    raise OperationTimeoutError(operation)
                # SQLite aborts the running statement when this returns non-zero
                dbapi_connection.set_progress_handler(lambda: int(time.monotonic() > deadline), 1000)
            try:
                yield conn
            except sqlite3.Error as e:
                conn.invalidate(e)
                if deadline is not None and time.monotonic() > deadline:
                    raise OperationTimeoutError(operation) from e
                logger.error("Database %s failed: %s", operation, e)
                raise PersistenceError(operation, str(e)) from e
            except BaseException:
                conn.rollback()
                raise
        finally:
            if conn.is_valid:
                dbapi_connection.set_progress_handler(None, 0)
            conn.close()

    def close(self) -> None:
        self.engine.dispose()


def _dump(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _load(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_record(row: sqlite3.Row) -> TaskRecord:
    return TaskRecord(
        task_id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        description=row["description"] or "",
        completed=bool(row["completed"]),
        completed_at=_load(row["completed_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=_load(row["updated_at"]),
    )


class Database(TaskRepository):
    def __init__(
        self,
        db_name: str = "todo.db",
        max_open_conns: int = 100,
        max_idle_conns: int = 10,
        conn_max_lifetime: float = 3600.0,
        pool_timeout: float = 30.0,
    ):
        self.db_name = db_name
        self.pool = ConnectionPool(db_name, max_open_conns, max_idle_conns, conn_max_lifetime, pool_timeout)
        self._init_db()

    def _init_db(self):
        with self.pool.connection("migrate") as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'tasks'")
            existed = cursor.fetchone() is not None

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    completed INTEGER NOT NULL DEFAULT 0,
                    completed_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS user_details (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    account_id INTEGER NOT NULL REFERENCES accounts(id),
                    name TEXT,
                    created_at TEXT NOT NULL
                )
            """)

            cursor.execute("PRAGMA table_info(tasks)")
            columns = {row["name"] for row in cursor.fetchall()}
            for column, ddl in _TASK_UPGRADES.items():
                if column not in columns:
                    logger.info("Adding %s column to tasks table", column)
                    cursor.execute(f"ALTER TABLE tasks ADD COLUMN {column} {ddl}")

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_tasks_user_id ON tasks (user_id)")
            conn.commit()

        if existed:
            logger.info("Task schema already migrated in %s", self.db_name)
        else:
            logger.info("Created task schema in %s", self.db_name)

    def save(self, record: TaskRecord, timeout: Optional[float] = None) -> TaskRecord:
        with self.pool.connection("save", timeout) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO tasks (user_id, title, description, completed, completed_at, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    record.user_id,
                    record.title,
                    record.description,
                    1 if record.completed else 0,
                    _dump(record.completed_at),
                    record.created_at.isoformat(),
                    _dump(record.updated_at),
                ),
            )
            conn.commit()
            record.task_id = cursor.lastrowid
            return record

    def update_by_id(
        self, task_id: int, owner_id: int, fields: dict, timeout: Optional[float] = None
    ) -> TaskRecord:
        unknown = set(fields) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"Cannot update task columns: {sorted(unknown)}")
        if not fields:
            return self.find_by_id(task_id, timeout=timeout)

        assignments = ", ".join(f"{column} = ?" for column in fields)
        values = []
        for column, value in fields.items():
            if column == "completed":
                value = 1 if value else 0
            elif isinstance(value, datetime):
                value = value.isoformat()
            values.append(value)

        with self.pool.connection("update", timeout) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE tasks SET {assignments} WHERE id = ? AND user_id = ?",
                (*values, task_id, owner_id),
            )
            if cursor.rowcount == 0:
                conn.rollback()
                raise NotFoundError(task_id)
            cursor.execute(f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,))
            row = cursor.fetchone()
            conn.commit()
            return _row_to_record(row)

    def find_by_id(self, task_id: int, timeout: Optional[float] = None) -> TaskRecord:
        with self.pool.connection("find", timeout) as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,))
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError(task_id)
        return _row_to_record(row)

    def find_all_by_owner(self, owner_id: int, timeout: Optional[float] = None) -> List[TaskRecord]:
        with self.pool.connection("find_all", timeout) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE user_id = ? ORDER BY id",
                (owner_id,),
            )
            rows = cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    def delete_by_id(self, task_id: int, owner_id: int, timeout: Optional[float] = None) -> None:
        with self.pool.connection("delete", timeout) as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM tasks WHERE id = ? AND user_id = ?", (task_id, owner_id))
            conn.commit()
            deleted = cursor.rowcount
        if deleted == 0:
            raise NotFoundError(task_id)

    def close(self) -> None:
        self.pool.close()
