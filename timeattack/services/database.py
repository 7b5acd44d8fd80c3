from datetime import datetime
import sqlite3
from pathlib import Path
import logging
from typing import Any, Dict, List, Optional
from pydantic import TypeAdapter, ValidationError

from timeattack.config.settings import settings
from timeattack.models.records import SuspendedSession, TransitionRecord
from timeattack.models.session import Session
from timeattack.models.ticket import Ticket
from timeattack.services.errors import DatabaseError

logger = logging.getLogger(__name__)

MIGRATIONS = [
    """
    -- Snapshot storage
    CREATE TABLE IF NOT EXISTS snapshots (
        key TEXT PRIMARY KEY,
        payload TEXT NOT NULL,
        updated_at TIMESTAMP NOT NULL
    );

    -- Monotonic counters (local task numbering)
    CREATE TABLE IF NOT EXISTS counters (
        name TEXT PRIMARY KEY,
        value INTEGER NOT NULL DEFAULT 0
    );
    """
]

SESSIONS_KEY = "sessions"
SUSPENDED_SESSIONS_KEY = "suspended_sessions"
TRANSITION_RECORDS_KEY = "transition_records"
TICKETS_KEY = "cached_tickets"
LOCAL_TASKS_KEY = "local_tasks"
ESTIMATES_KEY = "local_estimates"
LOCAL_TASK_COUNTER = "local_task_counter"

_sessions_adapter = TypeAdapter(List[Session])
_suspended_adapter = TypeAdapter(Dict[str, SuspendedSession])
_records_adapter = TypeAdapter(List[TransitionRecord])
_tickets_adapter = TypeAdapter(List[Ticket])
_estimates_adapter = TypeAdapter(Dict[str, float])

class DatabaseConnectionError(DatabaseError):
    """Exception raised when database connection fails"""
    pass

class QueryError(DatabaseError):
    """Exception raised when a database query fails"""
    pass

class DatabaseManager:
    """Snapshot store for sessions, suspensions, transition records and tickets"""

    def __init__(self, db_path=None):
        """Initialize database manager"""
        self.db_path = str(db_path or settings.DEFAULT_DB_PATH)
        # An in-memory database only lives as long as its connection
        self._memory_conn: Optional[sqlite3.Connection] = None
        logger.info(f"Initialized DatabaseManager with db_path: {self.db_path}")
        self.initialize()

    def initialize(self):
        """Initialize database schema"""
        try:
            conn = self.get_connection()
            try:
                for migration in MIGRATIONS:
                    conn.executescript(migration)
                conn.commit()
                logger.debug("Database initialization complete")
            finally:
                self._release(conn)
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize database: {e}")
            raise DatabaseConnectionError(f"Failed to initialize database: {e}")

    def get_connection(self) -> sqlite3.Connection:
        """Get a database connection"""
        if self.db_path == ":memory:":
            if self._memory_conn is None:
                self._memory_conn = sqlite3.connect(":memory:")
            return self._memory_conn

        db_path = Path(self.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db_path))
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    def _release(self, conn: sqlite3.Connection) -> None:
        if conn is not self._memory_conn:
            conn.close()

    def close(self) -> None:
        if self._memory_conn is not None:
            self._memory_conn.close()
            self._memory_conn = None

    def _write(self, key: str, payload: bytes) -> None:
        try:
            conn = self.get_connection()
            try:
                conn.execute("""
                    INSERT INTO snapshots (key, payload, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                """, [key, payload.decode("utf-8"), datetime.now().isoformat()])
                conn.commit()
            finally:
                self._release(conn)
        except sqlite3.Error as e:
            logger.error(f"Failed to save snapshot '{key}': {e}")
            raise QueryError(f"Failed to save snapshot '{key}': {e}")

    def _read(self, key: str) -> Optional[str]:
        try:
            conn = self.get_connection()
            try:
                row = conn.execute(
                    "SELECT payload FROM snapshots WHERE key = ?", [key]
                ).fetchone()
            finally:
                self._release(conn)
        except sqlite3.Error as e:
            logger.error(f"Failed to load snapshot '{key}': {e}")
            raise QueryError(f"Failed to load snapshot '{key}': {e}")
        return row[0] if row else None

    def _load(self, key: str, adapter: TypeAdapter, empty):
        """Decode a snapshot, falling back to ``empty`` for missing or unreadable data"""
        payload = self._read(key)
        if payload is None:
            return empty
        try:
            return adapter.validate_json(payload)
        except ValidationError as e:
            logger.warning(
                f"Snapshot '{key}' could not be decoded ({e.error_count()} errors), "
                f"starting with an empty collection"
            )
            return empty

    def save_sessions(self, sessions: List[Session]) -> None:
        self._write(SESSIONS_KEY, _sessions_adapter.dump_json(list(sessions)))

    def load_sessions(self) -> List[Session]:
        return self._load(SESSIONS_KEY, _sessions_adapter, [])

    def save_suspended_sessions(self, suspended: Dict[str, SuspendedSession]) -> None:
        self._write(SUSPENDED_SESSIONS_KEY, _suspended_adapter.dump_json(dict(suspended)))

    def load_suspended_sessions(self) -> Dict[str, SuspendedSession]:
        return self._load(SUSPENDED_SESSIONS_KEY, _suspended_adapter, {})

    def save_transition_records(self, records: List[TransitionRecord]) -> None:
        self._write(TRANSITION_RECORDS_KEY, _records_adapter.dump_json(list(records)))

    def load_transition_records(self) -> List[TransitionRecord]:
        return self._load(TRANSITION_RECORDS_KEY, _records_adapter, [])

    def save_tickets(self, tickets: List[Ticket]) -> None:
        """Cache tickets fetched from a remote tracker"""
        self._write(TICKETS_KEY, _tickets_adapter.dump_json(list(tickets)))

    def load_tickets(self) -> List[Ticket]:
        return self._load(TICKETS_KEY, _tickets_adapter, [])

    def save_local_tasks(self, tasks: List[Ticket]) -> None:
        self._write(LOCAL_TASKS_KEY, _tickets_adapter.dump_json(list(tasks)))

    def load_local_tasks(self) -> List[Ticket]:
        return self._load(LOCAL_TASKS_KEY, _tickets_adapter, [])

    def save_estimate(self, ticket_id: str, estimate: float) -> None:
        estimates = self.load_estimates()
        estimates[ticket_id] = estimate
        self._write(ESTIMATES_KEY, _estimates_adapter.dump_json(estimates))

    def load_estimates(self) -> Dict[str, float]:
        return self._load(ESTIMATES_KEY, _estimates_adapter, {})

    def next_local_task_number(self) -> int:
        """Increment and return the local task counter"""
        try:
            conn = self.get_connection()
            try:
                conn.execute("""
                    INSERT INTO counters (name, value) VALUES (?, 1)
                    ON CONFLICT(name) DO UPDATE SET value = value + 1
                """, [LOCAL_TASK_COUNTER])
                value = conn.execute(
                    "SELECT value FROM counters WHERE name = ?", [LOCAL_TASK_COUNTER]
                ).fetchone()[0]
                conn.commit()
                return value
            finally:
                self._release(conn)
        except sqlite3.Error as e:
            logger.error(f"Failed to advance local task counter: {e}")
            raise QueryError(f"Failed to advance local task counter: {e}")

    def get_database_stats(self) -> Dict[str, Any]:
        """Get database statistics"""
        try:
            conn = self.get_connection()
            try:
                rows = conn.execute("""
                    SELECT key, LENGTH(payload), updated_at
                    FROM snapshots
                    ORDER BY key
                """).fetchall()
            finally:
                self._release(conn)
        except sqlite3.Error as e:
            logger.error(f"Failed to get database stats: {e}")
            raise DatabaseError(f"Failed to get database stats: {e}")

        if self.db_path == ":memory:":
            db_size = 0
        else:
            db_size = Path(self.db_path).stat().st_size / (1024 * 1024)

        return {
            "snapshots": {
                key: {"bytes": size, "updated_at": updated_at}
                for key, size, updated_at in rows
            },
            "counts": {
                "sessions": len(self.load_sessions()),
                "suspended_sessions": len(self.load_suspended_sessions()),
                "transition_records": len(self.load_transition_records()),
                "local_tasks": len(self.load_local_tasks()),
            },
            "database_size_mb": db_size,
        }
