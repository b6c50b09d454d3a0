"""SQLite persistence for combat sessions.

Provides persistent storage for:
- The append-only event stream of every session, keyed by session id
- Periodic session snapshots for fast restart

Default location: data/combat_coordinator.db (see StorageSettings).
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Generator

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from combat_coordinator.core.config import get_settings
from combat_coordinator.core.exceptions import StorageError
from combat_coordinator.core.logging import get_logger
from combat_coordinator.models.events import Event, SessionSnapshot


logger = get_logger(__name__)


def _is_transient(exc: BaseException) -> bool:
    """Whether a sqlite error is a lock or busy condition worth retrying."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


# Locked-database errors are transient; everything else fails immediately
_retry_when_locked = retry(
    retry=retry_if_exception(_is_transient),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
    reraise=True,
)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class SnapshotRecord:
    """Record of a stored session snapshot.

    Attributes:
        session_id: Owning session.
        sequence: Last event sequence covered by the snapshot.
        snapshot_json: Serialized SessionSnapshot.
        checksum: Checksum of the snapshot.
        created_at: When the snapshot was written.
    """

    session_id: str
    sequence: int
    snapshot_json: str
    checksum: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row | tuple[Any, ...]) -> SnapshotRecord:
        """Create from database row."""
        return cls(
            session_id=row[0],
            sequence=row[1],
            snapshot_json=row[2],
            checksum=row[3],
            created_at=datetime.fromisoformat(row[4]),
        )

    def to_snapshot(self) -> SessionSnapshot:
        """Parse the stored snapshot."""
        return SessionSnapshot.model_validate_json(self.snapshot_json)


def _event_from_row(row: sqlite3.Row | tuple[Any, ...]) -> Event:
    return Event(
        sequence=row[0],
        timestamp=datetime.fromisoformat(row[1]),
        kind=row[2],
        payload=json.loads(row[3]),
        checksum=row[4],
    )


# =============================================================================
# Event Store
# =============================================================================


class EventStore:
    """SQLite event stream and snapshot store.

    Every write runs in its own transaction. Writes that hit a locked
    database are retried a few times before failing with StorageError.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str | Path | None = None) -> None:
        """Initialize the store.

        Args:
            db_path: Path to database file. If None, uses the configured path.
        """
        if db_path is None:
            self.db_path = get_settings().storage.database_path
        else:
            self.db_path = Path(db_path)

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

        logger.info("Event store initialized", path=str(self.db_path))

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with proper cleanup."""
        conn = sqlite3.connect(str(self.db_path), timeout=5.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @_retry_when_locked
    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    session_id TEXT NOT NULL,
                    sequence INTEGER NOT NULL,
                    timestamp TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    checksum TEXT NOT NULL,
                    PRIMARY KEY (session_id, sequence)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS snapshots (
                    session_id TEXT NOT NULL,
                    sequence INTEGER NOT NULL,
                    snapshot_json TEXT NOT NULL,
                    checksum TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (session_id, sequence)
                )
            """)

            cursor.execute("""
                INSERT OR REPLACE INTO schema_version (version) VALUES (?)
            """, (self.SCHEMA_VERSION,))

    # =========================================================================
    # Event Operations
    # =========================================================================

    def append_event(self, session_id: str, event: Event) -> None:
        """Persist one event of a session.

        Args:
            session_id: Owning session.
            event: The committed event.

        Raises:
            StorageError: If the sequence is already stored or the write fails.
        """
        try:
            self._insert_event(session_id, event)
        except sqlite3.IntegrityError as exc:
            raise StorageError(
                f"Event {event.sequence} is already stored",
                session_id=session_id,
                details={"sequence": event.sequence},
            ) from exc
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to store event: {exc}", session_id=session_id) from exc

    @_retry_when_locked
    def _insert_event(self, session_id: str, event: Event) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO events (session_id, sequence, timestamp, kind, payload_json, checksum)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                session_id,
                event.sequence,
                event.timestamp.isoformat(),
                str(event.kind),
                json.dumps(event.payload, sort_keys=True),
                event.checksum,
            ))

    def load_events(self, session_id: str, after_sequence: int = -1) -> list[Event]:
        """Load a session's events in sequence order.

        Args:
            session_id: Owning session.
            after_sequence: Only events with a greater sequence are returned.

        Returns:
            The events, oldest first.
        """
        try:
            rows = self._select_events(session_id, after_sequence)
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to load events: {exc}", session_id=session_id) from exc
        return [_event_from_row(row) for row in rows]

    @_retry_when_locked
    def _select_events(self, session_id: str, after_sequence: int) -> list[sqlite3.Row]:
        with self._get_connection() as conn:
            cursor = conn.execute("""
                SELECT sequence, timestamp, kind, payload_json, checksum
                FROM events
                WHERE session_id = ? AND sequence > ?
                ORDER BY sequence
            """, (session_id, after_sequence))
            return cursor.fetchall()

    # =========================================================================
    # Snapshot Operations
    # =========================================================================

    def save_snapshot(self, snapshot: SessionSnapshot) -> SnapshotRecord:
        """Persist a session snapshot, replacing one at the same sequence.

        Returns:
            The stored record.
        """
        record = SnapshotRecord(
            session_id=snapshot.session_id,
            sequence=snapshot.last_sequence,
            snapshot_json=snapshot.model_dump_json(),
            checksum=snapshot.checksum(),
            created_at=datetime.now(UTC),
        )
        try:
            self._insert_snapshot(record)
        except sqlite3.Error as exc:
            raise StorageError(
                f"Failed to store snapshot: {exc}", session_id=snapshot.session_id
            ) from exc
        logger.debug("Snapshot saved", session_id=record.session_id, sequence=record.sequence)
        return record

    @_retry_when_locked
    def _insert_snapshot(self, record: SnapshotRecord) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO snapshots (session_id, sequence, snapshot_json, checksum, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                record.session_id,
                record.sequence,
                record.snapshot_json,
                record.checksum,
                record.created_at.isoformat(),
            ))

    def latest_snapshot(self, session_id: str) -> SnapshotRecord | None:
        """Most recent snapshot of a session, if any."""
        try:
            row = self._select_latest_snapshot(session_id)
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to load snapshot: {exc}", session_id=session_id) from exc
        return SnapshotRecord.from_row(row) if row else None

    @_retry_when_locked
    def _select_latest_snapshot(self, session_id: str) -> sqlite3.Row | None:
        with self._get_connection() as conn:
            cursor = conn.execute("""
                SELECT session_id, sequence, snapshot_json, checksum, created_at
                FROM snapshots
                WHERE session_id = ?
                ORDER BY sequence DESC
                LIMIT 1
            """, (session_id,))
            return cursor.fetchone()

    # =========================================================================
    # Session Operations
    # =========================================================================

    def list_sessions(self) -> list[str]:
        """Identifiers of every session with stored events or snapshots."""
        try:
            rows = self._select_session_ids()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to list sessions: {exc}") from exc
        return [row[0] for row in rows]

    @_retry_when_locked
    def _select_session_ids(self) -> list[sqlite3.Row]:
        with self._get_connection() as conn:
            cursor = conn.execute("""
                SELECT session_id FROM events
                UNION
                SELECT session_id FROM snapshots
                ORDER BY session_id
            """)
            return cursor.fetchall()

    def delete_session(self, session_id: str) -> bool:
        """Delete every event and snapshot of a session.

        Returns:
            True if anything was deleted.
        """
        try:
            deleted = self._delete_rows(session_id)
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to delete session: {exc}", session_id=session_id) from exc
        if deleted:
            logger.info("Session deleted from store", session_id=session_id)
        return deleted > 0

    @_retry_when_locked
    def _delete_rows(self, session_id: str) -> int:
        with self._get_connection() as conn:
            events = conn.execute("DELETE FROM events WHERE session_id = ?", (session_id,))
            snapshots = conn.execute("DELETE FROM snapshots WHERE session_id = ?", (session_id,))
            return events.rowcount + snapshots.rowcount


# =============================================================================
# Singleton Access
# =============================================================================

_store_instance: EventStore | None = None


def get_event_store() -> EventStore:
    """Get the global event store instance.

    Returns:
        EventStore instance at the configured path.
    """
    global _store_instance

    if _store_instance is None:
        _store_instance = EventStore()

    return _store_instance


__all__ = [
    "SnapshotRecord",
    "EventStore",
    "get_event_store",
]
