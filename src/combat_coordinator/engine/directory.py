"""Directory of independent combat sessions.

Sessions share nothing: each has its own lock, registry, track, ledger and
event log. The directory lock only guards the mapping of ids to sessions and
is never held while an intent is applied.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

from combat_coordinator.core.config import Settings, get_settings
from combat_coordinator.core.exceptions import ConflictError, NotFoundError, StorageError
from combat_coordinator.core.logging import get_logger
from combat_coordinator.engine.session import CombatSession
from combat_coordinator.models.events import Event, SessionSnapshot
from combat_coordinator.storage.database import EventStore


logger = get_logger(__name__)


class SessionDirectory:
    """Creates, looks up, lists, deletes and restores combat sessions.

    When an event store is attached, every committed event is persisted and a
    snapshot is written every ``snapshot_interval`` events.

    Example:
        >>> directory = SessionDirectory()
        >>> session = directory.create("friday-game")
        >>> directory.ids()
        ['friday-game']
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        store: EventStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize an empty directory.

        Args:
            settings: Application settings; defaults to get_settings().
            store: Optional event store for persistence.
            clock: Optional event timestamp source passed to sessions.
        """
        self.settings = settings or get_settings()
        self.store = store
        self._clock = clock
        self._sessions: dict[str, CombatSession] = {}
        self._lock = threading.Lock()

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _session_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"settings": self.settings.combat}
        if self.store is not None:
            kwargs["on_commit"] = self._persist
        if self._clock is not None:
            kwargs["clock"] = self._clock
        return kwargs

    def create(self, session_id: str | None = None) -> CombatSession:
        """Create and register a new session.

        Raises:
            ConflictError: If a session with this id is already registered.
        """
        session = CombatSession(session_id, **self._session_kwargs())
        with self._lock:
            if session.session_id in self._sessions:
                raise ConflictError(
                    f"Session {session.session_id} already exists",
                    details={"session_id": session.session_id},
                )
            self._sessions[session.session_id] = session
        logger.info("Session created", session_id=session.session_id)
        return session

    def get(self, session_id: str) -> CombatSession:
        """Look up a live session.

        Raises:
            NotFoundError: If no session has this id.
        """
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(
                f"Session {session_id} not found",
                resource="session",
                details={"session_id": session_id},
            )
        return session

    def ids(self) -> list[str]:
        """Identifiers of the live sessions, sorted."""
        with self._lock:
            return sorted(self._sessions)

    def delete(self, session_id: str) -> None:
        """Drop a session, and its stored history when a store is attached.

        Raises:
            NotFoundError: If no session has this id.
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise NotFoundError(
                f"Session {session_id} not found",
                resource="session",
                details={"session_id": session_id},
            )
        if self.store is not None:
            self.store.delete_session(session_id)
        logger.info("Session deleted", session_id=session_id)

    def load(self, session_id: str) -> CombatSession:
        """Restore a session from the event store and register it.

        The latest snapshot is loaded and the events recorded after it are
        replayed; without a snapshot the whole event stream is replayed.

        Raises:
            StorageError: If no store is attached.
            NotFoundError: If the store holds nothing for this id.
            ReplayError: If stored events do not reproduce their checksums.
        """
        if self.store is None:
            raise StorageError("No event store attached", session_id=session_id)

        with self._lock:
            live = self._sessions.get(session_id)
        if live is not None:
            return live

        record = self.store.latest_snapshot(session_id)
        if record is not None:
            snapshot = record.to_snapshot()
            events = self.store.load_events(session_id, after_sequence=snapshot.last_sequence)
            session = CombatSession.restore(snapshot, events, **self._session_kwargs())
        else:
            events = self.store.load_events(session_id)
            if not events:
                raise NotFoundError(
                    f"Session {session_id} not found in the event store",
                    resource="session",
                    details={"session_id": session_id},
                )
            session = CombatSession.replay(session_id, events, **self._session_kwargs())

        with self._lock:
            self._sessions.setdefault(session_id, session)
            session = self._sessions[session_id]
        logger.info(
            "Session loaded",
            session_id=session_id,
            last_sequence=session.event_log.last_sequence,
        )
        return session

    def _persist(self, event: Event, snapshot: SessionSnapshot) -> None:
        """Store an event before its session commits it.

        A failed event write propagates so the session rolls the intent back.
        Snapshots are only a shortcut for loading: once the event is stored, a
        failed snapshot write is logged and the next interval retries.
        """
        if self.store is None:
            return
        self.store.append_event(snapshot.session_id, event)
        if (event.sequence + 1) % self.settings.storage.snapshot_interval == 0:
            try:
                self.store.save_snapshot(snapshot)
            except StorageError as exc:
                logger.warning(
                    "Snapshot not saved",
                    session_id=snapshot.session_id,
                    sequence=event.sequence,
                    error=exc.message,
                )


__all__ = [
    "SessionDirectory",
]
