"""Integration tests for session persistence.

Tests that sessions written through the directory can be restored from the
event store with identical state.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from combat_coordinator.core.config import CombatSettings, Settings, StorageSettings
from combat_coordinator.core.exceptions import ErrorKind, NotFoundError, ReplayError, StorageError
from combat_coordinator.engine.directory import SessionDirectory
from combat_coordinator.engine.gateway import CombatGateway, CombatRequest
from combat_coordinator.engine.session import CombatSession
from combat_coordinator.models.enums import IntentKind
from combat_coordinator.models.events import Event, Intent
from combat_coordinator.storage.database import EventStore


@pytest.fixture
def settings(combat_settings: CombatSettings, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Settings:
    """Provide settings writing a snapshot every three events."""
    monkeypatch.chdir(tmp_path)
    return Settings(
        combat=combat_settings,
        storage=StorageSettings(database_path=tmp_path / "combat.db", snapshot_interval=3),
    )


@pytest.fixture
def store(settings: Settings) -> EventStore:
    """Provide the event store at the configured path."""
    return EventStore(settings.storage.database_path)


def _play(session: CombatSession) -> None:
    def send(kind: IntentKind, participant_id: str | None = None, **payload: object) -> None:
        session.submit(Intent(kind=kind, participant_id=participant_id, payload=payload))

    send(IntentKind.ADD_PARTICIPANT, "sam", name="Street Sam")
    send(IntentKind.ADD_PARTICIPANT, "ganger", name="Ganger", participant_type="npc")
    send(IntentKind.ROLL_INITIATIVE, "sam", plane="physical", score=15)
    send(IntentKind.ROLL_INITIATIVE, "ganger", plane="physical", score=9)
    send(IntentKind.START_COMBAT)
    send(IntentKind.DECLARE_ACTION, "sam", action="complex")
    send(IntentKind.END_TURN, "sam")
    send(IntentKind.ADD_CONDITION, "sam", name="stunned", expires_after_round=1, simple_modifier=-1)


class TestSessionPersistence:
    """Test session state persistence."""

    def test_events_and_snapshots_written(self, settings: Settings, store: EventStore) -> None:
        """Every committed event is stored, with periodic snapshots."""
        directory = SessionDirectory(settings=settings, store=store)
        session = directory.create("table-1")

        _play(session)

        assert [e for e in store.load_events("table-1")] == list(session.event_log)
        record = store.latest_snapshot("table-1")
        assert record is not None
        assert record.sequence == 5
        assert store.list_sessions() == ["table-1"]

    def test_load_restores_identical_state(self, settings: Settings, store: EventStore) -> None:
        """A fresh directory rebuilds the session from snapshot plus later events."""
        original = SessionDirectory(settings=settings, store=store).create("table-1")
        _play(original)

        restored = SessionDirectory(settings=settings, store=EventStore(store.db_path)).load("table-1")

        assert restored.snapshot() == original.snapshot()
        assert restored.combat_round.acting_participant_id == "ganger"

    def test_load_replays_without_snapshot(
        self, combat_settings: CombatSettings, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Without a snapshot the whole stream is replayed."""
        monkeypatch.chdir(tmp_path)
        settings = Settings(
            combat=combat_settings,
            storage=StorageSettings(database_path=tmp_path / "combat.db", snapshot_interval=1000),
        )
        store = EventStore(settings.storage.database_path)
        original = SessionDirectory(settings=settings, store=store).create("table-1")
        _play(original)

        assert store.latest_snapshot("table-1") is None
        restored = SessionDirectory(settings=settings, store=store).load("table-1")

        assert restored.snapshot() == original.snapshot()

    def test_restored_session_continues(self, settings: Settings, store: EventStore) -> None:
        """A restored session accepts new intents and keeps persisting them."""
        _play(SessionDirectory(settings=settings, store=store).create("table-1"))
        directory = SessionDirectory(settings=settings, store=store)
        session = directory.load("table-1")

        delta = session.submit(Intent(kind=IntentKind.END_TURN, participant_id="ganger"))

        assert delta.combat_round.round_number == 2
        assert delta.sequence == 8
        assert store.load_events("table-1")[-1].sequence == 8

    def test_load_unknown_session(self, settings: Settings, store: EventStore) -> None:
        """Loading a session the store never saw fails."""
        with pytest.raises(NotFoundError):
            SessionDirectory(settings=settings, store=store).load("nope")

    def test_delete_removes_history(self, settings: Settings, store: EventStore) -> None:
        """Deleting a session drops its stored events and snapshots."""
        directory = SessionDirectory(settings=settings, store=store)
        _play(directory.create("table-1"))

        directory.delete("table-1")

        assert store.load_events("table-1") == []
        assert store.latest_snapshot("table-1") is None

    def test_corrupted_history_detected(self, settings: Settings, store: EventStore) -> None:
        """A stored event that does not reproduce its checksum stops the load."""
        _play(SessionDirectory(settings=settings, store=store).create("table-1"))
        events = store.load_events("table-1")
        store.delete_session("table-1")
        for event in events:
            if event.sequence == 7:
                event = event.model_copy(update={"checksum": "f" * 64})
            store.append_event("table-1", event)

        with pytest.raises(ReplayError):
            SessionDirectory(settings=settings, store=store).load("table-1")


class _UnreliableStore(EventStore):
    """Event store whose write of one sequence fails once."""

    def __init__(self, db_path: Path, fail_at: int) -> None:
        super().__init__(db_path)
        self.fail_at = fail_at

    def append_event(self, session_id: str, event: Event) -> None:
        if event.sequence == self.fail_at:
            self.fail_at = -1
            raise StorageError("Disk unavailable", session_id=session_id)
        super().append_event(session_id, event)


class TestFailedWrites:
    """Test that a failed event write rejects the intent."""

    @pytest.fixture
    def unreliable(self, settings: Settings) -> _UnreliableStore:
        """Provide a store failing the write of sequence 2."""
        return _UnreliableStore(settings.storage.database_path, fail_at=2)

    def _add(self, session: CombatSession, participant_id: str) -> None:
        session.submit(
            Intent(
                kind=IntentKind.ADD_PARTICIPANT,
                participant_id=participant_id,
                payload={"name": participant_id.title()},
                token=f"add-{participant_id}",
            )
        )

    def test_failed_write_rolls_back(self, settings: Settings, unreliable: _UnreliableStore) -> None:
        """The session is unchanged and the stored stream has no gap."""
        session = SessionDirectory(settings=settings, store=unreliable).create("s")
        self._add(session, "a")
        self._add(session, "b")
        before = session.snapshot()

        with pytest.raises(StorageError):
            self._add(session, "c")

        assert session.snapshot() == before
        assert len(session.event_log) == 2
        assert "c" not in session.registry

        self._add(session, "d")
        self._add(session, "c")

        assert [e.sequence for e in unreliable.load_events("s")] == [0, 1, 2, 3]
        assert [p.id for p in session.snapshot().participants] == ["a", "b", "c", "d"]

    def test_history_loads_after_failed_write(
        self, settings: Settings, unreliable: _UnreliableStore
    ) -> None:
        """A session with a failed write is restored from the store intact."""
        session = SessionDirectory(settings=settings, store=unreliable).create("s")
        for participant_id in ("a", "b", "c"):
            try:
                self._add(session, participant_id)
            except StorageError:
                self._add(session, participant_id)

        fresh = SessionDirectory(settings=settings, store=EventStore(unreliable.db_path)).load("s")

        assert fresh.snapshot() == session.snapshot()

    def test_gateway_reports_storage_rejection(
        self, settings: Settings, unreliable: _UnreliableStore
    ) -> None:
        """The client is told the intent was rejected and sees the prior state."""
        directory = SessionDirectory(settings=settings, store=unreliable)
        session = directory.create("s")
        self._add(session, "a")
        self._add(session, "b")

        response = CombatGateway(directory).handle(
            CombatRequest(
                session_id="s",
                participant_id="c",
                kind=IntentKind.ADD_PARTICIPANT,
                payload={"name": "C"},
            )
        )

        assert response.accepted is False
        assert response.error_kind == ErrorKind.STORAGE
        assert response.snapshot == session.snapshot()
        assert response.snapshot is not None
        assert [p.id for p in response.snapshot.participants] == ["a", "b"]
