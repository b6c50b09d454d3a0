"""Append-only event log.

The log is the canonical history of a session. Events are immutable and
sequence numbers are gapless from the log's start sequence; a log restored
from a snapshot starts right after the snapshot's last sequence.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import UTC, datetime
from typing import Any

from combat_coordinator.core.constants import FIRST_SEQUENCE
from combat_coordinator.core.exceptions import EventLogError
from combat_coordinator.models.enums import IntentKind
from combat_coordinator.models.events import Event


class EventReplay:
    """Finite, restartable view over a slice of the log.

    Iterating yields events lazily. The end of the slice is fixed when the
    replay is created, so events appended later are not included, and every
    new iteration starts again from the first event of the slice.
    """

    def __init__(self, events: list[Event], start: int, stop: int) -> None:
        self._events = events
        self._start = start
        self._stop = stop

    def __iter__(self) -> Iterator[Event]:
        for index in range(self._start, self._stop):
            yield self._events[index]

    def __len__(self) -> int:
        return self._stop - self._start


class EventLog:
    """Append-only, gapless sequence of events.

    Example:
        >>> log = EventLog()
        >>> event = log.record(IntentKind.START_COMBAT, {}, checksum="0" * 64)
        >>> event.sequence
        0
        >>> [e.sequence for e in log.replay(0)]
        [0]
    """

    def __init__(self, start_sequence: int = FIRST_SEQUENCE) -> None:
        """Initialize an empty log.

        Args:
            start_sequence: Sequence number the first appended event must carry.
        """
        if start_sequence < 0:
            raise EventLogError("Start sequence cannot be negative", sequence=start_sequence)
        self.start_sequence = start_sequence
        self._events: list[Event] = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self.replay())

    @property
    def next_sequence(self) -> int:
        """Sequence number the next event must carry."""
        return self.start_sequence + len(self._events)

    @property
    def last_sequence(self) -> int:
        """Sequence of the newest event, start_sequence - 1 when empty."""
        return self.next_sequence - 1

    def append(self, event: Event) -> int:
        """Append an event.

        Args:
            event: Event carrying exactly ``next_sequence``.

        Returns:
            The event's sequence number.

        Raises:
            EventLogError: If the sequence would leave a gap or go backwards.
        """
        expected = self.next_sequence
        if event.sequence != expected:
            raise EventLogError(
                "Event out of sequence",
                sequence=event.sequence,
                expected_sequence=expected,
            )
        self._events.append(event)
        return event.sequence

    def record(
        self,
        kind: IntentKind,
        payload: dict[str, Any],
        checksum: str,
        timestamp: datetime | None = None,
    ) -> Event:
        """Build the next event and append it.

        Returns:
            The appended event.
        """
        event = self.build(kind, payload, checksum, timestamp)
        self.append(event)
        return event

    def build(
        self,
        kind: IntentKind,
        payload: dict[str, Any],
        checksum: str,
        timestamp: datetime | None = None,
    ) -> Event:
        """Build the event that would carry ``next_sequence`` without appending it."""
        return Event(
            sequence=self.next_sequence,
            timestamp=timestamp or datetime.now(UTC),
            kind=kind,
            payload=payload,
            checksum=checksum,
        )

    def extend(self, events: Iterable[Event]) -> None:
        """Append several events in order."""
        for event in events:
            self.append(event)

    def get(self, sequence: int) -> Event:
        """Look up one event by sequence.

        Raises:
            EventLogError: If no event carries ``sequence``.
        """
        index = sequence - self.start_sequence
        if not 0 <= index < len(self._events):
            raise EventLogError("No event with this sequence", sequence=sequence)
        return self._events[index]

    def replay(self, from_seq: int | None = None) -> EventReplay:
        """Events from ``from_seq`` (inclusive) up to the current end.

        Args:
            from_seq: First sequence to include; defaults to the log start.

        Returns:
            A finite, restartable iterable of events.

        Raises:
            EventLogError: If ``from_seq`` lies outside the log.
        """
        if from_seq is None:
            from_seq = self.start_sequence
        if from_seq < self.start_sequence or from_seq > self.next_sequence:
            raise EventLogError(
                "Replay start outside the log",
                sequence=from_seq,
                expected_sequence=self.start_sequence,
            )
        return EventReplay(self._events, from_seq - self.start_sequence, len(self._events))


__all__ = [
    "EventReplay",
    "EventLog",
]
