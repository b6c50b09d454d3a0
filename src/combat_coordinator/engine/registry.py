"""Participant registry.

The registry exclusively owns the participants of one combat session. Other
components refer to participants by identifier only and are told about
removals through listeners, so no entry or budget ever outlives its owner.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from combat_coordinator.core.exceptions import ConflictError, NotFoundError, ValidationError
from combat_coordinator.core.logging import get_logger
from combat_coordinator.models.participant import Participant, StatusCondition


logger = get_logger(__name__)

RemovalListener = Callable[[str], None]


class ParticipantRegistry:
    """Owns the set of combatants and their attributes.

    All mutations are last-writer-wins per field. Participants are stored as
    immutable snapshots and replaced on every update.

    Example:
        >>> registry = ParticipantRegistry()
        >>> pid = registry.add(Participant(name="Sam"))
        >>> registry.update(pid, {"initiative_score": 12}).initiative_score
        12
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._participants: dict[str, Participant] = {}
        self._removal_listeners: list[RemovalListener] = []

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._participants

    def __len__(self) -> int:
        return len(self._participants)

    def add_removal_listener(self, listener: RemovalListener) -> None:
        """Register a callback invoked with the id of every removed participant.

        Listeners run before the participant disappears, so they can still
        look it up while purging their own references.
        """
        self._removal_listeners.append(listener)

    def add(self, participant: Participant) -> str:
        """Add a participant.

        Args:
            participant: The participant to add.

        Returns:
            The participant's identifier.

        Raises:
            ConflictError: If the identifier is already registered.
        """
        if participant.id in self._participants:
            raise ConflictError(
                f"Participant {participant.id} already exists",
                participant_id=participant.id,
            )
        self._participants[participant.id] = participant
        logger.debug("Participant added", participant_id=participant.id, name=participant.name)
        return participant.id

    def remove(self, participant_id: str) -> Participant:
        """Remove a participant, purging every reference to it first.

        Args:
            participant_id: Identifier of the participant.

        Returns:
            The removed participant.

        Raises:
            NotFoundError: If the participant does not exist.
        """
        participant = self.get(participant_id)
        for listener in self._removal_listeners:
            listener(participant_id)
        del self._participants[participant_id]
        logger.debug("Participant removed", participant_id=participant_id)
        return participant

    def get(self, participant_id: str) -> Participant:
        """Get the current snapshot of a participant.

        Raises:
            NotFoundError: If the participant does not exist.
        """
        try:
            return self._participants[participant_id]
        except KeyError:
            raise NotFoundError(
                f"Participant {participant_id} not found",
                resource="participant",
                participant_id=participant_id,
            ) from None

    def contains(self, participant_id: str) -> bool:
        """Check whether a participant is registered."""
        return participant_id in self._participants

    def ids(self) -> list[str]:
        """Identifiers in insertion order."""
        return list(self._participants)

    def all(self) -> list[Participant]:
        """All participants in insertion order."""
        return list(self._participants.values())

    def update(self, participant_id: str, mutation: Mapping[str, Any]) -> Participant:
        """Replace the given fields of a participant.

        Args:
            participant_id: Identifier of the participant.
            mutation: Field name to new value.

        Returns:
            The updated participant.

        Raises:
            NotFoundError: If the participant does not exist.
            ValidationError: If the mutation changes the id or fails validation.
        """
        current = self.get(participant_id)
        if "id" in mutation and mutation["id"] != participant_id:
            raise ValidationError(
                "Participant id cannot be changed",
                field_name="id",
                invalid_value=mutation["id"],
            )
        try:
            updated = current.evolve(**dict(mutation))
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Invalid update for participant {participant_id}: {exc.error_count()} error(s)",
                details={"errors": [e["msg"] for e in exc.errors()]},
            ) from exc
        self._participants[participant_id] = updated
        return updated

    def replace(self, participant: Participant) -> Participant:
        """Store a new snapshot for an already registered participant."""
        self.get(participant.id)
        self._participants[participant.id] = participant
        return participant

    def add_condition(self, participant_id: str, condition: StatusCondition) -> Participant:
        """Attach a status condition, replacing one with the same name."""
        return self.replace(self.get(participant_id).with_condition(condition))

    def remove_condition(self, participant_id: str, name: str) -> Participant:
        """Drop a status condition by name.

        Raises:
            NotFoundError: If the participant or the condition does not exist.
        """
        participant = self.get(participant_id)
        if participant.condition(name) is None:
            raise NotFoundError(
                f"Condition {name!r} not found on participant {participant_id}",
                resource="condition",
                participant_id=participant_id,
            )
        return self.replace(participant.without_conditions({name}))

    def expire_conditions(self, round_number: int) -> list[tuple[str, StatusCondition]]:
        """Drop every condition that has lapsed by ``round_number``.

        Args:
            round_number: The round being entered.

        Returns:
            (participant id, condition) pairs that expired.
        """
        expired: list[tuple[str, StatusCondition]] = []
        for participant in list(self._participants.values()):
            lapsed = [c for c in participant.conditions if c.is_expired(round_number)]
            if not lapsed:
                continue
            self.replace(participant.without_conditions({c.name for c in lapsed}))
            expired.extend((participant.id, c) for c in lapsed)
        if expired:
            logger.debug("Conditions expired", round=round_number, count=len(expired))
        return expired

    def load(self, participants: Iterable[Participant]) -> None:
        """Replace the whole cast without notifying listeners."""
        self._participants = {p.id: p for p in participants}


__all__ = [
    "RemovalListener",
    "ParticipantRegistry",
]
