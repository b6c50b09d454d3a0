"""Intents, events, notifications and session snapshots.

An intent is a client request. Once a session accepts it, the normalised
intent (with every generated value filled in) becomes the payload of an
immutable Event, stamped with the checksum of the resulting SessionSnapshot.
Replaying events therefore rebuilds the exact same state.
"""

from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from combat_coordinator.models.actions import ActionBudget
from combat_coordinator.models.enums import (
    ActionKind,
    CombatPhase,
    IntentKind,
    NotificationKind,
    Plane,
)
from combat_coordinator.models.initiative import CombatRound, InitiativeEntry
from combat_coordinator.models.participant import InitiativePasses, Participant


def _utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Intents
# =============================================================================


class Intent(BaseModel):
    """A request submitted to a combat session.

    Attributes:
        kind: What the client asks for.
        participant_id: Participant the intent acts on or for.
        payload: Kind-specific arguments.
        token: Optional idempotency token.
        submitted_at: Wall-clock submission time, not part of the fingerprint.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: IntentKind
    participant_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    token: str | None = Field(default=None, min_length=1, max_length=128)
    submitted_at: datetime = Field(default_factory=_utcnow)

    def fingerprint(self) -> str:
        """Hash of (kind, participant, payload) used to detect token reuse."""
        data = json.dumps(
            {
                "kind": str(self.kind),
                "participant_id": self.participant_id,
                "payload": self.payload,
            },
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(data.encode()).hexdigest()


class RollInitiativePayload(BaseModel):
    """Arguments of a roll_initiative intent.

    Attributes:
        plane: Plane the roll applies to.
        score: Initiative score.
        seed: Tie-break seed. Generated and recorded when omitted.
        passes: Initiative passes; defaults to the participant's own value.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    plane: Plane
    score: int = Field(ge=0)
    seed: int | None = Field(default=None, ge=0)
    passes: InitiativePasses | None = None


class ActionPayload(BaseModel):
    """Arguments of declare_action, reserve_action and use_reserved."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action: ActionKind
    description: str = Field(default="", max_length=500)


class PlanePayload(BaseModel):
    """Arguments of enter_plane and leave_plane."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    plane: Plane


class ConditionRemovalPayload(BaseModel):
    """Arguments of remove_condition."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)


class EmptyPayload(BaseModel):
    """Payload of intents that take no arguments."""

    model_config = ConfigDict(frozen=True, extra="forbid")


# =============================================================================
# Events
# =============================================================================


class Event(BaseModel):
    """An accepted intent, as recorded in the event log.

    Attributes:
        sequence: Position in the log, gapless from the log start.
        timestamp: When the intent was applied.
        kind: Intent kind.
        payload: Normalised intent: participant_id, payload and token.
        checksum: SHA-256 of the resulting session snapshot.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    sequence: int = Field(ge=0)
    timestamp: datetime
    kind: IntentKind
    payload: dict[str, Any] = Field(default_factory=dict)
    checksum: str = Field(min_length=64, max_length=64)

    def to_intent(self) -> Intent:
        """Rebuild the normalised intent this event recorded."""
        return Intent(
            kind=self.kind,
            participant_id=self.payload.get("participant_id"),
            payload=self.payload.get("payload", {}),
            token=self.payload.get("token"),
            submitted_at=self.timestamp,
        )


class Notification(BaseModel):
    """A derived fact clients may want to react to, such as a new round.

    Attributes:
        kind: Notification type.
        participant_id: Participant concerned, if any.
        plane: Plane concerned, if any.
        round_number: Round in which it happened.
        detail: Extra structured information.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: NotificationKind
    participant_id: str | None = None
    plane: Plane | None = None
    round_number: int | None = None
    detail: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Snapshots
# =============================================================================


class SessionSnapshot(BaseModel):
    """Complete, deterministic state of a combat session.

    Collections are stored sorted and no wall-clock value is included, so
    equal states always serialise to identical JSON.

    Attributes:
        session_id: Owning session.
        phase: Setup or active.
        combat_round: Round, pass, active plane and acting participant.
        plane_order: Plane resolution order.
        participants: Participants sorted by id.
        initiative: Entries grouped by plane order, then in turn order.
        acted: Per plane, ids that already acted in the current pass.
        budgets: Action budgets sorted by participant id.
        receipts: Idempotency token to intent fingerprint.
        last_sequence: Sequence of the last applied event, -1 when none.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    session_id: str
    phase: CombatPhase = CombatPhase.SETUP
    combat_round: CombatRound = Field(default_factory=CombatRound)
    plane_order: tuple[Plane, ...]
    participants: tuple[Participant, ...] = ()
    initiative: tuple[InitiativeEntry, ...] = ()
    acted: dict[str, list[str]] = Field(default_factory=dict)
    budgets: tuple[ActionBudget, ...] = ()
    receipts: dict[str, str] = Field(default_factory=dict)
    last_sequence: int = Field(default=-1, ge=-1)

    def checksum(self) -> str:
        """SHA-256 of the snapshot's JSON form."""
        return hashlib.sha256(self.model_dump_json().encode()).hexdigest()

    def participant(self, participant_id: str) -> Participant | None:
        """Find a participant in the snapshot."""
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    def budget(self, participant_id: str) -> ActionBudget | None:
        """Find a participant's budget in the snapshot."""
        for budget in self.budgets:
            if budget.participant_id == participant_id:
                return budget
        return None


class StateDelta(BaseModel):
    """Result of an accepted intent.

    Attributes:
        sequence: Sequence of the event the intent produced.
        combat_round: Round pointer after the intent.
        phase: Session phase after the intent.
        notifications: Derived notifications, in the order they occurred.
        snapshot: Full state after the intent.
        duplicate: True when this answers a resubmitted idempotency token.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    sequence: int = Field(ge=0)
    combat_round: CombatRound
    phase: CombatPhase
    notifications: tuple[Notification, ...] = ()
    snapshot: SessionSnapshot
    duplicate: bool = False

    def has(self, kind: NotificationKind) -> bool:
        """Check whether a notification of ``kind`` was produced."""
        return any(n.kind == kind for n in self.notifications)


__all__ = [
    "Intent",
    "RollInitiativePayload",
    "ActionPayload",
    "PlanePayload",
    "ConditionRemovalPayload",
    "EmptyPayload",
    "Event",
    "Notification",
    "SessionSnapshot",
    "StateDelta",
]
