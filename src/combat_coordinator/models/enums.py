"""Enumeration types for the combat coordinator.

This module defines the enumeration types shared by the models and the
engine: planes of action, participant kinds, the action economy currencies,
session phases, and the intent and notification vocabularies exchanged with
the transport layer.
"""

from __future__ import annotations

from enum import StrEnum


class Plane(StrEnum):
    """A context in which a participant may act within a combat round."""

    PHYSICAL = "physical"
    ASTRAL = "astral"
    MATRIX = "matrix"

    @property
    def rank(self) -> int:
        """Get the canonical position of the plane.

        Returns:
            Index of the plane in the default resolution order.
        """
        return PLANE_ORDER.index(self)


PLANE_ORDER: tuple[Plane, ...] = (Plane.PHYSICAL, Plane.ASTRAL, Plane.MATRIX)
"""Default plane resolution order."""


class ParticipantType(StrEnum):
    """Kind of combatant tracked by the registry."""

    PLAYER = "player"
    """Player character."""

    NPC = "npc"
    """Game-master controlled character."""

    DRONE = "drone"
    """Remote-operated vehicle or drone."""

    PERSONA = "persona"
    """Matrix persona of a decker or technomancer."""


class ActionKind(StrEnum):
    """Action currencies spent during a turn."""

    SIMPLE = "simple"
    COMPLEX = "complex"
    FREE = "free"
    INTERRUPT = "interrupt"

    @property
    def needs_turn(self) -> bool:
        """Check whether the action may only be taken on one's own turn.

        Returns:
            True for simple and complex actions.
        """
        return self in (ActionKind.SIMPLE, ActionKind.COMPLEX)

    @property
    def can_hold(self) -> bool:
        """Check whether the action may be reserved for later.

        Returns:
            True for simple and complex actions.
        """
        return self.needs_turn


class BudgetState(StrEnum):
    """Spending state of a participant's budget for the round."""

    UNSPENT = "unspent"
    PARTIALLY_SPENT = "partially_spent"
    FULLY_SPENT = "fully_spent"


class CombatPhase(StrEnum):
    """Lifecycle phase of a combat session."""

    SETUP = "setup"
    """Cast assembly and initiative rolls before the first round."""

    ACTIVE = "active"
    """Rounds are being resolved."""


class IntentKind(StrEnum):
    """Requests a client may submit to a combat session."""

    ADD_PARTICIPANT = "add_participant"
    REMOVE_PARTICIPANT = "remove_participant"
    UPDATE_PARTICIPANT = "update_participant"
    ENTER_PLANE = "enter_plane"
    LEAVE_PLANE = "leave_plane"
    ADD_CONDITION = "add_condition"
    REMOVE_CONDITION = "remove_condition"
    ROLL_INITIATIVE = "roll_initiative"
    START_COMBAT = "start_combat"
    DECLARE_ACTION = "declare_action"
    RESERVE_ACTION = "reserve_action"
    USE_RESERVED = "use_reserved"
    END_TURN = "end_turn"
    END_COMBAT = "end_combat"


class NotificationKind(StrEnum):
    """Derived notifications returned alongside a state delta."""

    PARTICIPANT_ADDED = "participant_added"
    PARTICIPANT_REMOVED = "participant_removed"
    PARTICIPANT_UPDATED = "participant_updated"
    INITIATIVE_ROLLED = "initiative_rolled"
    COMBAT_STARTED = "combat_started"
    ACTION_TAKEN = "action_taken"
    ACTION_RESERVED = "action_reserved"
    TURN_ADVANCED = "turn_advanced"
    TURN_SKIPPED = "turn_skipped"
    PLANE_ADVANCED = "plane_advanced"
    PASS_ADVANCED = "pass_advanced"
    ROUND_ADVANCED = "round_advanced"
    CONDITION_EXPIRED = "condition_expired"
    RESERVATION_FORFEITED = "reservation_forfeited"
    COMBAT_ENDED = "combat_ended"
    YOUR_TURN = "your_turn"


__all__ = [
    "Plane",
    "PLANE_ORDER",
    "ParticipantType",
    "ActionKind",
    "BudgetState",
    "CombatPhase",
    "IntentKind",
    "NotificationKind",
]
