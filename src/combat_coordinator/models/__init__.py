"""Pydantic V2 schemas for the combat coordinator.

Every model is frozen: components replace snapshots instead of mutating them,
which keeps session rollback and checksumming trivial.

Submodules:
    enums: Enumeration types (Plane, ActionKind, IntentKind, etc.)
    participant: Participant and StatusCondition
    initiative: InitiativeEntry and CombatRound
    actions: ActionAllotment and ActionBudget
    events: Intent, Event, Notification, SessionSnapshot, StateDelta

Example:
    >>> from combat_coordinator.models import Participant, Plane
    >>> decker = Participant(name="Glitch", planes=[Plane.PHYSICAL, Plane.MATRIX])
"""

from __future__ import annotations

# =============================================================================
# Enumerations
# =============================================================================
from combat_coordinator.models.enums import (
    PLANE_ORDER,
    ActionKind,
    BudgetState,
    CombatPhase,
    IntentKind,
    NotificationKind,
    ParticipantType,
    Plane,
)

# =============================================================================
# Participants
# =============================================================================
from combat_coordinator.models.participant import (
    InitiativeDice,
    InitiativePasses,
    Participant,
    StatusCondition,
)

# =============================================================================
# Initiative & Actions
# =============================================================================
from combat_coordinator.models.initiative import CombatRound, InitiativeEntry
from combat_coordinator.models.actions import ActionAllotment, ActionBudget

# =============================================================================
# Events & Snapshots
# =============================================================================
from combat_coordinator.models.events import (
    ActionPayload,
    ConditionRemovalPayload,
    EmptyPayload,
    Event,
    Intent,
    Notification,
    PlanePayload,
    RollInitiativePayload,
    SessionSnapshot,
    StateDelta,
)


__all__ = [
    # Enums
    "Plane",
    "PLANE_ORDER",
    "ParticipantType",
    "ActionKind",
    "BudgetState",
    "CombatPhase",
    "IntentKind",
    "NotificationKind",
    # Participants
    "InitiativeDice",
    "InitiativePasses",
    "Participant",
    "StatusCondition",
    # Initiative & actions
    "InitiativeEntry",
    "CombatRound",
    "ActionAllotment",
    "ActionBudget",
    # Events & snapshots
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
