"""Combat engine for the combat coordinator.

This module provides the turn, initiative and action economy state machine
and the serialization point in front of it.

Submodules:
    registry: Participant registry with removal cascades
    initiative: Per-plane initiative tracks and the PLANE_EXHAUSTED signal
    ledger: Per-round action budgets
    event_log: Append-only event log with restartable replay
    session: The combat session aggregate
    intent_queue: Actor-style queue with withdrawal in front of a session
    directory: Registry of independent sessions, optionally persisted
    gateway: Request/response boundary for the transport layer

Example:
    >>> from combat_coordinator.engine import CombatGateway, CombatRequest, SessionDirectory
    >>>
    >>> directory = SessionDirectory()
    >>> directory.create("s1")
    >>> gateway = CombatGateway(directory)
    >>> response = gateway.handle(CombatRequest(
    ...     session_id="s1", kind="add_participant", payload={"name": "Sam"},
    ... ))
    >>> response.accepted
    True
"""

from __future__ import annotations

# =============================================================================
# Components
# =============================================================================
from combat_coordinator.engine.registry import ParticipantRegistry
from combat_coordinator.engine.initiative import (
    PLANE_EXHAUSTED,
    InitiativeTrack,
    TrackSignal,
)
from combat_coordinator.engine.ledger import ActionLedger
from combat_coordinator.engine.event_log import EventLog, EventReplay

# =============================================================================
# Session & Serialization
# =============================================================================
from combat_coordinator.engine.session import CombatSession
from combat_coordinator.engine.intent_queue import IntentQueue, PendingIntent

# =============================================================================
# Directory & Transport Boundary
# =============================================================================
from combat_coordinator.engine.directory import SessionDirectory
from combat_coordinator.engine.gateway import (
    CombatGateway,
    CombatRequest,
    CombatResponse,
)


__all__ = [
    # Components
    "ParticipantRegistry",
    "InitiativeTrack",
    "TrackSignal",
    "PLANE_EXHAUSTED",
    "ActionLedger",
    "EventLog",
    "EventReplay",
    # Session
    "CombatSession",
    "IntentQueue",
    "PendingIntent",
    # Directory & gateway
    "SessionDirectory",
    "CombatGateway",
    "CombatRequest",
    "CombatResponse",
]
