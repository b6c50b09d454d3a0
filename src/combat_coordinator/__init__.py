"""Combat Coordinator - real-time combat state for tabletop sessions.

Tracks whose turn it is, which actions remain to each participant, and how
simultaneous activity across the physical, astral and matrix planes resolves
into one consistent, orderable timeline.

Example:
    >>> from combat_coordinator import CombatSession, Intent, IntentKind
    >>>
    >>> session = CombatSession("friday-game")
    >>> session.submit(Intent(kind=IntentKind.ADD_PARTICIPANT,
    ...                       payload={"id": "sam", "name": "Street Sam"}))
    >>> session.submit(Intent(kind=IntentKind.ROLL_INITIATIVE, participant_id="sam",
    ...                       payload={"plane": "physical", "score": 14}))
    >>> delta = session.submit(Intent(kind=IntentKind.START_COMBAT))
    >>> delta.combat_round.round_number
    1

Modules:
    core: Configuration, logging, and base exceptions.
    models: Pydantic V2 schemas (participants, entries, budgets, events).
    engine: Registry, initiative track, ledger, event log and session.
    storage: SQLite event stream and snapshot store.
"""

from __future__ import annotations

# Core
from combat_coordinator.core.config import Settings, get_settings
from combat_coordinator.core.exceptions import CombatCoordinatorError, CombatError, ErrorKind
from combat_coordinator.core.logging import configure_logging, get_logger

# Models
from combat_coordinator.models import (
    ActionKind,
    CombatPhase,
    Event,
    Intent,
    IntentKind,
    Notification,
    NotificationKind,
    Participant,
    ParticipantType,
    Plane,
    SessionSnapshot,
    StateDelta,
    StatusCondition,
)

# Engine
from combat_coordinator.engine import (
    PLANE_EXHAUSTED,
    CombatGateway,
    CombatRequest,
    CombatResponse,
    CombatSession,
    IntentQueue,
    SessionDirectory,
)

# Storage
from combat_coordinator.storage import EventStore


__version__ = "0.1.0"
__all__ = [
    # Version info
    "__version__",
    # Core
    "CombatCoordinatorError",
    "CombatError",
    "ErrorKind",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    # Models
    "ActionKind",
    "CombatPhase",
    "Event",
    "Intent",
    "IntentKind",
    "Notification",
    "NotificationKind",
    "Participant",
    "ParticipantType",
    "Plane",
    "SessionSnapshot",
    "StateDelta",
    "StatusCondition",
    # Engine
    "PLANE_EXHAUSTED",
    "CombatGateway",
    "CombatRequest",
    "CombatResponse",
    "CombatSession",
    "IntentQueue",
    "SessionDirectory",
    # Storage
    "EventStore",
]
