"""Storage module for combat session persistence.

Provides SQLite-based storage for:
- Append-only event streams keyed by session id
- Periodic session snapshots for fast restart
"""

from combat_coordinator.storage.database import (
    EventStore,
    SnapshotRecord,
    get_event_store,
)

__all__ = [
    "EventStore",
    "SnapshotRecord",
    "get_event_store",
]
