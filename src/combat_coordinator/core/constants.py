"""Application-wide constants for the combat coordinator.

This module defines the default action economy and initiative limits. The
defaults are configurable through CombatSettings; these values are the
fallbacks used when no settings are supplied.
"""

from __future__ import annotations

# =============================================================================
# Action Economy Defaults
# =============================================================================

DEFAULT_SIMPLE_ACTIONS = 1
"""Simple actions available per turn."""

DEFAULT_COMPLEX_ACTIONS = 1
"""Complex actions available per turn."""

DEFAULT_FREE_ACTIONS: int | None = None
"""Free actions available per turn (None means unlimited)."""

DEFAULT_INTERRUPT_ACTIONS = 1
"""Interrupt opportunities available per turn."""

# =============================================================================
# Initiative Constants
# =============================================================================

MAX_INITIATIVE_DICE = 5
"""Maximum base initiative dice a participant may have."""

MAX_INITIATIVE_PASSES = 4
"""Maximum initiative passes a participant may act in per round."""

SEED_BITS = 32
"""Width of generated tie-break seeds."""

FIRST_ROUND = 1
"""Round number opened by start_combat."""

FIRST_PASS = 1
"""Initiative pass number that opens every round."""

# =============================================================================
# Event Log & Storage
# =============================================================================

FIRST_SEQUENCE = 0
"""Sequence number of the first event in a session's log."""

DEFAULT_SNAPSHOT_INTERVAL = 25
"""Events between persisted snapshots."""


__all__ = [
    "DEFAULT_SIMPLE_ACTIONS",
    "DEFAULT_COMPLEX_ACTIONS",
    "DEFAULT_FREE_ACTIONS",
    "DEFAULT_INTERRUPT_ACTIONS",
    "MAX_INITIATIVE_DICE",
    "MAX_INITIATIVE_PASSES",
    "SEED_BITS",
    "FIRST_ROUND",
    "FIRST_PASS",
    "FIRST_SEQUENCE",
    "DEFAULT_SNAPSHOT_INTERVAL",
]
