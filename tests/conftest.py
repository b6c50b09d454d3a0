"""Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the combat coordinator test suite.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import pytest

from combat_coordinator.core.config import CombatSettings
from combat_coordinator.engine.registry import ParticipantRegistry
from combat_coordinator.engine.session import CombatSession
from combat_coordinator.models.enums import PLANE_ORDER, IntentKind, Plane
from combat_coordinator.models.events import Intent, StateDelta
from combat_coordinator.models.participant import Participant


if TYPE_CHECKING:
    from collections.abc import Generator


Send = Callable[..., StateDelta]


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Reset the settings cache before and after each test."""
    from combat_coordinator.core.config import clear_settings_cache

    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def combat_settings() -> CombatSettings:
    """Provide combat settings with explicit defaults, independent of the environment.

    Returns:
        CombatSettings with the standard allotment and plane order.
    """
    return CombatSettings(
        plane_order=PLANE_ORDER,
        simple_actions=1,
        complex_actions=1,
        free_actions=None,
        interrupt_actions=1,
        allow_complex_exchange=True,
        max_initiative_passes=4,
    )


# =============================================================================
# Determinism Fixtures
# =============================================================================


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Provide a clock that advances one second per call.

    Returns:
        Callable returning increasing timezone-aware timestamps.
    """
    ticks = itertools.count()
    start = datetime(2026, 1, 1, 20, 0, tzinfo=UTC)
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def seed_source() -> Callable[[], int]:
    """Provide a deterministic tie-break seed source.

    Returns:
        Callable returning 1000, 1001, 1002, ...
    """
    return itertools.count(1000).__next__


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def registry() -> ParticipantRegistry:
    """Provide a registry holding a physical-only and a two-plane participant.

    Returns:
        ParticipantRegistry with participants "a" and "b".
    """
    registry = ParticipantRegistry()
    registry.add(Participant(id="a", name="Alpha"))
    registry.add(Participant(id="b", name="Bravo", planes=[Plane.PHYSICAL, Plane.MATRIX]))
    return registry


@pytest.fixture
def session(
    combat_settings: CombatSettings,
    clock: Callable[[], datetime],
    seed_source: Callable[[], int],
) -> CombatSession:
    """Provide an empty session with a deterministic clock and seeds.

    Returns:
        CombatSession in the setup phase.
    """
    return CombatSession(
        "test-session",
        settings=combat_settings,
        clock=clock,
        seed_source=seed_source,
    )


@pytest.fixture
def send() -> Send:
    """Provide a helper submitting one intent to a session.

    Returns:
        Callable ``send(session, kind, participant_id=None, *, token=None, **payload)``.
    """

    def _send(
        session: CombatSession,
        kind: IntentKind,
        participant_id: str | None = None,
        *,
        token: str | None = None,
        **payload: Any,
    ) -> StateDelta:
        return session.submit(
            Intent(kind=kind, participant_id=participant_id, payload=payload, token=token)
        )

    return _send


@pytest.fixture
def skirmish(session: CombatSession, send: Send) -> CombatSession:
    """Provide an active session with two physical participants.

    Street sam "sam" (score 15) acts before ganger "ganger" (score 9).

    Returns:
        CombatSession in round 1 with "sam" acting.
    """
    send(session, IntentKind.ADD_PARTICIPANT, "sam", name="Street Sam")
    send(session, IntentKind.ADD_PARTICIPANT, "ganger", name="Ganger", participant_type="npc")
    send(session, IntentKind.ROLL_INITIATIVE, "sam", plane="physical", score=15, seed=1)
    send(session, IntentKind.ROLL_INITIATIVE, "ganger", plane="physical", score=9, seed=1)
    send(session, IntentKind.START_COMBAT)
    return session
