"""Per-plane initiative tracks.

Each plane keeps its own ordered set of entries, so simultaneous activity in
the physical, astral and matrix planes is never forced into one artificial
global queue. The combat session composes the planes by resolving them in
the configured plane order.

A plane's cursor is the set of participants that already acted in the current
pass; the current entry is always the best-ranked entry that has not acted
yet. Keeping the cursor as a set rather than an index means re-rolls and
removals can never make it point at the wrong participant.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum

from combat_coordinator.core.constants import FIRST_PASS, MAX_INITIATIVE_PASSES
from combat_coordinator.core.exceptions import InvalidPlaneError
from combat_coordinator.core.logging import get_logger
from combat_coordinator.engine.registry import ParticipantRegistry
from combat_coordinator.models.enums import PLANE_ORDER, Plane
from combat_coordinator.models.initiative import InitiativeEntry


logger = get_logger(__name__)


class TrackSignal(Enum):
    """Control signals returned by the track. They are never raised."""

    PLANE_EXHAUSTED = "plane_exhausted"


PLANE_EXHAUSTED = TrackSignal.PLANE_EXHAUSTED


class InitiativeTrack:
    """Ordered initiative entries for every configured plane.

    Attributes:
        plane_order: Planes in resolution order.
        round_number: Current round, 0 before combat.
        pass_number: Current initiative pass within the round.
        active_plane: Plane being resolved, set by the session.

    Example:
        >>> track = InitiativeTrack(registry)
        >>> track.roll("a", Plane.PHYSICAL, score=10, seed=1)
        >>> track.roll("b", Plane.PHYSICAL, score=10, seed=2)
        >>> track.current(Plane.PHYSICAL)
        'a'
        >>> track.advance(Plane.PHYSICAL)
        'b'
        >>> track.advance(Plane.PHYSICAL)
        <TrackSignal.PLANE_EXHAUSTED: 'plane_exhausted'>
    """

    def __init__(
        self,
        registry: ParticipantRegistry,
        plane_order: Iterable[Plane] = PLANE_ORDER,
        *,
        max_passes: int = MAX_INITIATIVE_PASSES,
    ) -> None:
        """Initialize empty tracks.

        Args:
            registry: Registry used to validate rolls.
            plane_order: Plane resolution order.
            max_passes: Cap on passes granted to a single entry.
        """
        self._registry = registry
        self.plane_order: tuple[Plane, ...] = tuple(plane_order)
        self.max_passes = max_passes
        self.round_number = 0
        self.pass_number = FIRST_PASS
        self.active_plane: Plane | None = None
        self._entries: dict[Plane, dict[str, InitiativeEntry]] = {p: {} for p in self.plane_order}
        self._acted: dict[Plane, set[str]] = {p: set() for p in self.plane_order}

    # =========================================================================
    # Rolling
    # =========================================================================

    def roll(
        self,
        participant_id: str,
        plane: Plane,
        score: int,
        seed: int,
        passes: int | None = None,
    ) -> InitiativeEntry:
        """Insert or replace a participant's entry in a plane.

        During a round, an entry that would rank ahead of the plane's current
        entry in a plane that is already being resolved joins from the next
        pass instead, so nobody is pre-empted mid-turn.

        Args:
            participant_id: Participant rolling.
            plane: Plane the roll applies to.
            score: Initiative score.
            seed: Tie-break seed.
            passes: Initiative passes; defaults to the participant's own.

        Returns:
            The stored entry.

        Raises:
            NotFoundError: If the participant does not exist.
            InvalidPlaneError: If the plane is not configured or the
                participant is not present in it.
        """
        self._check_plane(plane, participant_id)
        participant = self._registry.get(participant_id)
        if not participant.is_present(plane):
            raise InvalidPlaneError(
                f"Participant {participant_id} is not present in the {plane} plane",
                plane=plane,
                participant_id=participant_id,
            )

        entry = InitiativeEntry(
            participant_id=participant_id,
            plane=plane,
            score=score,
            seed=seed,
            passes=min(passes or participant.initiative_passes, self.max_passes),
            round_number=self.round_number,
        )

        current_id = self.current(plane)
        self._entries[plane][participant_id] = entry
        if self._should_defer(plane, entry, current_id):
            self._acted[plane].add(participant_id)

        logger.debug(
            "Initiative rolled",
            participant_id=participant_id,
            plane=str(plane),
            score=score,
            seed=seed,
            passes=entry.passes,
        )
        return entry

    def _should_defer(
        self,
        plane: Plane,
        entry: InitiativeEntry,
        current_id: str | None,
    ) -> bool:
        if self.round_number == 0 or current_id is None or current_id == entry.participant_id:
            return False
        if entry.participant_id in self._acted[plane]:
            return False
        in_progress = plane == self.active_plane or bool(self._acted[plane])
        if not in_progress:
            return False
        return entry.sort_key < self._entries[plane][current_id].sort_key

    def _check_plane(self, plane: Plane, participant_id: str | None = None) -> None:
        if plane not in self._entries:
            raise InvalidPlaneError(
                f"Plane {plane} is not part of this combat",
                plane=plane,
                participant_id=participant_id,
            )

    # =========================================================================
    # Cursor
    # =========================================================================

    def current(self, plane: Plane) -> str | None:
        """Participant whose turn it is in ``plane``.

        Returns:
            The highest-ranked entry that has not acted in this pass, or None
            when the plane is empty or exhausted.
        """
        self._check_plane(plane)
        remaining = self.remaining(plane)
        return remaining[0].participant_id if remaining else None

    def advance(self, plane: Plane) -> str | TrackSignal:
        """Mark the current entry as acted and move to the next.

        Returns:
            The new current participant id, or PLANE_EXHAUSTED when no entry
            remains in this pass (including on an empty plane).
        """
        current_id = self.current(plane)
        if current_id is None:
            return PLANE_EXHAUSTED
        self._acted[plane].add(current_id)
        next_id = self.current(plane)
        if next_id is None:
            logger.debug("Plane exhausted", plane=str(plane), pass_number=self.pass_number)
            return PLANE_EXHAUSTED
        return next_id

    def mark_acted(self, participant_id: str, plane: Plane) -> None:
        """Mark a participant as done in ``plane`` for the current pass."""
        self._check_plane(plane, participant_id)
        if participant_id in self._entries[plane]:
            self._acted[plane].add(participant_id)

    def is_exhausted(self, plane: Plane) -> bool:
        """Check whether ``plane`` has no entry left in this pass."""
        return self.current(plane) is None

    def first_ready_plane(self) -> Plane | None:
        """First plane in resolution order that still has a current entry."""
        for plane in self.plane_order:
            if self.current(plane) is not None:
                return plane
        return None

    # =========================================================================
    # Rounds and passes
    # =========================================================================

    def new_round(self) -> int:
        """Open the next round: reset every plane's cursor and bump the counter.

        Returns:
            The new round number.
        """
        self.round_number += 1
        self.pass_number = FIRST_PASS
        self.active_plane = None
        for acted in self._acted.values():
            acted.clear()
        logger.debug("Track round opened", round=self.round_number)
        return self.round_number

    def begin_pass(self, pass_number: int) -> None:
        """Start initiative pass ``pass_number`` of the current round."""
        self.pass_number = pass_number
        self.active_plane = None
        for acted in self._acted.values():
            acted.clear()

    def has_further_pass(self) -> bool:
        """Check whether any entry acts in a later pass of this round."""
        return any(
            entry.passes > self.pass_number
            for entries in self._entries.values()
            for entry in entries.values()
        )

    # =========================================================================
    # Removal
    # =========================================================================

    def purge(self, participant_id: str) -> int:
        """Drop every entry of a participant.

        Returns:
            Number of entries removed.
        """
        removed = 0
        for plane in self.plane_order:
            if self._entries[plane].pop(participant_id, None) is not None:
                removed += 1
            self._acted[plane].discard(participant_id)
        return removed

    def discard(self, participant_id: str, plane: Plane) -> bool:
        """Drop a participant's entry in one plane.

        Returns:
            True if an entry was removed.
        """
        self._check_plane(plane, participant_id)
        self._acted[plane].discard(participant_id)
        return self._entries[plane].pop(participant_id, None) is not None

    def clear(self) -> None:
        """Remove every entry and return to the pre-combat position."""
        for plane in self.plane_order:
            self._entries[plane].clear()
            self._acted[plane].clear()
        self.round_number = 0
        self.pass_number = FIRST_PASS
        self.active_plane = None

    # =========================================================================
    # Queries
    # =========================================================================

    def entry(self, participant_id: str, plane: Plane) -> InitiativeEntry | None:
        """A participant's entry in a plane, if rolled."""
        self._check_plane(plane, participant_id)
        return self._entries[plane].get(participant_id)

    def order(self, plane: Plane) -> list[InitiativeEntry]:
        """All entries of a plane from first to last to act."""
        self._check_plane(plane)
        return sorted(self._entries[plane].values(), key=lambda e: e.sort_key)

    def remaining(self, plane: Plane) -> list[InitiativeEntry]:
        """Entries still to act in ``plane`` during the current pass."""
        acted = self._acted[plane]
        return [
            entry
            for entry in self.order(plane)
            if entry.participant_id not in acted and entry.acts_in_pass(self.pass_number)
        ]

    def missing(self, plane: Plane) -> list[str]:
        """Participants present in ``plane`` that have not rolled there."""
        self._check_plane(plane)
        return [
            p.id
            for p in self._registry.all()
            if p.is_present(plane) and p.id not in self._entries[plane]
        ]

    def has_acted(self, participant_id: str, plane: Plane) -> bool:
        """Check whether a participant already acted in the current pass."""
        return participant_id in self._acted.get(plane, set())

    def entries(self) -> list[InitiativeEntry]:
        """Every entry, grouped by plane order then in turn order."""
        return [entry for plane in self.plane_order for entry in self.order(plane)]

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def acted_map(self) -> dict[str, list[str]]:
        """Acted markers per plane, sorted for deterministic snapshots."""
        return {str(plane): sorted(self._acted[plane]) for plane in self.plane_order}

    def load(
        self,
        entries: Iterable[InitiativeEntry],
        acted: Mapping[str, Iterable[str]],
        *,
        round_number: int,
        pass_number: int,
        active_plane: Plane | None,
    ) -> None:
        """Replace the whole track from a snapshot."""
        self.clear()
        for entry in entries:
            self._check_plane(entry.plane, entry.participant_id)
            self._entries[entry.plane][entry.participant_id] = entry
        for plane_name, ids in acted.items():
            plane = Plane(plane_name)
            self._check_plane(plane)
            self._acted[plane].update(ids)
        self.round_number = round_number
        self.pass_number = pass_number
        self.active_plane = active_plane


__all__ = [
    "TrackSignal",
    "PLANE_EXHAUSTED",
    "InitiativeTrack",
]
