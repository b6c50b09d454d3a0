"""Tests for per-plane initiative tracks."""

from __future__ import annotations

import itertools
import random

import pytest

from combat_coordinator.core.exceptions import InvalidPlaneError, NotFoundError
from combat_coordinator.engine.initiative import PLANE_EXHAUSTED, InitiativeTrack
from combat_coordinator.engine.registry import ParticipantRegistry
from combat_coordinator.models.enums import Plane
from combat_coordinator.models.participant import Participant


@pytest.fixture
def track(registry: ParticipantRegistry) -> InitiativeTrack:
    """Provide a track over the shared registry."""
    return InitiativeTrack(registry)


class TestOrdering:
    """Tests for turn order within a plane."""

    def test_tie_broken_by_seed(self, track: InitiativeTrack) -> None:
        """Test equal scores act in seed order, then exhaust the plane."""
        track.roll("a", Plane.PHYSICAL, score=10, seed=1)
        track.roll("b", Plane.PHYSICAL, score=10, seed=2)

        assert track.current(Plane.PHYSICAL) == "a"
        assert track.advance(Plane.PHYSICAL) == "b"
        assert track.advance(Plane.PHYSICAL) is PLANE_EXHAUSTED
        assert track.is_exhausted(Plane.PHYSICAL)

    def test_higher_score_first(self, track: InitiativeTrack) -> None:
        """Test higher scores act first regardless of roll order."""
        track.roll("a", Plane.PHYSICAL, score=4, seed=0)
        track.roll("b", Plane.PHYSICAL, score=11, seed=9)

        assert [e.participant_id for e in track.order(Plane.PHYSICAL)] == ["b", "a"]

    def test_equal_rolls_ordered_by_id(self, track: InitiativeTrack) -> None:
        """Test identical score and seed still order deterministically."""
        track.roll("b", Plane.PHYSICAL, score=7, seed=3)
        track.roll("a", Plane.PHYSICAL, score=7, seed=3)

        assert track.current(Plane.PHYSICAL) == "a"

    def test_reroll_replaces_entry(self, track: InitiativeTrack) -> None:
        """Test a participant has at most one entry per plane."""
        track.roll("a", Plane.PHYSICAL, score=3, seed=1)
        track.roll("a", Plane.PHYSICAL, score=13, seed=1)

        assert len(track) == 1
        assert track.entry("a", Plane.PHYSICAL).score == 13  # type: ignore[union-attr]

    def test_empty_plane_exhausted(self, track: InitiativeTrack) -> None:
        """Test an empty plane reports exhaustion instead of failing."""
        assert track.current(Plane.ASTRAL) is None
        assert track.advance(Plane.ASTRAL) is PLANE_EXHAUSTED


_ROLLS = [("c", 12, 2), ("d", 12, 1), ("e", 15, 7), ("f", 12, 1)]


@pytest.fixture
def crowd() -> ParticipantRegistry:
    """Provide a registry of six physical-only participants."""
    registry = ParticipantRegistry()
    for participant_id in "cdefgh":
        registry.add(Participant(id=participant_id, name=participant_id.upper()))
    return registry


class TestOrderingProperties:
    """Tests for the order over arbitrary sequences of rolls."""

    @pytest.mark.parametrize("rolls", list(itertools.permutations(_ROLLS)))
    def test_roll_order_irrelevant(
        self, crowd: ParticipantRegistry, rolls: tuple[tuple[str, int, int], ...]
    ) -> None:
        """Test every insertion order yields the same turn order."""
        track = InitiativeTrack(crowd)
        for participant_id, score, seed in rolls:
            track.roll(participant_id, Plane.PHYSICAL, score=score, seed=seed)

        assert track.current(Plane.PHYSICAL) == "e"
        assert [e.participant_id for e in track.order(Plane.PHYSICAL)] == ["e", "d", "f", "c"]

    @pytest.mark.parametrize("seed", range(25))
    def test_current_is_best_entry(self, crowd: ParticipantRegistry, seed: int) -> None:
        """Test the best-ranked entry is current after every roll, including re-rolls."""
        rng = random.Random(seed)
        track = InitiativeTrack(crowd)
        latest: dict[str, tuple[int, int, str]] = {}

        for _ in range(30):
            participant_id = rng.choice("cdefgh")
            score, tie_seed = rng.randint(1, 6), rng.randint(0, 2)
            track.roll(participant_id, Plane.PHYSICAL, score=score, seed=tie_seed)
            latest[participant_id] = (-score, tie_seed, participant_id)

            expected = sorted(latest.values())
            assert track.current(Plane.PHYSICAL) == expected[0][2]
            assert [e.participant_id for e in track.order(Plane.PHYSICAL)] == [k[2] for k in expected]
            assert len(track) == len(latest)


class TestValidation:
    """Tests for rejected rolls."""

    def test_unconfigured_plane(self, registry: ParticipantRegistry) -> None:
        """Test planes outside the configured order are rejected."""
        track = InitiativeTrack(registry, (Plane.PHYSICAL,))

        with pytest.raises(InvalidPlaneError):
            track.roll("b", Plane.MATRIX, score=5, seed=1)

    def test_absent_from_plane(self, track: InitiativeTrack) -> None:
        """Test rolling in a plane the participant is not present in."""
        with pytest.raises(InvalidPlaneError):
            track.roll("a", Plane.MATRIX, score=5, seed=1)

    def test_unknown_participant(self, track: InitiativeTrack) -> None:
        """Test rolling for an unknown participant."""
        with pytest.raises(NotFoundError):
            track.roll("nobody", Plane.PHYSICAL, score=5, seed=1)

    def test_missing(self, track: InitiativeTrack) -> None:
        """Test participants that have not rolled are reported per plane."""
        track.roll("a", Plane.PHYSICAL, score=5, seed=1)

        assert track.missing(Plane.PHYSICAL) == ["b"]
        assert track.missing(Plane.MATRIX) == ["b"]
        assert track.missing(Plane.ASTRAL) == []


class TestPassesAndRounds:
    """Tests for initiative passes and round boundaries."""

    def test_passes_capped(self, registry: ParticipantRegistry) -> None:
        """Test passes never exceed the configured cap."""
        track = InitiativeTrack(registry, max_passes=2)

        entry = track.roll("a", Plane.PHYSICAL, score=5, seed=1, passes=4)

        assert entry.passes == 2

    def test_second_pass(self, track: InitiativeTrack) -> None:
        """Test only entries with extra passes act in later passes."""
        track.roll("a", Plane.PHYSICAL, score=5, seed=1, passes=2)
        track.roll("b", Plane.PHYSICAL, score=9, seed=1)
        track.new_round()
        track.advance(Plane.PHYSICAL)
        track.advance(Plane.PHYSICAL)

        assert track.has_further_pass()

        track.begin_pass(2)

        assert track.current(Plane.PHYSICAL) == "a"
        assert track.advance(Plane.PHYSICAL) is PLANE_EXHAUSTED
        assert not track.has_further_pass()

    def test_new_round_resets_cursor(self, track: InitiativeTrack) -> None:
        """Test a new round starts every plane from its best entry."""
        track.roll("a", Plane.PHYSICAL, score=5, seed=1)
        track.new_round()
        track.advance(Plane.PHYSICAL)
        assert track.is_exhausted(Plane.PHYSICAL)

        assert track.new_round() == 2
        assert track.current(Plane.PHYSICAL) == "a"
        assert track.pass_number == 1

    def test_first_ready_plane(self, track: InitiativeTrack) -> None:
        """Test planes are resolved in the configured order."""
        track.roll("b", Plane.MATRIX, score=5, seed=1)
        assert track.first_ready_plane() == Plane.MATRIX

        track.roll("a", Plane.PHYSICAL, score=1, seed=1)
        assert track.first_ready_plane() == Plane.PHYSICAL


class TestMidRound:
    """Tests for rolls and removals during a round."""

    def test_roll_ahead_of_current_is_deferred(self, registry: ParticipantRegistry) -> None:
        """Test a new entry never pre-empts the plane being resolved."""
        registry.add(Participant(id="c", name="Charlie"))
        track = InitiativeTrack(registry)
        track.roll("a", Plane.PHYSICAL, score=10, seed=1)
        track.roll("b", Plane.PHYSICAL, score=8, seed=1)
        track.new_round()
        track.active_plane = Plane.PHYSICAL

        track.roll("c", Plane.PHYSICAL, score=20, seed=1)

        assert track.current(Plane.PHYSICAL) == "a"
        assert track.has_acted("c", Plane.PHYSICAL)

        track.new_round()
        assert track.current(Plane.PHYSICAL) == "c"

    def test_roll_behind_current_joins_pass(self, registry: ParticipantRegistry) -> None:
        """Test a lower entry joins the pass in progress."""
        registry.add(Participant(id="c", name="Charlie"))
        track = InitiativeTrack(registry)
        track.roll("a", Plane.PHYSICAL, score=10, seed=1)
        track.new_round()
        track.active_plane = Plane.PHYSICAL

        track.roll("c", Plane.PHYSICAL, score=2, seed=1)

        assert track.advance(Plane.PHYSICAL) == "c"

    def test_purge(self, track: InitiativeTrack) -> None:
        """Test removing a participant drops all of its entries."""
        track.roll("b", Plane.PHYSICAL, score=5, seed=1)
        track.roll("b", Plane.MATRIX, score=5, seed=1)

        assert track.purge("b") == 2
        assert len(track) == 0

    def test_purge_current_moves_cursor(self, track: InitiativeTrack) -> None:
        """Test the cursor never points at a removed participant."""
        track.roll("a", Plane.PHYSICAL, score=10, seed=1)
        track.roll("b", Plane.PHYSICAL, score=5, seed=1)
        track.new_round()

        track.purge("a")

        assert track.current(Plane.PHYSICAL) == "b"

    def test_discard(self, track: InitiativeTrack) -> None:
        """Test dropping one plane's entry."""
        track.roll("b", Plane.PHYSICAL, score=5, seed=1)
        track.roll("b", Plane.MATRIX, score=5, seed=1)

        assert track.discard("b", Plane.MATRIX) is True
        assert track.discard("b", Plane.MATRIX) is False
        assert track.entry("b", Plane.PHYSICAL) is not None

    def test_load_restores_cursor(
        self, registry: ParticipantRegistry, track: InitiativeTrack
    ) -> None:
        """Test a track loaded from another track's state resumes identically."""
        track.roll("a", Plane.PHYSICAL, score=10, seed=1)
        track.roll("b", Plane.PHYSICAL, score=5, seed=1)
        track.new_round()
        track.advance(Plane.PHYSICAL)

        copy = InitiativeTrack(registry)
        copy.load(
            track.entries(),
            track.acted_map(),
            round_number=track.round_number,
            pass_number=track.pass_number,
            active_plane=track.active_plane,
        )

        assert copy.current(Plane.PHYSICAL) == "b"
        assert copy.round_number == 1
