"""Initiative entries and the combat round pointer."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from combat_coordinator.models.enums import Plane
from combat_coordinator.models.participant import InitiativePasses


class InitiativeEntry(BaseModel):
    """One participant's initiative in one plane.

    Entries in a plane are totally ordered by ``sort_key``: higher score
    first, then lower seed, then participant id so that equal rolls never
    collapse and always order the same way.

    Attributes:
        participant_id: Identifier of the participant.
        plane: Plane the entry belongs to.
        score: Initiative score.
        seed: Tie-break seed, lower acts first.
        passes: Initiative passes the entry acts in each round.
        round_number: Round in which the entry was rolled.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    participant_id: str = Field(min_length=1)
    plane: Plane
    score: int = Field(ge=0)
    seed: int = Field(ge=0)
    passes: InitiativePasses = 1
    round_number: int = Field(default=0, ge=0)

    @property
    def sort_key(self) -> tuple[int, int, str]:
        """Key ordering entries from first to last to act."""
        return (-self.score, self.seed, self.participant_id)

    def acts_in_pass(self, pass_number: int) -> bool:
        """Check whether the entry takes part in the given pass."""
        return pass_number <= self.passes


class CombatRound(BaseModel):
    """Position of the session within combat.

    Attributes:
        round_number: 0 before combat, then increments by one per round.
        pass_number: 1-based initiative pass within the round.
        active_plane: Plane currently being resolved.
        acting_participant_id: Participant whose turn it is.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    round_number: int = Field(default=0, ge=0)
    pass_number: int = Field(default=1, ge=1)
    active_plane: Plane | None = None
    acting_participant_id: str | None = None

    @property
    def turn_key(self) -> tuple[int, int, str | None, str | None]:
        """Identity of the current turn, changes whenever a new turn begins."""
        return (
            self.round_number,
            self.pass_number,
            str(self.active_plane) if self.active_plane else None,
            self.acting_participant_id,
        )


__all__ = [
    "InitiativeEntry",
    "CombatRound",
]
