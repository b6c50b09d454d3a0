"""Participant and status condition models.

Participants are immutable snapshots. The registry owns the current value for
each identifier and replaces it wholesale on every mutation, so other
components only ever hold identifiers, never references.
"""

from __future__ import annotations

from typing import Annotated, Any, Self
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from combat_coordinator.models.enums import PLANE_ORDER, ParticipantType, Plane


InitiativeDice = Annotated[int, Field(ge=1, le=5, description="Base initiative dice (1-5)")]
InitiativePasses = Annotated[int, Field(ge=1, le=4, description="Initiative passes per round (1-4)")]


class StatusCondition(BaseModel):
    """A named effect on a participant, optionally expiring.

    Attributes:
        name: Unique (per participant) name of the effect.
        expires_after_round: Last round the condition applies to. None means
            it lasts until removed.
        simple_modifier: Change to the simple action allotment while active.
        complex_modifier: Change to the complex action allotment while active.
        interrupt_modifier: Change to the interrupt allotment while active.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    expires_after_round: int | None = Field(default=None, ge=0)
    simple_modifier: int = 0
    complex_modifier: int = 0
    interrupt_modifier: int = 0

    def is_expired(self, round_number: int) -> bool:
        """Check whether the condition has lapsed by the given round.

        Args:
            round_number: The round now being entered.

        Returns:
            True once the round counter exceeds the expiry round.
        """
        return self.expires_after_round is not None and round_number > self.expires_after_round


class Participant(BaseModel):
    """A combatant tracked by a combat session.

    Attributes:
        id: Unique identifier, generated when omitted.
        name: Display name.
        participant_type: Player, NPC, drone or persona.
        initiative_score: Most recently rolled initiative score.
        initiative_dice: Base initiative dice.
        initiative_passes: Number of initiative passes acted in per round.
        planes: Planes the participant is present in, in canonical order.
        conditions: Active status conditions, unique by name.
        incapacitated: Incapacitated participants are skipped and cannot act.
        controller: Optional player identifier, informational only.

    Example:
        >>> runner = Participant(name="Twitch", planes=[Plane.PHYSICAL, Plane.MATRIX])
        >>> runner.is_present(Plane.MATRIX)
        True
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: uuid4().hex, min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=100)
    participant_type: ParticipantType = ParticipantType.PLAYER
    initiative_score: int = Field(default=0, ge=0)
    initiative_dice: InitiativeDice = 1
    initiative_passes: InitiativePasses = 1
    planes: tuple[Plane, ...] = (Plane.PHYSICAL,)
    conditions: tuple[StatusCondition, ...] = ()
    incapacitated: bool = False
    controller: str | None = None

    @field_validator("planes", mode="after")
    @classmethod
    def normalize_planes(cls, value: tuple[Plane, ...]) -> tuple[Plane, ...]:
        """Deduplicate presence flags and store them in canonical order."""
        if not value:
            raise ValueError("participant must be present in at least one plane")
        return tuple(plane for plane in PLANE_ORDER if plane in value)

    @field_validator("conditions", mode="after")
    @classmethod
    def validate_unique_conditions(
        cls, value: tuple[StatusCondition, ...]
    ) -> tuple[StatusCondition, ...]:
        """Reject two conditions with the same name."""
        names = [condition.name for condition in value]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate condition names: {names}")
        return value

    def is_present(self, plane: Plane) -> bool:
        """Check presence in a plane."""
        return plane in self.planes

    def condition(self, name: str) -> StatusCondition | None:
        """Look up an active condition by name."""
        for condition in self.conditions:
            if condition.name == name:
                return condition
        return None

    def evolve(self, **changes: Any) -> Self:
        """Return a validated copy with the given fields replaced.

        Unlike ``model_copy(update=...)`` the result is fully validated, so
        plane order and condition uniqueness hold on every copy.

        Args:
            **changes: Field values to replace.

        Returns:
            New participant snapshot.
        """
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    def with_plane(self, plane: Plane) -> Self:
        """Return a copy that is present in ``plane``."""
        return self.evolve(planes=(*self.planes, plane))

    def without_plane(self, plane: Plane) -> Self:
        """Return a copy that is no longer present in ``plane``."""
        return self.evolve(planes=tuple(p for p in self.planes if p != plane))

    def with_condition(self, condition: StatusCondition) -> Self:
        """Return a copy carrying ``condition``, replacing one of the same name."""
        kept = tuple(c for c in self.conditions if c.name != condition.name)
        return self.evolve(conditions=(*kept, condition))

    def without_conditions(self, names: set[str]) -> Self:
        """Return a copy with the named conditions dropped."""
        return self.evolve(conditions=tuple(c for c in self.conditions if c.name not in names))


__all__ = [
    "InitiativeDice",
    "InitiativePasses",
    "StatusCondition",
    "Participant",
]
