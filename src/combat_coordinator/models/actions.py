"""Action economy models: per-turn allotments and per-round budgets."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

from combat_coordinator.models.enums import ActionKind, BudgetState
from combat_coordinator.models.participant import StatusCondition


class ActionAllotment(BaseModel):
    """Base action counts granted at the start of a turn.

    Attributes:
        simple: Simple actions.
        complex: Complex actions.
        free: Free actions, None for unlimited.
        interrupt: Interrupt opportunities.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    simple: int = Field(default=1, ge=0)
    complex: int = Field(default=1, ge=0)
    free: int | None = Field(default=None, ge=0)
    interrupt: int = Field(default=1, ge=0)

    def with_modifiers(self, conditions: Iterable[StatusCondition]) -> Self:
        """Apply situational condition modifiers, clamping each count at zero.

        Args:
            conditions: Active conditions of the participant.

        Returns:
            Modified allotment.
        """
        simple, complex_, interrupt = self.simple, self.complex, self.interrupt
        for condition in conditions:
            simple += condition.simple_modifier
            complex_ += condition.complex_modifier
            interrupt += condition.interrupt_modifier
        return type(self)(
            simple=max(0, simple),
            complex=max(0, complex_),
            free=self.free,
            interrupt=max(0, interrupt),
        )

    @classmethod
    def none(cls) -> Self:
        """Allotment of an incapacitated participant."""
        return cls(simple=0, complex=0, free=0, interrupt=0)


class ActionBudget(BaseModel):
    """Remaining actions of one participant in one round.

    Reserved (held) actions live in their own counters as an overlay on the
    spending state. A held action is exercised once, out of turn order, or
    forfeited when the round ends.

    Attributes:
        participant_id: Owner of the budget.
        round_number: Round the budget belongs to.
        simple: Remaining simple actions.
        complex: Remaining complex actions.
        free: Remaining free actions, None for unlimited.
        interrupt: Remaining interrupt opportunities.
        reserved_simple: Held simple actions.
        reserved_complex: Held complex actions.
        exchanged: Whether the complex action was traded for a simple one.
        actions_taken: Actions spent, held or exercised since the last refresh.
        allotment: Allotment the budget was last refreshed from.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    participant_id: str = Field(min_length=1)
    round_number: int = Field(default=0, ge=0)
    simple: int = Field(default=0, ge=0)
    complex: int = Field(default=0, ge=0)
    free: int | None = Field(default=None, ge=0)
    interrupt: int = Field(default=0, ge=0)
    reserved_simple: int = Field(default=0, ge=0)
    reserved_complex: int = Field(default=0, ge=0)
    exchanged: bool = False
    actions_taken: int = Field(default=0, ge=0)
    allotment: ActionAllotment = Field(default_factory=ActionAllotment)

    @classmethod
    def from_allotment(
        cls,
        participant_id: str,
        round_number: int,
        allotment: ActionAllotment,
    ) -> Self:
        """Create an untouched budget holding the full allotment."""
        return cls(
            participant_id=participant_id,
            round_number=round_number,
            simple=allotment.simple,
            complex=allotment.complex,
            free=allotment.free,
            interrupt=allotment.interrupt,
            allotment=allotment,
        )

    @property
    def has_reserved(self) -> bool:
        """Whether any held action is outstanding."""
        return self.reserved_simple > 0 or self.reserved_complex > 0

    @property
    def spent_simple(self) -> bool:
        """Whether a simple action was spent or held since the last refresh."""
        return self.simple < self.allotment.simple

    @property
    def state(self) -> BudgetState:
        """Spending state of the turn actions."""
        if self.simple == 0 and self.complex == 0 and not self.has_reserved:
            return BudgetState.FULLY_SPENT
        if self.actions_taken == 0:
            return BudgetState.UNSPENT
        return BudgetState.PARTIALLY_SPENT

    def remaining(self, kind: ActionKind) -> int | None:
        """Remaining count of one action kind, None for unlimited."""
        return {
            ActionKind.SIMPLE: self.simple,
            ActionKind.COMPLEX: self.complex,
            ActionKind.FREE: self.free,
            ActionKind.INTERRUPT: self.interrupt,
        }[kind]

    def reserved(self, kind: ActionKind) -> int:
        """Held count of one action kind."""
        if kind == ActionKind.SIMPLE:
            return self.reserved_simple
        if kind == ActionKind.COMPLEX:
            return self.reserved_complex
        return 0


__all__ = [
    "ActionAllotment",
    "ActionBudget",
]
