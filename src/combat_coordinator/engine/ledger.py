"""Action economy bookkeeping.

The ledger keeps one ActionBudget per participant for the current round and
decides whether a requested action is legal. Budgets are immutable; every
successful operation stores a replacement and a failed one stores nothing,
so a rejected spend can never leave a budget half-updated.
"""

from __future__ import annotations

from collections.abc import Iterable

from combat_coordinator.core.exceptions import ActionUnavailableError
from combat_coordinator.core.logging import get_logger
from combat_coordinator.engine.registry import ParticipantRegistry
from combat_coordinator.models.actions import ActionAllotment, ActionBudget
from combat_coordinator.models.enums import ActionKind
from combat_coordinator.models.participant import Participant


logger = get_logger(__name__)


class ActionLedger:
    """Per-participant, per-round action budgets.

    The default allotment is one simple, one complex, unlimited free and one
    interrupt action per turn. With ``allow_complex_exchange`` a participant
    who has used up their simple actions may trade the unused complex action
    for one more simple action, after which no complex action is available.
    Taking or holding a simple action likewise rules out the complex action
    for the rest of the turn.

    Example:
        >>> ledger = ActionLedger(registry)
        >>> ledger.refresh("sam", round_number=1)
        >>> ledger.spend("sam", ActionKind.COMPLEX).complex
        0
    """

    def __init__(
        self,
        registry: ParticipantRegistry,
        allotment: ActionAllotment | None = None,
        *,
        allow_complex_exchange: bool = True,
    ) -> None:
        """Initialize the ledger.

        Args:
            registry: Registry providing incapacitation and conditions.
            allotment: Base per-turn allotment.
            allow_complex_exchange: Allow trading complex for simple.
        """
        self._registry = registry
        self.allotment = allotment or ActionAllotment()
        self.allow_complex_exchange = allow_complex_exchange
        self.round_number = 0
        self._budgets: dict[str, ActionBudget] = {}

    # =========================================================================
    # Queries
    # =========================================================================

    def allotment_for(self, participant: Participant) -> ActionAllotment:
        """Effective allotment of a participant, after condition modifiers."""
        if participant.incapacitated:
            return ActionAllotment.none()
        return self.allotment.with_modifiers(participant.conditions)

    def budget(self, participant_id: str) -> ActionBudget:
        """Current budget of a participant.

        Participants that have not had a turn yet report a full budget for
        the current round without one being stored.

        Raises:
            NotFoundError: If the participant does not exist.
        """
        participant = self._registry.get(participant_id)
        stored = self._budgets.get(participant_id)
        if stored is not None:
            return stored
        return ActionBudget.from_allotment(
            participant_id, self.round_number, self.allotment_for(participant)
        )

    def budgets(self) -> list[ActionBudget]:
        """Stored budgets sorted by participant id."""
        return [self._budgets[pid] for pid in sorted(self._budgets)]

    def can_spend(self, participant_id: str, kind: ActionKind) -> bool:
        """Check whether ``spend`` would succeed, without spending."""
        try:
            self._spent(self._usable_budget(participant_id, kind), kind)
        except ActionUnavailableError:
            return False
        return True

    # =========================================================================
    # Spending
    # =========================================================================

    def spend(self, participant_id: str, kind: ActionKind) -> ActionBudget:
        """Spend one action of ``kind``.

        Args:
            participant_id: Participant acting.
            kind: Action currency to spend.

        Returns:
            The updated budget.

        Raises:
            NotFoundError: If the participant does not exist.
            ActionUnavailableError: If the budget cannot cover the action.
        """
        updated = self._spent(self._usable_budget(participant_id, kind), kind)
        self._budgets[participant_id] = updated
        logger.debug(
            "Action spent",
            participant_id=participant_id,
            action=str(kind),
            state=str(updated.state),
        )
        return updated

    def _spent(self, budget: ActionBudget, kind: ActionKind) -> ActionBudget:
        taken = budget.actions_taken + 1
        if kind == ActionKind.FREE:
            if budget.free is None:
                return budget.model_copy(update={"actions_taken": taken})
            if budget.free > 0:
                return budget.model_copy(update={"free": budget.free - 1, "actions_taken": taken})
        elif kind == ActionKind.INTERRUPT:
            if budget.interrupt > 0:
                return budget.model_copy(
                    update={"interrupt": budget.interrupt - 1, "actions_taken": taken}
                )
        elif kind == ActionKind.COMPLEX:
            # A simple action rules out the complex action for the turn
            if budget.spent_simple and budget.complex > 0:
                raise self._unavailable(
                    budget.participant_id,
                    kind,
                    "A simple action was already taken this turn",
                )
            if budget.complex > 0 and not budget.exchanged:
                return budget.model_copy(
                    update={"complex": budget.complex - 1, "actions_taken": taken}
                )
        elif kind == ActionKind.SIMPLE:
            if budget.simple > 0:
                return budget.model_copy(update={"simple": budget.simple - 1, "actions_taken": taken})
            if self.allow_complex_exchange and budget.complex > 0 and not budget.exchanged:
                return budget.model_copy(
                    update={
                        "complex": budget.complex - 1,
                        "exchanged": True,
                        "actions_taken": taken,
                    }
                )
        raise self._unavailable(budget.participant_id, kind, f"No {kind} action left this turn")

    def reserve(self, participant_id: str, kind: ActionKind) -> ActionBudget:
        """Hold a simple or complex action for use later this round.

        Raises:
            ActionUnavailableError: If the kind cannot be held or none is left.
        """
        if not kind.can_hold:
            raise self._unavailable(participant_id, kind, f"A {kind} action cannot be held")
        budget = self._usable_budget(participant_id, kind)
        if kind == ActionKind.SIMPLE and budget.simple > 0:
            update = {"simple": budget.simple - 1, "reserved_simple": budget.reserved_simple + 1}
        elif kind == ActionKind.COMPLEX and budget.complex > 0 and not budget.spent_simple:
            update = {"complex": budget.complex - 1, "reserved_complex": budget.reserved_complex + 1}
        else:
            raise self._unavailable(participant_id, kind, f"No {kind} action left to hold")
        update["actions_taken"] = budget.actions_taken + 1
        updated = budget.model_copy(update=update)
        self._budgets[participant_id] = updated
        logger.debug("Action reserved", participant_id=participant_id, action=str(kind))
        return updated

    def use_reserved(self, participant_id: str, kind: ActionKind) -> ActionBudget:
        """Exercise a held action. Each hold can be used exactly once.

        Raises:
            ActionUnavailableError: If no action of ``kind`` is held.
        """
        budget = self._usable_budget(participant_id, kind)
        if budget.reserved(kind) == 0:
            raise self._unavailable(participant_id, kind, f"No held {kind} action")
        field = "reserved_simple" if kind == ActionKind.SIMPLE else "reserved_complex"
        updated = budget.model_copy(
            update={field: budget.reserved(kind) - 1, "actions_taken": budget.actions_taken + 1}
        )
        self._budgets[participant_id] = updated
        logger.debug("Held action used", participant_id=participant_id, action=str(kind))
        return updated

    def _usable_budget(self, participant_id: str, kind: ActionKind) -> ActionBudget:
        participant = self._registry.get(participant_id)
        if participant.incapacitated:
            raise self._unavailable(participant_id, kind, "Incapacitated participants cannot act")
        return self.budget(participant_id)

    def _unavailable(
        self, participant_id: str, kind: ActionKind, message: str
    ) -> ActionUnavailableError:
        return ActionUnavailableError(
            message,
            action_kind=kind,
            participant_id=participant_id,
            round_number=self.round_number,
        )

    # =========================================================================
    # Turn and round boundaries
    # =========================================================================

    def refresh(self, participant_id: str, round_number: int) -> ActionBudget:
        """Rebuild a participant's budget at the start of their turn.

        Actions held earlier in the same round survive the refresh.

        Returns:
            The refreshed budget.
        """
        participant = self._registry.get(participant_id)
        refreshed = ActionBudget.from_allotment(
            participant_id, round_number, self.allotment_for(participant)
        )
        previous = self._budgets.get(participant_id)
        if previous is not None and previous.round_number == round_number and previous.has_reserved:
            refreshed = refreshed.model_copy(
                update={
                    "reserved_simple": previous.reserved_simple,
                    "reserved_complex": previous.reserved_complex,
                }
            )
        self.round_number = max(self.round_number, round_number)
        self._budgets[participant_id] = refreshed
        return refreshed

    def new_round(self, round_number: int) -> list[ActionBudget]:
        """Reset every budget for a new round, forfeiting held actions.

        Args:
            round_number: The round being opened.

        Returns:
            Budgets (as they were) whose held actions were forfeited.
        """
        forfeited = [b for b in self.budgets() if b.has_reserved]
        self.round_number = round_number
        for participant_id in list(self._budgets):
            participant = self._registry.get(participant_id)
            self._budgets[participant_id] = ActionBudget.from_allotment(
                participant_id, round_number, self.allotment_for(participant)
            )
        if forfeited:
            logger.debug("Held actions forfeited", round=round_number, count=len(forfeited))
        return forfeited

    def purge(self, participant_id: str) -> bool:
        """Drop a participant's budget.

        Returns:
            True if a budget was stored.
        """
        return self._budgets.pop(participant_id, None) is not None

    def clear(self) -> None:
        """Drop every budget and return to round 0."""
        self._budgets.clear()
        self.round_number = 0

    def load(self, budgets: Iterable[ActionBudget], round_number: int) -> None:
        """Replace every budget from a snapshot."""
        self._budgets = {b.participant_id: b for b in budgets}
        self.round_number = round_number


__all__ = [
    "ActionLedger",
]
