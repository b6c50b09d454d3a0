"""Tests for action allotments and budgets."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from combat_coordinator.models.actions import ActionAllotment, ActionBudget
from combat_coordinator.models.enums import ActionKind, BudgetState
from combat_coordinator.models.participant import StatusCondition


class TestActionAllotment:
    """Tests for ActionAllotment."""

    def test_defaults(self) -> None:
        """Test one simple, one complex, unlimited free, one interrupt."""
        allotment = ActionAllotment()

        assert (allotment.simple, allotment.complex, allotment.free, allotment.interrupt) == (
            1,
            1,
            None,
            1,
        )

    def test_modifiers_apply_and_clamp(self) -> None:
        """Test condition modifiers are summed and clamped at zero."""
        conditions = [
            StatusCondition(name="wired", simple_modifier=1),
            StatusCondition(name="stunned", complex_modifier=-2, interrupt_modifier=-1),
        ]

        modified = ActionAllotment().with_modifiers(conditions)

        assert modified.simple == 2
        assert modified.complex == 0
        assert modified.interrupt == 0
        assert modified.free is None

    def test_none(self) -> None:
        """Test the empty allotment."""
        empty = ActionAllotment.none()
        assert (empty.simple, empty.complex, empty.free, empty.interrupt) == (0, 0, 0, 0)


class TestActionBudget:
    """Tests for ActionBudget."""

    def test_from_allotment_is_unspent(self) -> None:
        """Test a fresh budget holds the full allotment."""
        budget = ActionBudget.from_allotment("sam", 1, ActionAllotment())

        assert budget.simple == 1
        assert budget.complex == 1
        assert budget.state == BudgetState.UNSPENT
        assert budget.has_reserved is False

    def test_negative_counts_rejected(self) -> None:
        """Test counts never go below zero."""
        with pytest.raises(ValidationError):
            ActionBudget(participant_id="sam", simple=-1)

    def test_partially_spent(self) -> None:
        """Test a budget with actions left after spending."""
        budget = ActionBudget(participant_id="sam", simple=1, actions_taken=1)
        assert budget.state == BudgetState.PARTIALLY_SPENT

    def test_fully_spent(self) -> None:
        """Test a budget without turn actions or holds."""
        budget = ActionBudget(participant_id="sam", free=None, interrupt=1, actions_taken=2)
        assert budget.state == BudgetState.FULLY_SPENT

    def test_reserved_overlay(self) -> None:
        """Test held actions keep the budget from being fully spent."""
        budget = ActionBudget(participant_id="sam", reserved_complex=1, actions_taken=1)

        assert budget.has_reserved is True
        assert budget.state == BudgetState.PARTIALLY_SPENT
        assert budget.reserved(ActionKind.COMPLEX) == 1
        assert budget.reserved(ActionKind.FREE) == 0

    def test_spent_simple(self) -> None:
        """Test simple spending is measured against the refreshed allotment."""
        fresh = ActionBudget.from_allotment("sam", 1, ActionAllotment())

        assert fresh.spent_simple is False
        assert fresh.model_copy(update={"simple": 0}).spent_simple is True

    def test_remaining(self) -> None:
        """Test remaining counts per kind."""
        budget = ActionBudget.from_allotment("sam", 1, ActionAllotment())

        assert budget.remaining(ActionKind.SIMPLE) == 1
        assert budget.remaining(ActionKind.FREE) is None
