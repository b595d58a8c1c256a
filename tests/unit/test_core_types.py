"""
test_core_types.py - Unit tests for core records and pure functions

Tests:
- Goal record immutability and helpers
- to_amount coercion and rejection
- is_withdrawable predicate
- Exception hierarchy
"""

import pytest
from dataclasses import FrozenInstanceError, replace
from decimal import Decimal

from goal_ledger import (
    Goal, to_amount, is_withdrawable,
    GoalLedgerError, ValidationError, GoalNotFound, Unauthorized, AlreadyFinalized,
    NotEligible, ZeroAmount, ZeroBalance, TransferFailed,
    CustodyError, InsufficientFunds, WalletNotRegistered, TransferRefused,
    AMOUNT_DECIMAL_PLACES,
)

from tests.helpers import START, ONE_DAY


def _goal(**overrides) -> Goal:
    fields = dict(
        goal_id=0, owner="alice", title="Car", description="",
        target_amount=Decimal("2"), deadline=START + ONE_DAY,
    )
    fields.update(overrides)
    return Goal(**fields)


class TestGoalRecord:
    """Tests for the Goal dataclass."""

    def test_defaults(self):
        goal = _goal()
        assert goal.balance == Decimal("0")
        assert goal.is_withdrawn is False
        assert goal.created_at is None

    def test_frozen(self):
        goal = _goal()
        with pytest.raises(FrozenInstanceError):
            goal.balance = Decimal("1")

    def test_replace_creates_new_record(self):
        goal = _goal()
        updated = replace(goal, balance=Decimal("1"))
        assert goal.balance == Decimal("0")
        assert updated.balance == Decimal("1")

    def test_target_reached(self):
        assert not _goal(balance=Decimal("1.999")).target_reached
        assert _goal(balance=Decimal("2")).target_reached
        assert _goal(balance=Decimal("5")).target_reached

    def test_repr_shows_progress(self):
        assert "1/2" in repr(_goal(balance=Decimal("1")))
        assert "withdrawn" in repr(_goal(is_withdrawn=True))


class TestToAmount:
    """Tests for monetary coercion."""

    @pytest.mark.parametrize("value,expected", [
        (Decimal("1.5"), Decimal("1.5")),
        (3, Decimal("3")),
        ("0.4", Decimal("0.4")),
        (0.1, Decimal("0.1")),
        ("0", Decimal("0")),
        ("-2", Decimal("-2")),
    ])
    def test_accepts_numeric(self, value, expected):
        assert to_amount(value) == expected

    @pytest.mark.parametrize("value", ["abc", None, "", True, [1]])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(ValidationError, match="numeric"):
            to_amount(value)

    @pytest.mark.parametrize("value", [Decimal("NaN"), Decimal("Infinity"), "-inf"])
    def test_rejects_non_finite(self, value):
        with pytest.raises(ValidationError, match="finite"):
            to_amount(value)

    def test_rejects_below_smallest_unit(self):
        tiny = Decimal(10) ** -(AMOUNT_DECIMAL_PLACES + 1)
        with pytest.raises(ValidationError, match="smallest unit"):
            to_amount(tiny)

    def test_accepts_smallest_unit(self):
        smallest = Decimal(10) ** -AMOUNT_DECIMAL_PLACES
        assert to_amount(smallest) == smallest

    def test_custom_places(self):
        assert to_amount("1.25", decimal_places=2) == Decimal("1.25")
        with pytest.raises(ValidationError):
            to_amount("1.255", decimal_places=2)

    def test_rejects_huge_values(self):
        with pytest.raises(ValidationError, match="precision"):
            to_amount(Decimal(10) ** 40)


class TestIsWithdrawable:
    """Tests for the withdrawal predicate."""

    def test_empty_goal_never_withdrawable(self):
        goal = _goal()
        assert not is_withdrawable(goal, START)
        assert not is_withdrawable(goal, START + 2 * ONE_DAY)

    def test_target_reached_before_deadline(self):
        assert is_withdrawable(_goal(balance=Decimal("2")), START)

    def test_partial_before_deadline(self):
        assert not is_withdrawable(_goal(balance=Decimal("1")), START)

    def test_partial_at_deadline(self):
        goal = _goal(balance=Decimal("1"))
        assert is_withdrawable(goal, goal.deadline)

    def test_withdrawn_goal(self):
        goal = _goal(balance=Decimal("0"), is_withdrawn=True)
        assert not is_withdrawable(goal, START + 2 * ONE_DAY)


class TestExceptionHierarchy:
    """All errors share one root so callers can catch broadly."""

    @pytest.mark.parametrize("exc", [
        ValidationError, GoalNotFound, Unauthorized, AlreadyFinalized,
        NotEligible, ZeroAmount, ZeroBalance, TransferFailed, CustodyError,
    ])
    def test_ledger_errors(self, exc):
        assert issubclass(exc, GoalLedgerError)

    @pytest.mark.parametrize("exc", [InsufficientFunds, WalletNotRegistered, TransferRefused])
    def test_custody_errors(self, exc):
        assert issubclass(exc, CustodyError)

    def test_errors_are_distinct(self):
        kinds = {ValidationError, GoalNotFound, Unauthorized, AlreadyFinalized,
                 NotEligible, ZeroAmount, ZeroBalance, TransferFailed}
        for a in kinds:
            for b in kinds - {a}:
                assert not issubclass(a, b)
