"""
conftest.py - Shared pytest fixtures for goal ledger tests

Provides common fixtures used across unit, conformance and functional tests:
- Ledgers (empty, funded)
- A goal ready for deposits
- Event recording
- FakeView for read-only helpers
"""

import pytest
from decimal import Decimal

from goal_ledger import GoalLedger, CustodyBook, Goal

from tests.fake_view import FakeView
from tests.helpers import START, ONE_DAY, make_ledger, create_goal, EventRecorder


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh quiet ledger with no goals and no funded wallets."""
    return GoalLedger("test", initial_time=START, verbose=False)


@pytest.fixture
def funded_ledger():
    """Ledger where alice, bob and carol each hold 100."""
    return make_ledger("alice", "bob", "carol")


@pytest.fixture
def goal_id(funded_ledger):
    """alice's goal: target 2, deadline START + 1 day."""
    return create_goal(funded_ledger)


@pytest.fixture
def recorder(funded_ledger):
    """EventRecorder subscribed to every event of funded_ledger."""
    rec = EventRecorder()
    funded_ledger.subscribe_all(rec)
    return rec


@pytest.fixture
def custody():
    """CustodyBook where alice holds 10."""
    book = CustodyBook()
    book.fund("alice", Decimal("10"))
    return book


# =============================================================================
# FAKE VIEW FIXTURES
# =============================================================================

@pytest.fixture
def goal_view():
    """FakeView with two goals for alice and one for bob."""
    return FakeView(
        goals=[
            Goal(0, "alice", "Car", "", Decimal("10"), START + ONE_DAY, Decimal("4")),
            Goal(1, "bob", "Trip", "", Decimal("3"), START + ONE_DAY, Decimal("3")),
            Goal(2, "alice", "Laptop", "", Decimal("2"), START - ONE_DAY, Decimal("0"),
                 is_withdrawn=True),
        ],
        time=START,
    )
