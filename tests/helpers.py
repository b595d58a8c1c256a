"""
helpers.py - Test Helpers for goal ledger tests

Builders and a recording subscriber shared by the test modules.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from goal_ledger import GoalLedger, GoalEvent


START = datetime(2025, 1, 1, 12, 0, 0)
ONE_DAY = timedelta(days=1)


def make_ledger(*wallets: str, funding: Decimal = Decimal("100")) -> GoalLedger:
    """Quiet ledger at START with each wallet funded."""
    ledger = GoalLedger("test", initial_time=START, verbose=False)
    for wallet in wallets:
        ledger.funds.fund(wallet, funding)
    return ledger


def create_goal(ledger: GoalLedger, owner: str = "alice", target: str = "2",
                deadline: Optional[datetime] = None, title: str = "Dream") -> int:
    """Create a goal with sensible defaults (deadline one day after START)."""
    return ledger.create_goal(
        title, "Saving up", Decimal(target), deadline or START + ONE_DAY, caller=owner
    )


class EventRecorder:
    """Subscriber that keeps every event it receives."""

    def __init__(self):
        self.events: List[GoalEvent] = []

    def __call__(self, event: GoalEvent) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]
