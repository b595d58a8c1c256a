"""
status.py - Read-Only Goal Views

Pure functions a presentation layer uses to render ledger state. None of
them mutate anything; they take a Goal record or a GoalView.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from .core import (
    Goal, GoalView, ZERO,
    STATUS_ACTIVE, STATUS_TARGET_REACHED, STATUS_EXPIRED, STATUS_WITHDRAWN,
    is_withdrawable,
)


def goal_status(goal: Goal, now: datetime) -> str:
    """
    Display status of a goal.

    WITHDRAWN once paid out; EXPIRED when the deadline passed short of the
    target; TARGET_REACHED when the balance covers the target; else ACTIVE.
    """
    if goal.is_withdrawn:
        return STATUS_WITHDRAWN
    if now > goal.deadline and not goal.target_reached:
        return STATUS_EXPIRED
    if goal.target_reached:
        return STATUS_TARGET_REACHED
    return STATUS_ACTIVE


def goal_progress(goal: Goal) -> Decimal:
    """Balance as a fraction of target (may exceed 1; 0 after withdrawal)."""
    return goal.balance / goal.target_amount


def goal_progress_percent(goal: Goal, places: int = 1) -> Decimal:
    """Progress as a percentage capped at 100, rounded to places."""
    percent = min(goal_progress(goal) * 100, Decimal(100))
    return percent.quantize(Decimal(10) ** -places)


def remaining_amount(goal: Goal) -> Decimal:
    """Amount still needed to reach the target (0 once reached or withdrawn)."""
    if goal.is_withdrawn:
        return ZERO
    return max(goal.target_amount - goal.balance, ZERO)


def goals_for_owner(view: GoalView, owner: str) -> List[Goal]:
    """Goal records created by owner, in creation order."""
    return [view.get_goal(goal_id) for goal_id in view.get_goals_by_owner(owner)]


def all_goals(view: GoalView) -> List[Goal]:
    """Every goal in id order."""
    return [view.get_goal(goal_id) for goal_id in range(view.get_total_goals())]


@dataclass(frozen=True, slots=True)
class GoalSummary:
    """Everything a goal card shows, computed at one instant."""
    goal_id: int
    title: str
    owner: str
    status: str
    balance: Decimal
    target_amount: Decimal
    progress_percent: Decimal
    remaining: Decimal
    can_withdraw: bool
    is_owner: bool


def summarize(goal: Goal, now: datetime, viewer: Optional[str] = None) -> GoalSummary:
    """
    Summarize a goal for display.

    is_owner tells the presentation layer whether to offer withdraw (owner)
    or donate (anyone else); can_withdraw uses the ledger's own predicate.
    """
    return GoalSummary(
        goal_id=goal.goal_id,
        title=goal.title,
        owner=goal.owner,
        status=goal_status(goal, now),
        balance=goal.balance,
        target_amount=goal.target_amount,
        progress_percent=goal_progress_percent(goal),
        remaining=remaining_amount(goal),
        can_withdraw=is_withdrawable(goal, now),
        is_owner=viewer is not None and viewer == goal.owner,
    )
