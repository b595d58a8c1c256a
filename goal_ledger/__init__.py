"""
goal_ledger - Savings Goal Ledger

Anyone can create a savings goal with a target and a deadline, anyone can
deposit toward it, and the owner withdraws the whole balance exactly once
when the deadline has passed or the target is reached.

Usage:
    from datetime import datetime
    from decimal import Decimal
    from goal_ledger import GoalLedger, Deposited

    ledger = GoalLedger("main", initial_time=datetime(2025, 1, 1))
    ledger.funds.fund("bob", Decimal("10"))
    ledger.subscribe("Deposited", lambda event: print(event))

    goal_id = ledger.create_goal(
        "New bike", "Saving for a road bike",
        Decimal("1.0"), datetime(2025, 2, 1), caller="alice",
    )
    ledger.deposit(goal_id, Decimal("1.0"), depositor="bob")

    if ledger.can_withdraw(goal_id):
        ledger.withdraw(goal_id, caller="alice")
"""

# Core types
from .core import (
    Goal,
    GoalView,
    FundsTransfer,
    OwnerIndex,
    GoalLedgerError,
    ValidationError,
    GoalNotFound,
    Unauthorized,
    AlreadyFinalized,
    NotEligible,
    ZeroAmount,
    ZeroBalance,
    TransferFailed,
    to_amount,
    is_withdrawable,
    AMOUNT_DECIMAL_PLACES,
    CUSTODY_WALLET,
    ISSUER_WALLET,
    STATUS_ACTIVE,
    STATUS_TARGET_REACHED,
    STATUS_EXPIRED,
    STATUS_WITHDRAWN,
)

# Ledger
from .ledger import GoalLedger

# Notifications
from .events import (
    GoalCreated,
    Deposited,
    Withdrawn,
    GoalEvent,
    EventBus,
    EventHandler,
    ObserverFailure,
    GOAL_CREATED,
    DEPOSITED,
    WITHDRAWN,
    EVENT_KINDS,
)

# Funds channel
from .custody import (
    CustodyBook,
    Move,
    CustodyError,
    InsufficientFunds,
    WalletNotRegistered,
    TransferRefused,
)

# Read-only views
from .status import (
    GoalSummary,
    goal_status,
    goal_progress,
    goal_progress_percent,
    remaining_amount,
    goals_for_owner,
    all_goals,
    summarize,
)

__all__ = [
    # Core
    'Goal', 'GoalView', 'FundsTransfer', 'OwnerIndex',
    'GoalLedgerError', 'ValidationError', 'GoalNotFound', 'Unauthorized',
    'AlreadyFinalized', 'NotEligible', 'ZeroAmount', 'ZeroBalance', 'TransferFailed',
    'to_amount', 'is_withdrawable',
    'AMOUNT_DECIMAL_PLACES', 'CUSTODY_WALLET', 'ISSUER_WALLET',
    'STATUS_ACTIVE', 'STATUS_TARGET_REACHED', 'STATUS_EXPIRED', 'STATUS_WITHDRAWN',
    # Ledger
    'GoalLedger',
    # Notifications
    'GoalCreated', 'Deposited', 'Withdrawn', 'GoalEvent', 'EventBus', 'EventHandler', 'ObserverFailure',
    'GOAL_CREATED', 'DEPOSITED', 'WITHDRAWN', 'EVENT_KINDS',
    # Funds channel
    'CustodyBook', 'Move', 'CustodyError', 'InsufficientFunds',
    'WalletNotRegistered', 'TransferRefused',
    # Views
    'GoalSummary', 'goal_status', 'goal_progress', 'goal_progress_percent',
    'remaining_amount', 'goals_for_owner', 'all_goals', 'summarize',
]

__version__ = '1.0.0'
