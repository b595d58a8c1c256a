"""
Core types and pure functions for the savings goal ledger.

This module provides the foundational data structures and protocols:
1. Protocols: GoalView for read-only access, FundsTransfer for value custody
2. Immutable data structures: Goal
3. Exceptions: GoalLedgerError and the operation-specific error types
4. Amount handling: coercion and validation of monetary quantities
5. Eligibility: the pure withdrawal predicate shared by the ledger and views

All functions in this module are pure and operate on immutable records.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import DefaultContext, Decimal, InvalidOperation, ROUND_HALF_EVEN, getcontext
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Goal balances are sums of many deposits and must be exact.
# The global context is configured once at import time. DefaultContext is
# configured too, since each new thread starts from a copy of it.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
_GOAL_DECIMAL_CONTEXT = getcontext()
_GOAL_DECIMAL_CONTEXT.prec = 50
_GOAL_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN
DefaultContext.prec = 50
DefaultContext.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Smallest indivisible monetary unit is 10**-AMOUNT_DECIMAL_PLACES.
AMOUNT_DECIMAL_PLACES = 18

ZERO = Decimal("0")

# Wallet in the funds channel holding everything the ledger has taken custody of.
CUSTODY_WALLET = "custody"

# Wallet that issues value into the funds channel; exempt from balance checks.
ISSUER_WALLET = "issuer"

# Goal status labels (strings, not enum, same as unit type constants).
STATUS_ACTIVE = "ACTIVE"
STATUS_TARGET_REACHED = "TARGET_REACHED"
STATUS_EXPIRED = "EXPIRED"
STATUS_WITHDRAWN = "WITHDRAWN"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from owner identity to the goal ids it created, in creation order.
OwnerIndex = Dict[str, List[int]]

# Mapping from wallet ID to the quantity it holds.
BalanceMap = Dict[str, Decimal]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class GoalLedgerError(Exception):
    """Base exception for all goal ledger errors."""
    pass


class ValidationError(GoalLedgerError):
    """Raised when goal creation arguments or an amount are malformed."""
    pass


class GoalNotFound(GoalLedgerError):
    """Raised when a goal id has never been allocated."""
    pass


class Unauthorized(GoalLedgerError):
    """Raised when someone other than the goal owner attempts a withdrawal."""
    pass


class AlreadyFinalized(GoalLedgerError):
    """Raised when depositing into or withdrawing from a withdrawn goal."""
    pass


class NotEligible(GoalLedgerError):
    """Raised when withdrawing before the deadline and before the target is reached."""
    pass


class ZeroAmount(GoalLedgerError):
    """Raised when a deposit amount is not strictly positive."""
    pass


class ZeroBalance(GoalLedgerError):
    """Raised when withdrawing from a goal that holds nothing."""
    pass


class TransferFailed(GoalLedgerError):
    """
    Raised when the funds channel fails to collect or release value.

    The original channel error is available as __cause__.
    """
    pass


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Goal:
    """
    A savings goal record.

    Records are immutable. The ledger replaces the whole record on every
    deposit and on withdrawal, so readers never observe a half-updated goal.

    Attributes:
        goal_id: Sequential identifier, starting at 0, never reused.
        owner: Identity that created the goal; the only one allowed to withdraw.
        title: Non-empty goal title.
        description: Free text, may be empty.
        target_amount: Amount that makes the goal withdrawable before the deadline.
        deadline: Time from which the goal is withdrawable regardless of target.
        balance: Funds currently held for this goal.
        is_withdrawn: True once the balance has been paid out to the owner.
        created_at: Time the goal was created.
    """
    goal_id: int
    owner: str
    title: str
    description: str
    target_amount: Decimal
    deadline: datetime
    balance: Decimal = ZERO
    is_withdrawn: bool = False
    created_at: Optional[datetime] = None

    @property
    def target_reached(self) -> bool:
        return self.balance >= self.target_amount

    def __repr__(self) -> str:
        state = "withdrawn" if self.is_withdrawn else f"{self.balance}/{self.target_amount}"
        return f"Goal(#{self.goal_id} {self.title!r} owner={self.owner} {state})"


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class GoalView(Protocol):
    """
    Read-only interface to goal ledger state.

    Presentation helpers accept a GoalView to declare their read-only intent.
    GoalLedger implements this protocol; tests may supply lighter fakes.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_goal(self, goal_id: int) -> Goal:
        """Return the goal record, raising GoalNotFound if absent."""
        ...

    def get_goals_by_owner(self, owner: str) -> List[int]:
        """Return the ids created by owner in creation order (empty if none)."""
        ...

    def get_total_goals(self) -> int:
        """Return the number of goal ids ever allocated."""
        ...


@runtime_checkable
class FundsTransfer(Protocol):
    """
    Channel that moves value into and out of the ledger's custody.

    Either method may raise any exception to signal failure. The ledger
    treats every exception as a failed transfer and guarantees that no
    goal state changes as a result of it.
    """

    def collect(self, goal_id: int, payer: str, amount: Decimal) -> None:
        """Take custody of amount from payer on behalf of goal_id."""
        ...

    def release(self, goal_id: int, payee: str, amount: Decimal) -> None:
        """Release amount held for goal_id to payee."""
        ...


# ============================================================================
# AMOUNTS
# ============================================================================

def to_amount(value: Any, decimal_places: int = AMOUNT_DECIMAL_PLACES) -> Decimal:
    """
    Coerce a monetary quantity to Decimal.

    Accepts Decimal, int, and numeric strings. Floats are converted through
    str() so that 0.1 becomes Decimal("0.1") rather than its binary expansion.

    Raises:
        ValidationError: If the value is not numeric, not finite, or finer
                         than the smallest indivisible unit.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Amount must be numeric, got {value!r}")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"Amount must be numeric, got {value!r}") from None
    if value.is_nan() or value.is_infinite():
        raise ValidationError(f"Amount must be finite, got {value}")
    quantizer = Decimal(10) ** -decimal_places
    try:
        quantized = value.quantize(quantizer, rounding=ROUND_HALF_EVEN)
    except InvalidOperation:
        raise ValidationError(f"Amount {value} exceeds supported precision") from None
    if value != quantized:
        raise ValidationError(
            f"Amount {value} is finer than the smallest unit ({quantizer})"
        )
    return value


# ============================================================================
# ELIGIBILITY
# ============================================================================

def is_withdrawable(goal: Goal, now: datetime) -> bool:
    """
    Withdrawal predicate, ignoring who is asking.

    A goal is withdrawable when it has not been withdrawn, holds a non-zero
    balance, and either its deadline has passed or its target is reached.
    """
    if goal.is_withdrawn or goal.balance <= ZERO:
        return False
    return now >= goal.deadline or goal.target_reached
