"""
ledger.py - Savings Goal Ledger

The GoalLedger class is the single authoritative store for savings goals.
It is the only module that mutates goal state.

Key responsibilities:
    - Implements GoalView for safe read-only access by presentation helpers
    - Allocates goal ids and keeps the owner-index in step with the goal table
    - Enforces the Active -> Withdrawn state machine
    - Couples state changes to the funds channel all-or-nothing
    - Emits GoalCreated / Deposited / Withdrawn and always logs them
    - Notifies observers once the change is committed and the locks released
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
import threading

from .core import (
    # Types
    Goal, FundsTransfer, OwnerIndex,
    # Constants
    AMOUNT_DECIMAL_PLACES, ZERO,
    # Exceptions
    GoalLedgerError, ValidationError, GoalNotFound, Unauthorized,
    AlreadyFinalized, NotEligible, ZeroAmount, ZeroBalance, TransferFailed,
    # Helper functions
    to_amount, is_withdrawable,
)
from .custody import CustodyBook
from .events import (
    EventBus, EventHandler, GoalCreated, Deposited, Withdrawn, GoalEvent, ObserverFailure,
)


class GoalLedger:
    """
    Ledger of savings goals with deposit custody and one-shot withdrawal.

    Implements the GoalView protocol, allowing the ledger to be passed to
    read-only helpers.

    Design Principles:
        - Always validates: every precondition failure raises its own error
          type and leaves the ledger untouched.
        - Effects before interactions: withdraw finalizes the goal before the
          funds channel is called, and restores it if the channel fails.
        - Always logs: every successful mutation is appended to event_log.

    Thread Safety:
        Mutations on the same goal are serialized by a per-goal re-entrant
        lock. Goal creation is serialized by a registry lock and becomes
        visible to readers in one step, when the id counter moves. Reads
        take no lock and always see a complete Goal record.

    Observers:
        Subscribers run after the mutation is committed and every lock is
        released. A subscriber that raises does not fail the operation; the
        error is kept in observer_failures and printed when verbose.

    Example:
        ledger = GoalLedger("main", initial_time=datetime(2025, 1, 1))
        ledger.funds.fund("bob", Decimal("5"))

        goal_id = ledger.create_goal(
            "Bike", "Road bike", Decimal("2"), datetime(2025, 2, 1), caller="alice"
        )
        ledger.deposit(goal_id, Decimal("2"), depositor="bob")
        ledger.withdraw(goal_id, caller="alice")
    """

    def __init__(
        self,
        name: str,
        funds: Optional[FundsTransfer] = None,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        decimal_places: int = AMOUNT_DECIMAL_PLACES,
    ):
        """
        Create a goal ledger.

        Args:
            name: Ledger identifier
            funds: Funds channel (default: a fresh CustodyBook)
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print one line per operation (default: True)
            decimal_places: Places of the smallest indivisible amount
        """
        self.name = name
        self.funds: FundsTransfer = funds if funds is not None else CustodyBook()
        self.verbose = verbose
        self.decimal_places = decimal_places
        self.events = EventBus()
        self.event_log: List[GoalEvent] = []
        self.observer_failures: List[ObserverFailure] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._goals: Dict[int, Goal] = {}
        self._owner_index: OwnerIndex = {}
        self._next_goal_id: int = 0
        self._goal_locks: Dict[int, threading.RLock] = {}
        self._registry_lock = threading.RLock()
        self._log_lock = threading.Lock()

    # ========================================================================
    # GoalView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_goal(self, goal_id: int) -> Goal:
        """
        Get a goal record.

        Raises:
            GoalNotFound: If goal_id was never allocated
        """
        goal = self._lookup(goal_id)
        if goal is None:
            raise GoalNotFound(f"Goal {goal_id} does not exist")
        return goal

    def get_goals_by_owner(self, owner: str) -> List[int]:
        """Goal ids created by owner, in creation order. Empty for unknown owners."""
        bound = self._next_goal_id
        return [i for i in self._owner_index.get(owner, ()) if i < bound]

    def get_total_goals(self) -> int:
        """Number of goal ids ever allocated."""
        return self._next_goal_id

    def can_withdraw(self, goal_id: int, now: Optional[datetime] = None) -> bool:
        """
        Whether the goal could be withdrawn right now by its owner.

        False for unknown, withdrawn, or empty goals. Otherwise True iff the
        deadline has passed or the target is reached. Never raises for an
        unknown goal id.
        """
        goal = self._lookup(goal_id)
        if goal is None:
            return False
        return is_withdrawable(goal, self._now(now))

    def goal_exists(self, goal_id: int) -> bool:
        """Whether goal_id has been allocated. Never raises."""
        return self._lookup(goal_id) is not None

    def list_goals(self) -> List[Goal]:
        """All goals in id order."""
        return [self._goals[i] for i in range(self._next_goal_id)]

    def list_owners(self) -> List[str]:
        """Every identity that has created at least one goal, sorted."""
        bound = self._next_goal_id
        return sorted(o for o, ids in self._owner_index.items() if ids and ids[0] < bound)

    def events_since(self, sequence: int = 0) -> List[GoalEvent]:
        """Logged events with sequence >= sequence, for polling observers."""
        return self.event_log[sequence:]

    def total_held(self) -> Decimal:
        """Sum of balances across all goals, accumulated in id order."""
        return sum((self._goals[i].balance for i in range(self._next_goal_id)), ZERO)

    def verify_integrity(self, expected_custody: Optional[Decimal] = None) -> Dict[str, Any]:
        """
        Check the goal table, owner-index and custody against each other.

        Checks performed:
        1. Ids are exactly 0..total-1
        2. Withdrawn goals hold a zero balance; no balance is negative
        3. The owner-index lists exactly each owner's ids, in order
        4. Held balances match the funds channel's custody balance, when
           the channel reports one (or expected_custody when given)

        Returns:
            Dict with keys:
            - 'valid': bool - True if every check holds
            - 'total_held': Decimal - sum of goal balances
            - 'discrepancies': List[str] - description of each failed check
        """
        discrepancies = []
        with self._registry_lock:
            goals = dict(self._goals)
            index = {owner: list(ids) for owner, ids in self._owner_index.items()}
            total = self._next_goal_id

        if sorted(goals) != list(range(total)):
            discrepancies.append(f"goal ids {sorted(goals)} are not 0..{total - 1}")

        expected_index: OwnerIndex = {}
        for goal_id in sorted(goals):
            goal = goals[goal_id]
            if goal.is_withdrawn and goal.balance != ZERO:
                discrepancies.append(f"goal {goal_id} is withdrawn but holds {goal.balance}")
            if goal.balance < ZERO:
                discrepancies.append(f"goal {goal_id} has negative balance {goal.balance}")
            expected_index.setdefault(goal.owner, []).append(goal_id)
        if index != expected_index:
            discrepancies.append(f"owner index {index} != {expected_index}")

        held = sum((g.balance for g in goals.values()), ZERO)
        custody = expected_custody
        if custody is None:
            custody = getattr(self.funds, "custody_balance", None)
        if custody is not None and custody != held:
            discrepancies.append(f"custody holds {custody} but goals hold {held}")

        return {
            'valid': not discrepancies,
            'total_held': held,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock to a new time.

        Time can only move forward, never backward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def _now(self, now: Optional[datetime]) -> datetime:
        return self._current_time if now is None else now

    # ========================================================================
    # SUBSCRIPTIONS
    # ========================================================================

    def subscribe(self, kind: str, handler: EventHandler) -> None:
        """Register an observer for GoalCreated, Deposited, or Withdrawn."""
        self.events.subscribe(kind, handler)

    def subscribe_all(self, handler: EventHandler) -> None:
        self.events.subscribe_all(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        self.events.unsubscribe(handler)

    # ========================================================================
    # GOAL OPERATIONS (Mutating)
    # ========================================================================

    def create_goal(
        self,
        title: str,
        description: str,
        target_amount: Any,
        deadline: datetime,
        caller: str,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Create a goal owned by caller.

        Args:
            title: Non-empty goal title
            description: Free text (may be empty)
            target_amount: Strictly positive amount
            deadline: Must be strictly after now
            caller: Identity of the creator, recorded as owner
            now: Time of the call (default: ledger clock)

        Returns:
            The new goal id

        Raises:
            ValidationError: If any argument is invalid. No id is allocated.
        """
        now = self._now(now)
        if not caller:
            raise self._reject(ValidationError("Caller identity cannot be empty"))
        if not title or not title.strip():
            raise self._reject(ValidationError("Title cannot be empty"))
        try:
            target = to_amount(target_amount, self.decimal_places)
        except ValidationError as e:
            raise self._reject(e)
        if target <= ZERO:
            raise self._reject(ValidationError("Target amount must be greater than 0"))
        if not isinstance(deadline, datetime):
            raise self._reject(ValidationError(f"Deadline must be a datetime, got {deadline!r}"))
        try:
            in_future = deadline > now
        except TypeError as e:
            raise self._reject(ValidationError(f"Deadline not comparable with call time: {e}")) from e
        if not in_future:
            raise self._reject(ValidationError("Deadline must be in the future"))

        with self._registry_lock:
            goal_id = self._next_goal_id
            self._goals[goal_id] = Goal(
                goal_id=goal_id,
                owner=caller,
                title=title,
                description=description or "",
                target_amount=target,
                deadline=deadline,
                created_at=now,
            )
            self._goal_locks[goal_id] = threading.RLock()
            self._owner_index.setdefault(caller, []).append(goal_id)
            # Readers only see ids below the counter; moving it publishes the goal.
            self._next_goal_id = goal_id + 1

            event = self._record(GoalCreated(
                goal_id=goal_id,
                owner=caller,
                target_amount=target,
                deadline=deadline,
                timestamp=now,
            ))

        if self.verbose:
            print(f"✓ CREATED: goal {goal_id} {title!r} target={target} owner={caller}")
        self._notify(event)
        return goal_id

    def deposit(
        self,
        goal_id: int,
        amount: Any,
        depositor: str,
        now: Optional[datetime] = None,
    ) -> Decimal:
        """
        Add funds to a goal. Anyone, including the owner, may deposit.

        The funds channel collects the amount first; the balance is only
        credited once custody has been taken.

        Returns:
            The goal's new balance

        Raises:
            GoalNotFound: If the goal does not exist
            ZeroAmount: If amount is not strictly positive
            ValidationError: If amount is malformed
            AlreadyFinalized: If the goal has been withdrawn
            TransferFailed: If the funds channel could not collect
        """
        now = self._now(now)
        lock = self._lock_for(goal_id)
        with lock:
            goal = self._goals[goal_id]
            try:
                value = to_amount(amount, self.decimal_places)
            except ValidationError as e:
                raise self._reject(e)
            if value <= ZERO:
                raise self._reject(ZeroAmount("Deposit amount must be greater than 0"))
            if goal.is_withdrawn:
                raise self._reject(AlreadyFinalized(f"Goal {goal_id} has already been withdrawn"))

            try:
                self.funds.collect(goal_id, depositor, value)
            except Exception as e:
                raise self._reject(TransferFailed(
                    f"Could not collect {value} from {depositor} for goal {goal_id}: {e}"
                )) from e

            new_balance = goal.balance + value
            self._goals[goal_id] = replace(goal, balance=new_balance)

            event = self._record(Deposited(
                goal_id=goal_id,
                depositor=depositor,
                amount=value,
                new_balance=new_balance,
                timestamp=now,
            ))

        if self.verbose:
            print(f"✓ DEPOSITED: {value} into goal {goal_id} from {depositor} (balance={new_balance})")
        self._notify(event)
        return new_balance

    def withdraw(
        self,
        goal_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> Decimal:
        """
        Pay out a goal's whole balance to its owner. Succeeds at most once.

        Checks, in order: goal exists, caller is owner, not yet withdrawn,
        deadline passed or target reached, balance non-zero.

        The goal is marked withdrawn with a zero balance BEFORE the funds
        channel is called, so any re-entrant call made during the release
        sees a finalized goal. If the release fails the previous record is
        restored.

        Returns:
            The amount disbursed

        Raises:
            GoalNotFound, Unauthorized, AlreadyFinalized, NotEligible,
            ZeroBalance, TransferFailed
        """
        now = self._now(now)
        lock = self._lock_for(goal_id)
        with lock:
            goal = self._goals[goal_id]
            if caller != goal.owner:
                raise self._reject(Unauthorized(f"Only goal owner can withdraw goal {goal_id}"))
            if goal.is_withdrawn:
                raise self._reject(AlreadyFinalized(f"Goal {goal_id} has already been withdrawn"))
            if now < goal.deadline and not goal.target_reached:
                raise self._reject(NotEligible(
                    f"Cannot withdraw goal {goal_id}: deadline not passed and target not reached"
                ))
            if goal.balance <= ZERO:
                raise self._reject(ZeroBalance(f"No balance to withdraw from goal {goal_id}"))

            amount = goal.balance
            # Finalize before handing control to the funds channel.
            self._goals[goal_id] = replace(goal, balance=ZERO, is_withdrawn=True)
            try:
                self.funds.release(goal_id, goal.owner, amount)
            except Exception as e:
                self._goals[goal_id] = goal
                raise self._reject(TransferFailed(
                    f"Could not release {amount} from goal {goal_id} to {goal.owner}: {e}"
                )) from e

            event = self._record(Withdrawn(
                goal_id=goal_id,
                owner=goal.owner,
                amount=amount,
                timestamp=now,
            ))

        if self.verbose:
            print(f"✓ WITHDRAWN: {amount} from goal {goal_id} to {goal.owner}")
        self._notify(event)
        return amount

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _lookup(self, goal_id: int) -> Optional[Goal]:
        goal = self._goals.get(goal_id)
        if goal is None or goal.goal_id >= self._next_goal_id:
            return None
        return goal

    def _lock_for(self, goal_id: int) -> threading.RLock:
        if self._lookup(goal_id) is None:
            raise self._reject(GoalNotFound(f"Goal {goal_id} does not exist"))
        return self._goal_locks[goal_id]

    def _record(self, event: GoalEvent) -> GoalEvent:
        """Assign the next sequence number and append the event to the log."""
        with self._log_lock:
            event = replace(event, sequence=len(self.event_log))
            self.event_log.append(event)
        return event

    def _notify(self, event: GoalEvent) -> None:
        """Deliver a committed event. Subscriber errors are recorded, not raised."""
        failures = self.events.publish(event)
        if not failures:
            return
        with self._log_lock:
            self.observer_failures.extend(failures)
        if self.verbose:
            for failure in failures:
                print(f"✗ OBSERVER: {event.kind} #{event.sequence}: "
                      f"{type(failure.error).__name__}: {failure.error}")

    def _reject(self, error: GoalLedgerError) -> GoalLedgerError:
        if self.verbose:
            print(f"✗ REJECTED: {type(error).__name__}: {error}")
        return error
