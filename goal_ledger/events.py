"""
events.py - Ledger Notifications

Notifications are plain immutable data; subscribers are plain functions.

Core concepts:
1. GoalCreated / Deposited / Withdrawn: payloads emitted after a successful mutation
2. EventBus: registry of subscriber functions keyed by event kind
3. The ledger's event_log IS the audit trail; subscribers only react to it
4. ObserverFailure: a subscriber error, recorded without undoing the event

The ledger never pushes full goal state, only these payloads. Observers that
need more re-query the ledger by goal id.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, ClassVar, Dict, List, Optional, Union


# ============================================================================
# EVENT KINDS
# ============================================================================

GOAL_CREATED = "GoalCreated"
DEPOSITED = "Deposited"
WITHDRAWN = "Withdrawn"

EVENT_KINDS = (GOAL_CREATED, DEPOSITED, WITHDRAWN)


# ============================================================================
# EVENT DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class GoalCreated:
    """
    A goal was created.

    Attributes:
        goal_id: Newly allocated goal id
        owner: Creator identity
        target_amount: Goal target
        deadline: Goal deadline
        sequence: Ledger-wide emission order (0-based)
        timestamp: Time supplied with the creating call
    """
    kind: ClassVar[str] = GOAL_CREATED

    goal_id: int
    owner: str
    target_amount: Decimal
    deadline: datetime
    sequence: int = 0
    timestamp: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class Deposited:
    """Funds were added to a goal. new_balance is the balance after the deposit."""
    kind: ClassVar[str] = DEPOSITED

    goal_id: int
    depositor: str
    amount: Decimal
    new_balance: Decimal
    sequence: int = 0
    timestamp: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class Withdrawn:
    """A goal's balance was paid out to its owner."""
    kind: ClassVar[str] = WITHDRAWN

    goal_id: int
    owner: str
    amount: Decimal
    sequence: int = 0
    timestamp: Optional[datetime] = None


GoalEvent = Union[GoalCreated, Deposited, Withdrawn]

# Subscriber type: event -> None
EventHandler = Callable[[GoalEvent], None]


@dataclass(frozen=True, slots=True)
class ObserverFailure:
    """A subscriber raised while handling an event. The event itself stands."""
    event: GoalEvent
    handler: EventHandler
    error: Exception


# ============================================================================
# EVENT BUS
# ============================================================================

class EventBus:
    """
    Minimal observer registry.

    Design:
    - Subscribers register per event kind, or for every kind
    - publish() calls them synchronously in subscription order
    - A failing subscriber does not stop the others; publish() returns
      every failure so the publisher can record it
    """

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {kind: [] for kind in EVENT_KINDS}

    def subscribe(self, kind: str, handler: EventHandler) -> None:
        """Register a handler for one event kind."""
        if kind not in self._handlers:
            raise ValueError(f"Unknown event kind: {kind}")
        self._handlers[kind].append(handler)

    def subscribe_all(self, handler: EventHandler) -> None:
        """Register a handler for every event kind."""
        for kind in EVENT_KINDS:
            self._handlers[kind].append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        """Remove a handler from every kind it was registered for."""
        for handlers in self._handlers.values():
            while handler in handlers:
                handlers.remove(handler)

    def handlers_for(self, kind: str) -> List[EventHandler]:
        return list(self._handlers.get(kind, ()))

    def publish(self, event: GoalEvent) -> List[ObserverFailure]:
        """
        Deliver an event to every subscriber.

        Returns:
            One ObserverFailure per subscriber that raised, in delivery order.
            Empty when every subscriber succeeded.
        """
        failures = []
        for handler in self.handlers_for(event.kind):
            try:
                handler(event)
            except Exception as e:
                failures.append(ObserverFailure(event, handler, e))
        return failures
