#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Savings Goals Step by Step

A walkthrough of the goal ledger. Each step builds on the previous one.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation  - The empty ledger, funding wallets, creating a goal
  4-6:  Deposits    - Contributions from anyone, rejections, notifications
  7-9:  Withdrawal  - Eligibility, the one-shot payout, finality
  10:   Audit       - Event log, integrity and conservation checks

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import sys

from goal_ledger import (
    GoalLedger, GoalLedgerError, CUSTODY_WALLET, ISSUER_WALLET,
    goals_for_owner, summarize,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Initial funding
    alice_initial: Decimal = Decimal("5.0")
    bob_initial: Decimal = Decimal("3.0")
    carol_initial: Decimal = Decimal("3.0")

    # Goals
    bike_target: Decimal = Decimal("1.0")
    trip_target: Decimal = Decimal("2.0")
    goal_duration: timedelta = timedelta(days=30)


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_goal(ledger: GoalLedger, goal_id: int, viewer: str = None):
    card = summarize(ledger.get_goal(goal_id), ledger.current_time, viewer)
    print(f"  #{card.goal_id} {card.title!r} owner={card.owner}")
    print(f"     {card.balance} / {card.target_amount} ({card.progress_percent}%)"
          f"  status={card.status}  can_withdraw={card.can_withdraw}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_empty_ledger():
    step_header(1, "The Empty Ledger",
        "A ledger starts with no goals, a clock, and an empty custody wallet.")

    print(">>> ledger = GoalLedger('tutorial', initial_time=datetime(2025, 1, 1, 9, 0))")
    ledger = GoalLedger("tutorial", initial_time=CONFIG.start_time, verbose=True)

    section_header("Initial State")
    print(f"Ledger name:     {ledger.name}")
    print(f"Current time:    {ledger.current_time}")
    print(f"Total goals:     {ledger.get_total_goals()}")
    print(f"Custody balance: {ledger.funds.custody_balance}")
    print(f"Event log:       {len(ledger.event_log)} entries")
    return ledger


def step_02_fund_wallets(ledger: GoalLedger):
    step_header(2, "Funding Wallets",
        "Value enters the book from the issuer wallet, which goes negative.")

    print(">>> ledger.funds.fund('alice', Decimal('5.0'))  # and bob, carol")
    ledger.funds.fund("alice", CONFIG.alice_initial)
    ledger.funds.fund("bob", CONFIG.bob_initial)
    ledger.funds.fund("carol", CONFIG.carol_initial)

    section_header("Balances")
    for wallet, balance in sorted(ledger.funds.get_balances().items()):
        print(f"  {wallet:<8} {balance:>8}")
    print(f"\nTotal supply: {ledger.funds.total_supply()} (always 0; {ISSUER_WALLET} holds the other side)")
    return ledger


def step_03_create_goals(ledger: GoalLedger):
    step_header(3, "Creating Goals",
        "The caller becomes the owner. Ids are allocated 0, 1, 2, ...")

    deadline = CONFIG.start_time + CONFIG.goal_duration
    print(">>> bike = ledger.create_goal('Bike', 'Road bike', Decimal('1.0'), deadline, caller='alice')")
    bike = ledger.create_goal("Bike", "Road bike", CONFIG.bike_target, deadline, caller="alice")
    print(">>> trip = ledger.create_goal('Trip', 'Weekend away', Decimal('2.0'), deadline, caller='alice')")
    trip = ledger.create_goal("Trip", "Weekend away", CONFIG.trip_target, deadline, caller="alice")

    section_header("Owner Index")
    print(f"alice's goals: {ledger.get_goals_by_owner('alice')}")
    print(f"bob's goals:   {ledger.get_goals_by_owner('bob')}")
    return ledger, bike, trip


# ============================================================================
# PHASE 2: DEPOSITS (Steps 4-6)
# ============================================================================

def step_04_deposits(ledger: GoalLedger, bike: int):
    step_header(4, "Deposits From Anyone",
        "Any identity may contribute. Funds move into custody.")

    ledger.deposit(bike, Decimal("0.4"), depositor="bob")
    ledger.deposit(bike, Decimal("0.6"), depositor="carol")

    section_header("Goal")
    show_goal(ledger, bike, viewer="alice")
    print(f"\nCustody holds: {ledger.funds.custody_balance}")
    return ledger


def step_05_rejections(ledger: GoalLedger, trip: int):
    step_header(5, "Rejected Calls",
        "Invalid calls raise a typed error and change nothing.")

    attempts = [
        ("deposit zero", lambda: ledger.deposit(trip, Decimal("0"), depositor="bob")),
        ("deposit to unknown goal", lambda: ledger.deposit(99, Decimal("1"), depositor="bob")),
        ("deposit more than bob holds", lambda: ledger.deposit(trip, Decimal("100"), depositor="bob")),
        ("goal with zero target", lambda: ledger.create_goal(
            "Nothing", "", Decimal("0"), ledger.current_time + timedelta(days=1), caller="bob")),
    ]
    for label, attempt in attempts:
        print(f">>> {label}")
        try:
            attempt()
        except GoalLedgerError as e:
            print(f"    raised {type(e).__name__}")

    print(f"\nTotal goals still {ledger.get_total_goals()}, trip balance {ledger.get_goal(trip).balance}")
    return ledger


def step_06_notifications(ledger: GoalLedger, trip: int):
    step_header(6, "Notifications",
        "Observers are told about every successful change, in order.")

    print(">>> ledger.subscribe('Deposited', on_deposit)")

    def on_deposit(event):
        print(f"    [observer] {event.depositor} gave {event.amount} to goal {event.goal_id}"
              f" (now {event.new_balance})")

    ledger.subscribe("Deposited", on_deposit)
    ledger.deposit(trip, Decimal("0.5"), depositor="bob")
    ledger.unsubscribe(on_deposit)
    return ledger


# ============================================================================
# PHASE 3: WITHDRAWAL (Steps 7-9)
# ============================================================================

def step_07_target_reached(ledger: GoalLedger, bike: int):
    step_header(7, "Target Reached",
        "The owner may withdraw as soon as the target is met.")

    print(f"can_withdraw(bike) = {ledger.can_withdraw(bike)}")
    paid = ledger.withdraw(bike, caller="alice")
    print(f"\nPaid out {paid}; alice now holds {ledger.funds.get_balance('alice')}")
    show_goal(ledger, bike, viewer="alice")
    return ledger


def step_08_deadline(ledger: GoalLedger, trip: int):
    step_header(8, "Waiting for the Deadline",
        "A goal short of its target unlocks once its deadline passes.")

    for caller in ("bob", "alice"):
        try:
            ledger.withdraw(trip, caller=caller)
        except GoalLedgerError as e:
            print(f"    {caller}: {type(e).__name__}")

    deadline = ledger.get_goal(trip).deadline
    print(f"\n>>> ledger.advance_time({deadline})")
    ledger.advance_time(deadline)
    show_goal(ledger, trip, viewer="alice")
    ledger.withdraw(trip, caller="alice")
    return ledger


def step_09_finality(ledger: GoalLedger, bike: int):
    step_header(9, "Finality",
        "A withdrawn goal stays withdrawn. Nothing more goes in or out.")

    for label, attempt in [
        ("withdraw again", lambda: ledger.withdraw(bike, caller="alice")),
        ("deposit again", lambda: ledger.deposit(bike, Decimal("0.1"), depositor="bob")),
    ]:
        try:
            attempt()
        except GoalLedgerError as e:
            print(f"    {label}: {type(e).__name__}")
    return ledger


# ============================================================================
# PHASE 4: AUDIT (Step 10)
# ============================================================================

def step_10_audit(ledger: GoalLedger):
    step_header(10, "Audit",
        "The event log replays history; the checks confirm it adds up.")

    section_header("Event Log")
    for event in ledger.event_log:
        print(f"  {event.sequence:>2} {event.kind:<12} goal {event.goal_id}")

    section_header("Goals")
    for goal in goals_for_owner(ledger, "alice"):
        print(f"  {goal!r}")

    section_header("Checks")
    integrity = ledger.verify_integrity()
    conservation = ledger.funds.verify_conservation()
    print(f"Integrity valid:    {integrity['valid']}")
    print(f"Conservation valid: {conservation['valid']}")
    print(f"{CUSTODY_WALLET} holds:      {ledger.funds.custody_balance}")


def main():
    print("=" * 70)
    print("       SAVINGS GOAL LEDGER TUTORIAL")
    print("=" * 70)

    ledger = step_01_empty_ledger()
    wait_for_enter()
    ledger = step_02_fund_wallets(ledger)
    wait_for_enter()
    ledger, bike, trip = step_03_create_goals(ledger)
    wait_for_enter()

    ledger = step_04_deposits(ledger, bike)
    wait_for_enter()
    ledger = step_05_rejections(ledger, trip)
    wait_for_enter()
    ledger = step_06_notifications(ledger, trip)
    wait_for_enter()

    ledger = step_07_target_reached(ledger, bike)
    wait_for_enter()
    ledger = step_08_deadline(ledger, trip)
    wait_for_enter()
    ledger = step_09_finality(ledger, bike)
    wait_for_enter()

    step_10_audit(ledger)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:

    - Anyone can create a goal and anyone can deposit toward it
    - Rejected calls raise a typed error and leave no trace
    - Only the owner withdraws, once, after the target or the deadline
    - The event log and the custody wallet always agree with the goals

    Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
