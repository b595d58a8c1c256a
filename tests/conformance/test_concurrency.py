"""
Concurrency Conformance Tests

INVARIANT: Concurrent calls behave as if they ran one at a time.

    ∀ concurrent deposits d1..dn on goal g:
        balance(g) = Σ di
    ∀ concurrent withdraws on goal g:
        exactly one succeeds
    ∀ concurrent creates:
        ids are 0..n-1, each owner-index entry is exactly that owner's ids

Threads start together on a barrier to maximise interleaving.
"""

import pytest
import threading
from decimal import Decimal

from goal_ledger import AlreadyFinalized, GoalLedgerError, GoalNotFound

from tests.helpers import START, ONE_DAY, make_ledger, create_goal


THREADS = 8
ROUNDS = 25


def run_together(target, count=THREADS):
    """Run target(index) on count threads released at the same instant."""
    barrier = threading.Barrier(count)
    errors = []

    def worker(index):
        barrier.wait()
        try:
            target(index)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return errors


class TestConcurrentDeposits:

    def test_same_goal_deposits_sum_exactly(self):
        wallets = [f"w{i}" for i in range(THREADS)]
        ledger = make_ledger(*wallets, funding=Decimal("1000"))
        goal_id = create_goal(ledger, target="1000000")

        def deposit_many(index):
            for _ in range(ROUNDS):
                ledger.deposit(goal_id, Decimal("0.01"), depositor=wallets[index])

        errors = run_together(deposit_many)

        assert errors == []
        expected = Decimal("0.01") * THREADS * ROUNDS
        assert ledger.get_goal(goal_id).balance == expected
        assert ledger.funds.custody_balance == expected
        assert ledger.verify_integrity()["valid"]

    def test_deposits_into_different_goals_share_custody(self):
        ledger = make_ledger("bob", funding=Decimal("10000"))
        ids = [create_goal(ledger, owner=f"owner{i}") for i in range(THREADS)]

        def deposit_many(index):
            for _ in range(ROUNDS):
                ledger.deposit(ids[index], Decimal("1"), depositor="bob")

        errors = run_together(deposit_many)

        assert errors == []
        for goal_id in ids:
            assert ledger.get_goal(goal_id).balance == Decimal(ROUNDS)
        assert ledger.funds.custody_balance == Decimal(THREADS * ROUNDS)
        assert ledger.funds.get_balance("bob") == Decimal("10000") - THREADS * ROUNDS
        assert ledger.funds.verify_conservation()["valid"]

    def test_event_sequences_unique_and_gapless(self):
        ledger = make_ledger("bob", funding=Decimal("10000"))
        ids = [create_goal(ledger) for _ in range(THREADS)]

        def deposit_many(index):
            for _ in range(ROUNDS):
                ledger.deposit(ids[index], Decimal("1"), depositor="bob")

        run_together(deposit_many)

        sequences = [e.sequence for e in ledger.event_log]
        assert sequences == list(range(THREADS + THREADS * ROUNDS))


class TestConcurrentWithdrawals:

    def test_exactly_one_withdraw_succeeds(self):
        for _ in range(10):
            ledger = make_ledger("bob")
            goal_id = create_goal(ledger)
            ledger.deposit(goal_id, Decimal("2"), depositor="bob")
            paid = []
            finalized = []

            def attempt(index):
                try:
                    paid.append(ledger.withdraw(goal_id, caller="alice"))
                except AlreadyFinalized as e:
                    finalized.append(e)

            errors = run_together(attempt)

            assert errors == []
            assert paid == [Decimal("2")]
            assert len(finalized) == THREADS - 1
            assert ledger.funds.get_balance("alice") == Decimal("2")
            assert [e.kind for e in ledger.event_log].count("Withdrawn") == 1

    def test_deposit_racing_withdraw_is_never_lost(self):
        """A deposit either lands before the withdrawal (and is paid out) or is rejected."""
        for _ in range(10):
            ledger = make_ledger("bob")
            goal_id = create_goal(ledger)
            ledger.deposit(goal_id, Decimal("2"), depositor="bob")
            later = START + 2 * ONE_DAY
            outcomes = {}

            def act(index):
                try:
                    if index == 0:
                        outcomes["withdraw"] = ledger.withdraw(goal_id, caller="alice", now=later)
                    else:
                        ledger.deposit(goal_id, Decimal("1"), depositor="bob", now=later)
                except GoalLedgerError as e:
                    outcomes.setdefault("rejected", []).append(e)

            errors = run_together(act, count=2)

            assert errors == []
            paid = outcomes["withdraw"]
            assert paid in (Decimal("2"), Decimal("3"))
            goal = ledger.get_goal(goal_id)
            assert goal.is_withdrawn and goal.balance == Decimal("0")
            assert ledger.funds.custody_balance == Decimal("0")
            assert ledger.funds.get_balance("alice") == paid
            if paid == Decimal("2"):
                assert isinstance(outcomes["rejected"][0], AlreadyFinalized)


class TestConcurrentCreation:

    def test_ids_unique_and_sequential(self):
        ledger = make_ledger()
        created = {}
        owners = ["alice", "bob"]

        def create_many(index):
            owner = owners[index % 2]
            created[index] = [create_goal(ledger, owner=owner) for _ in range(ROUNDS)]

        errors = run_together(create_many)

        assert errors == []
        all_ids = sorted(i for ids in created.values() for i in ids)
        assert all_ids == list(range(THREADS * ROUNDS))
        assert ledger.get_total_goals() == THREADS * ROUNDS

        for index, ids in created.items():
            assert ids == sorted(ids)

        for owner in owners:
            indexed = ledger.get_goals_by_owner(owner)
            assert indexed == sorted(indexed)
            assert all(ledger.get_goal(i).owner == owner for i in indexed)
        assert ledger.verify_integrity()["valid"]

    def test_goal_invisible_until_fully_indexed(self, empty_ledger):
        """While a goal is being stored, readers see none of it."""
        ledger = empty_ledger
        seen = []

        class WatchedGoals(dict):
            def __setitem__(self, goal_id, goal):
                super().__setitem__(goal_id, goal)
                if goal_id not in [s[0] for s in seen]:
                    seen.append((
                        goal_id,
                        ledger.goal_exists(goal_id),
                        ledger.get_total_goals(),
                        goal_id in ledger.get_goals_by_owner(goal.owner),
                        ledger.can_withdraw(goal_id),
                        ledger.list_owners(),
                    ))

        ledger._goals = WatchedGoals()
        create_goal(ledger, owner="alice")
        create_goal(ledger, owner="bob")

        assert seen == [
            (0, False, 0, False, False, []),
            (1, False, 1, False, False, ["alice"]),
        ]
        with pytest.raises(GoalNotFound):
            ledger.get_goal(2)
        assert ledger.get_goals_by_owner("bob") == [1]

    def test_readers_never_see_partial_goals(self):
        ledger = make_ledger()
        stop = threading.Event()
        problems = []

        def read():
            while not stop.is_set():
                total = ledger.get_total_goals()
                for goal_id in range(total):
                    goal = ledger.get_goal(goal_id)
                    if goal_id not in ledger.get_goals_by_owner(goal.owner):
                        problems.append(goal_id)
                for owner in ("alice", "bob"):
                    for goal_id in ledger.get_goals_by_owner(owner):
                        if not ledger.goal_exists(goal_id):
                            problems.append(goal_id)

        reader = threading.Thread(target=read)
        reader.start()
        try:
            errors = run_together(
                lambda index: [create_goal(ledger, owner=("alice", "bob")[index % 2])
                               for _ in range(ROUNDS)],
                count=4,
            )
        finally:
            stop.set()
            reader.join()

        assert errors == []
        assert problems == []
