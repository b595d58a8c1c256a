"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the goal ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_atomicity.py - Failed calls leave no trace
2. test_finality.py - A goal pays out at most once
3. test_ledger_invariants.py - Ids, owner-index and balance bookkeeping
4. test_eligibility.py - can_withdraw mirrors withdraw
5. test_concurrency.py - Serialized mutations under real threads

These tests use hypothesis for property-based testing.
"""
