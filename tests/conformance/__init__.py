"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the launchpad.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Double-entry accounting across launches, trades and migration
2. atomicity.py - All-or-nothing operations
3. idempotency.py - Duplicate execution handling
4. determinism.py - Reproducible addresses, state and intent hashes
5. canonicalization.py - Content-addressable identity
6. monotonicity.py - Curve pricing never favours the trader
7. pool_invariant.py - Constant-product k never decreases
8. concurrency.py - Serialized operations and single migration

These tests use hypothesis for property-based testing.
"""
