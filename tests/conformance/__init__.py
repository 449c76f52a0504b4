"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the recurring swap ledgers.

The tests are organized by invariant:
1. test_atomicity.py - Refused or failed calls change nothing
2. test_path_independence.py - Skipped days never change what is retired
3. test_rounding.py - Pro-rata credit never exceeds the proceeds, shortfall is bounded
4. test_order_independence.py - Settlement does not depend on participant order
5. test_custody.py - Internal accounting always matches custody

These tests use hypothesis for property-based testing.
"""
