"""
Test utilities for lazymigrate.

Components:
    QueryServiceConformanceSuite: Contract tests any QueryService must pass
    InMemoryMigrationHarness: Complete in-memory migration stack

Note:
    This module is optional and intended for test code only. It should not
    be imported in production code paths.
"""

from lazymigrate.testing.conformance import QueryServiceConformanceSuite
from lazymigrate.testing.harness import InMemoryMigrationHarness

__all__ = [
    "QueryServiceConformanceSuite",
    "InMemoryMigrationHarness",
]
