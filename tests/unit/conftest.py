"""
Unit Test Layer Configuration

Structure:
    tests/unit/
    └── loyalty_membership/   Lifecycle, cache, rules, clients

Usage:
    pytest tests/unit -v                 # All unit tests
    pytest tests/unit -m unit -v         # By marker
"""
import os
import sys

import pytest

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))


def pytest_collection_modifyitems(config, items):
    """Mark everything under tests/unit as a unit test"""
    for item in items:
        if "tests/unit" in str(item.path).replace(os.sep, "/"):
            item.add_marker(pytest.mark.unit)
