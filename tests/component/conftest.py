"""
Component Test Layer Configuration

Structure:
    tests/component/
    └── loyalty_membership/   FastAPI surface over the in-process backend

Usage:
    pytest tests/component -v
    pytest tests/component/loyalty_membership -v
"""
import os
import sys

import pytest

# Set testing environment BEFORE any imports
os.environ["ENV"] = "testing"
os.environ["ENVIRONMENT"] = "testing"

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))


def pytest_collection_modifyitems(config, items):
    """Mark everything under tests/component as a component test"""
    for item in items:
        if "tests/component" in str(item.path).replace(os.sep, "/"):
            item.add_marker(pytest.mark.component)
