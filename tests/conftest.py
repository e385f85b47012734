"""
Root conftest.py - Global configuration for all test layers.

Test Layers:
    - component/  : Component tests (FastAPI app, mocked dependencies)
    - unit/       : Unit tests (pure functions, mocked collaborators)
"""
import os
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "component: Component tests")
    config.addinivalue_line("markers", "unit: Unit tests")
