"""
Component Test Fixtures for Loyalty Membership Service

Provides fixtures for component testing with FastAPI TestClient over the
in-process membership backend.
"""

import pytest
from unittest.mock import patch
from datetime import datetime, timezone, timedelta
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.loyalty_membership_service.events import InProcessEventBus
from microservices.loyalty_membership_service.load_registry import InflightLoadRegistry
from microservices.loyalty_membership_service.local_backend import LocalMembershipBackend
from microservices.loyalty_membership_service.membership_cache import InMemoryKeyValueStore, MembershipCache
from microservices.loyalty_membership_service.models import Membership, MembershipStatus
from tests.contracts.loyalty_membership import make_membership, make_stats


def current_membership(
    customer_id: str = "cust_active",
    membership_id: str = "atp_active",
    days_left: int = 200,
    status: MembershipStatus = MembershipStatus.ACTIVE,
) -> Membership:
    """Membership dated relative to the wall clock (the API uses real time)"""
    now = datetime.now(timezone.utc)
    return make_membership(
        customer_id=customer_id,
        membership_id=membership_id,
        status=status,
        start_date=now - timedelta(days=30),
        expiration_date=now + timedelta(days=days_left),
    )


@pytest.fixture
def backend():
    """Fresh in-process backend for each test"""
    return LocalMembershipBackend()


@pytest.fixture
def cache():
    return MembershipCache(InMemoryKeyValueStore())


@pytest.fixture
def event_bus():
    return InProcessEventBus()


@pytest.fixture
def client(backend, cache, event_bus):
    """Create FastAPI test client with patched service globals"""
    from fastapi.testclient import TestClient

    # Patch the globals in main module; the lifespan is not entered
    with patch("microservices.loyalty_membership_service.main.remote_service", backend), \
         patch("microservices.loyalty_membership_service.main.membership_cache", cache), \
         patch("microservices.loyalty_membership_service.main.load_registry", InflightLoadRegistry()), \
         patch("microservices.loyalty_membership_service.main.event_bus", event_bus):

        from microservices.loyalty_membership_service.main import app

        app.dependency_overrides = {}
        yield TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def active_member(backend):
    """Active member with 200 days left"""
    membership = current_membership()
    backend.seed(membership, make_stats())
    return membership


@pytest.fixture
def expiring_member(backend):
    """Active member with 5 days left"""
    membership = current_membership(customer_id="cust_expiring", membership_id="atp_expiring", days_left=5)
    backend.seed(membership)
    return membership
