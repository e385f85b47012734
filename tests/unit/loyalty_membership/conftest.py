"""
Unit Test Fixtures for Loyalty Membership Service

Provides mock collaborators and lifecycle service fixtures. Test data comes
from tests/contracts/loyalty_membership.
"""

import asyncio
import pytest
from datetime import timedelta
from typing import Any, Dict, List, Optional

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from core.config import MembershipConfig
from microservices.loyalty_membership_service.membership_cache import (
    InMemoryKeyValueStore,
    MembershipCache,
)
from microservices.loyalty_membership_service.membership_service import MembershipLifecycleService
from microservices.loyalty_membership_service.models import (
    Membership,
    MembershipStats,
    MembershipStatus,
    PaymentStatus,
)
from tests.contracts.loyalty_membership import FakeClock, make_membership


# ====================
# Mock Remote Service
# ====================


class MockRemoteService:
    """
    Mock remote membership service for unit testing

    - calls: per-operation call counter
    - failures: operation -> exception raised on the next calls
    - gates: operation -> asyncio.Event awaited before answering
    """

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock or FakeClock()
        self.memberships: Dict[str, Membership] = {}
        self.stats: Dict[str, MembershipStats] = {}
        self.calls: Dict[str, int] = {}
        self.call_args: List[tuple] = []
        self.failures: Dict[str, BaseException] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self._counter = 0

    def add(self, membership: Membership, stats: Optional[MembershipStats] = None) -> Membership:
        self.memberships[membership.customer_id] = membership
        if stats is not None:
            self.stats[membership.customer_id] = stats
        return membership

    def gate(self, operation: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[operation] = event
        return event

    async def _enter(self, operation: str, *args):
        self.calls[operation] = self.calls.get(operation, 0) + 1
        self.call_args.append((operation, args))
        gate = self.gates.get(operation)
        if gate is not None:
            await gate.wait()
        if operation in self.failures:
            raise self.failures[operation]

    def _by_id(self, membership_id: str) -> Membership:
        for membership in self.memberships.values():
            if membership.membership_id == membership_id:
                return membership
        raise KeyError(membership_id)

    async def get_membership(self, customer_id: str) -> Optional[Membership]:
        await self._enter("get_membership", customer_id)
        return self.memberships.get(customer_id)

    async def get_membership_stats(self, customer_id: str) -> MembershipStats:
        await self._enter("get_membership_stats", customer_id)
        return self.stats.get(customer_id, MembershipStats())

    async def create_membership(self, customer_id: str) -> Membership:
        await self._enter("create_membership", customer_id)
        self._counter += 1
        now = self.clock()
        membership = make_membership(
            customer_id=customer_id,
            membership_id=f"atp_new_{self._counter}",
            status=MembershipStatus.PENDING,
            start_date=now,
            expiration_date=now + timedelta(days=365),
            payment_status=PaymentStatus.PENDING,
        )
        return self.add(membership)

    async def renew_membership(self, membership_id: str, extend_from_current_expiration: bool = True) -> Membership:
        await self._enter("renew_membership", membership_id, extend_from_current_expiration)
        existing = self._by_id(membership_id)
        renewed = existing.model_copy(update={
            "status": MembershipStatus.ACTIVE,
            "expiration_date": existing.expiration_date + timedelta(days=365),
        })
        return self.add(renewed)

    async def cancel_membership(self, membership_id: str) -> Membership:
        await self._enter("cancel_membership", membership_id)
        existing = self._by_id(membership_id)
        return self.add(existing.model_copy(update={"status": MembershipStatus.CANCELLED}))


class MockEventBus:
    """Mock event bus for unit testing"""

    def __init__(self):
        self.published_events: List[Dict[str, Any]] = []

    async def publish(self, subject: str, data: Dict[str, Any]) -> None:
        self.published_events.append({"subject": subject, "data": data})

    async def close(self) -> None:
        pass


class FailingStore:
    """Key-value store whose every operation fails"""

    def get(self, key):
        raise OSError("storage unavailable")

    def put(self, key, value):
        raise OSError("storage unavailable")

    def delete(self, key):
        raise OSError("storage unavailable")


# ====================
# Fixtures
# ====================


@pytest.fixture
def clock():
    """Controllable clock starting at FIXED_NOW"""
    return FakeClock()


@pytest.fixture
def mock_remote(clock):
    """Create mock remote service"""
    return MockRemoteService(clock)


@pytest.fixture
def mock_event_bus():
    """Create mock event bus"""
    return MockEventBus()


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def cache(store, clock):
    """Membership cache over an in-memory store with a 5 minute TTL"""
    return MembershipCache(store, ttl_seconds=300, clock=clock)


@pytest.fixture
def config():
    return MembershipConfig()


@pytest.fixture
def lifecycle_service(mock_remote, cache, config, mock_event_bus, clock):
    """Create lifecycle service with mocks"""
    return MembershipLifecycleService(
        remote=mock_remote,
        cache=cache,
        config=config,
        event_bus=mock_event_bus,
        clock=clock,
    )


@pytest.fixture
def active_membership():
    return make_membership()


@pytest.fixture
def failing_store():
    """Store that raises on every operation"""
    return FailingStore()
