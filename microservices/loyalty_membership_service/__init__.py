"""
Loyalty Membership Service

Membership lifecycle (load, purchase, renew, cancel), TTL caching, status
classification and member discount rules.
"""

from .membership_service import MembershipLifecycleService
from .membership_cache import MembershipCache, InMemoryKeyValueStore, FileKeyValueStore
from .protocols import MembershipError

__all__ = [
    "MembershipLifecycleService",
    "MembershipCache",
    "InMemoryKeyValueStore",
    "FileKeyValueStore",
    "MembershipError",
]
