"""
Loyalty Membership Service Factory

Factory for creating the lifecycle service with real dependencies.
This is the ONLY module that imports concrete implementations.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from core.config import MembershipConfig, get_settings

from .clients.membership_api_client import MembershipApiClient
from .load_registry import InflightLoadRegistry
from .local_backend import LocalMembershipBackend
from .membership_cache import FileKeyValueStore, InMemoryKeyValueStore, MembershipCache
from .membership_service import MembershipLifecycleService
from .protocols import EventBusProtocol, MembershipRemoteServiceProtocol

logger = logging.getLogger(__name__)


def create_remote_service(config: Optional[MembershipConfig] = None) -> MembershipRemoteServiceProtocol:
    """
    Create the remote membership service selected by config.backend

    Args:
        config: Membership config (global settings if not provided)

    Returns:
        MembershipApiClient for "http", LocalMembershipBackend for "local"
    """
    config = config or get_settings()

    if config.backend == "local":
        logger.info("Using in-process membership backend")
        return LocalMembershipBackend.from_config(config)

    if config.backend != "http":
        raise ValueError(f"Unknown membership backend: {config.backend}")

    logger.info(f"Using membership API at {config.api_url}")
    return MembershipApiClient(
        base_url=config.api_url,
        api_token=config.api_token or None,
        timeout=config.api_timeout,
        retry_attempts=config.api_retry_attempts,
        retry_wait=config.api_retry_wait_seconds,
        retry_max_wait=config.api_retry_max_wait_seconds,
    )


def create_membership_cache(
    config: Optional[MembershipConfig] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> MembershipCache:
    """Create the membership cache on the medium selected by config.cache_backend"""
    config = config or get_settings()

    if config.cache_backend == "file":
        store = FileKeyValueStore(config.cache_path)
        logger.info(f"Membership cache persisted to {config.cache_path}")
    else:
        store = InMemoryKeyValueStore()

    return MembershipCache(store, ttl_seconds=config.cache_ttl_seconds, clock=clock)


def create_load_registry() -> InflightLoadRegistry:
    """Create the in-flight load registry shared by every controller of the process"""
    return InflightLoadRegistry()


def create_lifecycle_service(
    remote: MembershipRemoteServiceProtocol,
    cache: MembershipCache,
    config: Optional[MembershipConfig] = None,
    event_bus: Optional[EventBusProtocol] = None,
    loads: Optional[InflightLoadRegistry] = None,
) -> MembershipLifecycleService:
    """
    Create a lifecycle controller over shared remote and cache

    Args:
        remote: Remote membership service
        cache: Shared membership cache
        config: Membership config (global settings if not provided)
        event_bus: Optional event bus for event publishing
        loads: Shared in-flight load registry (a private one if not provided)

    Returns:
        MembershipLifecycleService instance
    """
    return MembershipLifecycleService(
        remote=remote,
        cache=cache,
        config=config or get_settings(),
        event_bus=event_bus,
        loads=loads,
    )


__all__ = [
    "create_remote_service",
    "create_membership_cache",
    "create_load_registry",
    "create_lifecycle_service",
]
