"""
Loyalty Membership Service Events

Event types and payloads published by the lifecycle controller.
"""

from .bus import InProcessEventBus
from .models import (
    MembershipEventType,
    EVENT_SOURCE,
    MembershipBaseEventData,
    MembershipLoadedEventData,
    MembershipPurchasedEventData,
    MembershipRenewedEventData,
    MembershipCancelledEventData,
    build_event,
)

__all__ = [
    "InProcessEventBus",
    "MembershipEventType",
    "EVENT_SOURCE",
    "MembershipBaseEventData",
    "MembershipLoadedEventData",
    "MembershipPurchasedEventData",
    "MembershipRenewedEventData",
    "MembershipCancelledEventData",
    "build_event",
]
