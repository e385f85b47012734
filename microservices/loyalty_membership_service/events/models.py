"""
Loyalty Membership Event Models

Event data models for loyalty_membership_service.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Event Type Definitions
# =============================================================================

class MembershipEventType(str, Enum):
    """
    Events published by loyalty_membership_service.

    Subjects: membership.>
    """
    MEMBERSHIP_LOADED = "membership.loaded"
    MEMBERSHIP_PURCHASED = "membership.purchased"
    MEMBERSHIP_RENEWED = "membership.renewed"
    MEMBERSHIP_CANCELLED = "membership.cancelled"


EVENT_SOURCE = "loyalty_membership_service"


# =============================================================================
# Event Data Models
# =============================================================================

class MembershipBaseEventData(BaseModel):
    """Base event data for loyalty membership events."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MembershipLoadedEventData(MembershipBaseEventData):
    """Published after a remote load (cache hits are not published)"""
    customer_id: str
    is_member: bool
    membership_id: Optional[str] = None
    status: Optional[str] = None
    expiration_date: Optional[datetime] = None


class MembershipPurchasedEventData(MembershipBaseEventData):
    customer_id: str
    membership_id: str
    annual_fee: Decimal
    checkout_url: str


class MembershipRenewedEventData(MembershipBaseEventData):
    customer_id: str
    membership_id: str
    expiration_date: datetime


class MembershipCancelledEventData(MembershipBaseEventData):
    customer_id: str
    membership_id: str


# =============================================================================
# Helpers
# =============================================================================

def build_event(event_type: MembershipEventType, data: MembershipBaseEventData) -> dict:
    """Wrap event data in the envelope published on the event bus"""
    return {
        "event_type": event_type.name,
        "source": EVENT_SOURCE,
        "data": data.model_dump(mode="json"),
    }


__all__ = [
    "MembershipEventType",
    "EVENT_SOURCE",
    "MembershipBaseEventData",
    "MembershipLoadedEventData",
    "MembershipPurchasedEventData",
    "MembershipRenewedEventData",
    "MembershipCancelledEventData",
    "build_event",
]
