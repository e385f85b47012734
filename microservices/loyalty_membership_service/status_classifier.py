"""
Membership Status Classifier

Pure functions computing validity, status bucket and renewal urgency from a
membership and the current time. Nothing here raises for membership state.
"""

import math
from datetime import datetime, timezone
from typing import Optional

from .models import (
    Membership,
    MembershipStatus,
    MembershipValidation,
    RenewalUrgency,
    StatusBucket,
    StatusInfo,
)


RENEWAL_WINDOW_DAYS = 14
EXPIRING_SOON_DAYS = 7
RENEWAL_REMINDER_DAYS = 30
HIGH_URGENCY_DAYS = 3

SECONDS_PER_DAY = 86400


def _now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def validate_membership(
    membership: Optional[Membership],
    now: Optional[datetime] = None,
    renewal_window_days: int = RENEWAL_WINDOW_DAYS,
) -> MembershipValidation:
    """
    Compute validity flags for a membership at a point in time

    Args:
        membership: Membership to check, None for "no membership"
        now: Reference time (defaults to current UTC time)
        renewal_window_days: Days before expiration that require renewal

    Returns:
        MembershipValidation
    """
    if membership is None:
        return MembershipValidation()

    now = _now(now)
    remaining = (membership.expiration_date - now).total_seconds()

    is_expired = remaining <= 0
    days_until_expiration = max(0, math.ceil(remaining / SECONDS_PER_DAY))
    is_active = membership.status == MembershipStatus.ACTIVE and not is_expired
    requires_renewal = is_expired or days_until_expiration <= renewal_window_days

    return MembershipValidation(
        is_valid=is_active and not is_expired,
        is_active=is_active,
        is_expired=is_expired,
        days_until_expiration=days_until_expiration,
        requires_renewal=requires_renewal,
        errors=["Membership has expired"] if is_expired else [],
    )


def is_membership_active(membership: Optional[Membership], now: Optional[datetime] = None) -> bool:
    return validate_membership(membership, now).is_active


def classify_status(
    membership: Optional[Membership],
    now: Optional[datetime] = None,
    validation: Optional[MembershipValidation] = None,
) -> StatusBucket:
    """Map a membership to its display bucket"""
    if membership is None:
        return StatusBucket.NONE

    validation = validation or validate_membership(membership, now)
    if validation.is_expired:
        return StatusBucket.EXPIRED
    if validation.days_until_expiration <= EXPIRING_SOON_DAYS:
        return StatusBucket.EXPIRING
    if validation.is_active:
        return StatusBucket.ACTIVE
    return StatusBucket.INACTIVE


def get_status_info(membership: Optional[Membership], now: Optional[datetime] = None) -> StatusInfo:
    """Status bucket with the message shown to the member"""
    if membership is None:
        return StatusInfo(status=StatusBucket.NONE, message="No membership found")

    validation = validate_membership(membership, now)
    bucket = classify_status(membership, validation=validation)

    if bucket == StatusBucket.EXPIRED:
        return StatusInfo(status=bucket, message="Membership has expired", action_required=True)
    if bucket == StatusBucket.EXPIRING:
        days = validation.days_until_expiration
        unit = "day" if days == 1 else "days"
        return StatusInfo(
            status=bucket,
            message=f"Membership expires in {days} {unit}",
            action_required=True,
        )
    if bucket == StatusBucket.ACTIVE:
        return StatusInfo(
            status=bucket,
            message=f"Membership active until {membership.expiration_date.date().isoformat()}",
        )
    return StatusInfo(status=bucket, message="Membership is not active", action_required=True)


def get_renewal_urgency(membership: Optional[Membership], now: Optional[datetime] = None) -> RenewalUrgency:
    """Urgency of the renewal reminder"""
    if membership is None:
        return RenewalUrgency.NONE

    validation = validate_membership(membership, now)
    if validation.is_expired:
        return RenewalUrgency.CRITICAL

    days = validation.days_until_expiration
    if days <= HIGH_URGENCY_DAYS:
        return RenewalUrgency.HIGH
    if days <= EXPIRING_SOON_DAYS:
        return RenewalUrgency.MEDIUM
    if days <= RENEWAL_REMINDER_DAYS:
        return RenewalUrgency.LOW
    return RenewalUrgency.NONE


__all__ = [
    "RENEWAL_WINDOW_DAYS",
    "EXPIRING_SOON_DAYS",
    "RENEWAL_REMINDER_DAYS",
    "validate_membership",
    "is_membership_active",
    "classify_status",
    "get_status_info",
    "get_renewal_urgency",
]
