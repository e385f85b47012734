"""
Local Membership Backend

In-process implementation of the remote membership service, holding
memberships in memory. Used for local development (MEMBERSHIP_BACKEND=local)
and as a stand-in for the remote API in tests.
"""

import calendar
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, Optional

from core.config import DEFAULT_ELIGIBLE_SERVICES

from .models import (
    ErrorCode,
    Membership,
    MembershipBenefits,
    MembershipStats,
    MembershipStatus,
    PaymentStatus,
)
from .protocols import (
    MembershipError,
    cancellation_failed,
    invalid_customer,
    renewal_failed,
)

logger = logging.getLogger(__name__)


def add_months(start: datetime, months: int) -> datetime:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    day = min(start.day, calendar.monthrange(y, m)[1])
    return start.replace(year=y, month=m, day=day)


class LocalMembershipBackend:
    """In-memory membership store implementing MembershipRemoteServiceProtocol"""

    def __init__(
        self,
        duration_months: int = 12,
        service_discount_rate: Decimal = Decimal("0.15"),
        free_delivery: bool = True,
        eligible_services: Optional[Iterable[str]] = None,
        annual_fee: Decimal = Decimal("99"),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.duration_months = duration_months
        self.service_discount_rate = service_discount_rate
        self.free_delivery = free_delivery
        self.eligible_services = set(eligible_services if eligible_services is not None else DEFAULT_ELIGIBLE_SERVICES)
        self.annual_fee = annual_fee
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self.memberships: Dict[str, Membership] = {}
        self.customer_index: Dict[str, str] = {}
        self.stats: Dict[str, MembershipStats] = {}

    @classmethod
    def from_config(cls, config, clock: Optional[Callable[[], datetime]] = None) -> "LocalMembershipBackend":
        return cls(
            duration_months=config.membership_duration_months,
            service_discount_rate=config.service_discount_rate,
            free_delivery=config.free_delivery,
            eligible_services=config.eligible_services,
            annual_fee=config.annual_fee,
            clock=clock,
        )

    # ====================
    # Helpers
    # ====================

    def seed(self, membership: Membership, stats: Optional[MembershipStats] = None) -> None:
        """Insert a membership (and optional stats) directly"""
        self.memberships[membership.membership_id] = membership
        self.customer_index[membership.customer_id] = membership.membership_id
        if stats is not None:
            self.stats[membership.customer_id] = stats

    def _get_by_id(self, membership_id: str) -> Optional[Membership]:
        return self.memberships.get(membership_id)

    def _save(self, membership: Membership) -> Membership:
        self.memberships[membership.membership_id] = membership
        self.customer_index[membership.customer_id] = membership.membership_id
        return membership

    # ====================
    # Queries
    # ====================

    async def get_membership(self, customer_id: str) -> Optional[Membership]:
        if not customer_id or not customer_id.strip():
            raise invalid_customer(customer_id)
        membership_id = self.customer_index.get(customer_id)
        return self.memberships.get(membership_id) if membership_id else None

    async def get_membership_stats(self, customer_id: str) -> MembershipStats:
        if not customer_id or not customer_id.strip():
            raise invalid_customer(customer_id)
        if customer_id in self.stats:
            return self.stats[customer_id]

        membership_id = self.customer_index.get(customer_id)
        membership = self.memberships.get(membership_id) if membership_id else None
        return MembershipStats(member_since=membership.start_date if membership else None)

    # ====================
    # Mutations
    # ====================

    async def create_membership(self, customer_id: str) -> Membership:
        if not customer_id or not customer_id.strip():
            raise invalid_customer(customer_id)

        existing = await self.get_membership(customer_id)
        if existing and existing.status in (MembershipStatus.ACTIVE, MembershipStatus.PENDING):
            raise MembershipError(
                "Customer already has a membership",
                ErrorCode.PAYMENT_FAILED,
                details={"customer_id": customer_id, "membership_id": existing.membership_id},
                status_code=409,
            )

        now = self.clock()
        membership = Membership(
            membership_id=f"atp_{uuid.uuid4().hex[:16]}",
            customer_id=customer_id,
            status=MembershipStatus.PENDING,
            start_date=now,
            expiration_date=add_months(now, self.duration_months),
            payment_status=PaymentStatus.PENDING,
            benefits=MembershipBenefits(
                service_discount_rate=self.service_discount_rate,
                free_delivery=self.free_delivery,
                eligible_service_ids=set(self.eligible_services),
                annual_fee=self.annual_fee,
            ),
            created_at=now,
            updated_at=now,
        )
        logger.info(f"Created membership {membership.membership_id} for customer {customer_id}")
        return self._save(membership)

    async def renew_membership(
        self,
        membership_id: str,
        extend_from_current_expiration: bool = True
    ) -> Membership:
        """
        Renew for another term

        The new term starts at the current expiration when
        extend_from_current_expiration is set or the membership has not yet
        expired, otherwise at the current time.
        """
        existing = self._get_by_id(membership_id)
        if existing is None:
            error = renewal_failed()
            error.details["membership_id"] = membership_id
            error.details["reason"] = "membership not found"
            raise error

        now = self.clock()
        current_expiration = existing.expiration_date
        base_date = current_expiration if extend_from_current_expiration or current_expiration > now else now

        renewed = existing.model_copy(update={
            "status": MembershipStatus.ACTIVE,
            "payment_status": PaymentStatus.PENDING,
            "expiration_date": add_months(base_date, self.duration_months),
            "updated_at": now,
        })
        logger.info(f"Renewed membership {membership_id} until {renewed.expiration_date.isoformat()}")
        return self._save(renewed)

    async def cancel_membership(self, membership_id: str) -> Membership:
        existing = self._get_by_id(membership_id)
        if existing is None:
            error = cancellation_failed()
            error.details["membership_id"] = membership_id
            error.details["reason"] = "membership not found"
            raise error

        cancelled = existing.model_copy(update={
            "status": MembershipStatus.CANCELLED,
            "updated_at": self.clock(),
        })
        logger.info(f"Cancelled membership {membership_id}")
        return self._save(cancelled)

    async def confirm_payment(self, membership_id: str) -> Membership:
        """Mark the membership paid and active once checkout completes"""
        existing = self._get_by_id(membership_id)
        if existing is None:
            raise MembershipError(
                "Membership not found",
                ErrorCode.PAYMENT_FAILED,
                details={"membership_id": membership_id},
                status_code=404,
            )

        confirmed = existing.model_copy(update={
            "status": MembershipStatus.ACTIVE,
            "payment_status": PaymentStatus.PAID,
            "updated_at": self.clock(),
        })
        logger.info(f"Payment confirmed for membership {membership_id}")
        return self._save(confirmed)


__all__ = ["LocalMembershipBackend", "add_months"]
