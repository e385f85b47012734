"""
Membership Discount Engine

Per-purchase discount and free-delivery rules. Money is Decimal rounded
half-up to two places; rates are fractions (0.15 means 15%).
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Optional, Union

from core.config import DEFAULT_ELIGIBLE_SERVICES, DEFAULT_SERVICE_NAMES

from .models import DiscountCalculation, Membership, ServiceDiscountInfo
from .protocols import ServiceCatalogProtocol
from .status_classifier import is_membership_active


CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def round_currency(amount: Number) -> Decimal:
    """Round a money amount half-up to 2 decimal places"""
    return _to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from carrying binary noise
    return Decimal(str(value))


class StaticServiceCatalog:
    """Service catalog backed by a fixed id -> display name mapping"""

    def __init__(self, names: Optional[Dict[str, str]] = None):
        self.names = dict(names if names is not None else DEFAULT_SERVICE_NAMES)

    def get_service_name(self, service_id: str) -> Optional[str]:
        return self.names.get(service_id)


def calculate_service_discount(
    price: Number,
    membership: Optional[Membership],
    service_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DiscountCalculation:
    """
    Calculate the member discount for one purchase

    No discount applies when there is no membership, the membership is not
    active, or the service is outside the membership's eligible set.

    Raises:
        ValueError: If price is negative
    """
    original_price = _to_decimal(price)
    if original_price < 0:
        raise ValueError(f"Price must not be negative: {price}")

    no_discount = DiscountCalculation(
        original_price=original_price,
        final_price=original_price,
    )

    if membership is None or not is_membership_active(membership, now):
        return no_discount

    if service_id and service_id not in membership.benefits.eligible_service_ids:
        return no_discount

    rate = membership.benefits.service_discount_rate
    discount_amount = round_currency(original_price * rate)

    return DiscountCalculation(
        original_price=original_price,
        discount_amount=discount_amount,
        discount_percentage=rate,
        final_price=original_price - discount_amount,
        savings=discount_amount,
    )


def is_eligible_for_free_delivery(membership: Optional[Membership], now: Optional[datetime] = None) -> bool:
    if membership is None:
        return False
    return is_membership_active(membership, now) and membership.benefits.free_delivery


def get_service_discount_info(
    service_id: str,
    price: Number,
    membership: Optional[Membership],
    catalog: Optional[ServiceCatalogProtocol] = None,
    now: Optional[datetime] = None,
    default_eligible_services: Optional[Iterable[str]] = None,
) -> ServiceDiscountInfo:
    """Discount summary for displaying one service to the customer"""
    catalog = catalog or StaticServiceCatalog()
    calculation = calculate_service_discount(price, membership, service_id, now)

    if membership is not None:
        is_eligible = service_id in membership.benefits.eligible_service_ids
    else:
        eligible = default_eligible_services if default_eligible_services is not None else DEFAULT_ELIGIBLE_SERVICES
        is_eligible = service_id in set(eligible)

    return ServiceDiscountInfo(
        service_id=service_id,
        service_name=catalog.get_service_name(service_id) or service_id,
        is_eligible=is_eligible,
        discount_percentage=calculation.discount_percentage,
        original_price=calculation.original_price,
        discounted_price=calculation.final_price,
    )


__all__ = [
    "round_currency",
    "StaticServiceCatalog",
    "calculate_service_discount",
    "is_eligible_for_free_delivery",
    "get_service_discount_info",
]
