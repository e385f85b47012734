"""
Loyalty Membership Data Models

Pydantic models for memberships, usage stats, discount results, validation
results and the cache entry.
"""

from enum import Enum
from typing import Optional, Dict, Any, List, Set
from datetime import datetime, timezone
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# ====================
# Enum Types
# ====================

class MembershipStatus(str, Enum):
    """Membership status"""
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    PENDING = "pending"


class PaymentStatus(str, Enum):
    """Membership payment status"""
    PAID = "paid"
    PENDING = "pending"
    FAILED = "failed"
    REFUNDED = "refunded"


class StatusBucket(str, Enum):
    """Human-facing status bucket"""
    NONE = "none"
    ACTIVE = "active"
    EXPIRING = "expiring"
    EXPIRED = "expired"
    INACTIVE = "inactive"


class RenewalUrgency(str, Enum):
    """Renewal reminder urgency"""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode(str, Enum):
    """Membership error codes (closed set)"""
    INVALID_CUSTOMER = "INVALID_CUSTOMER"
    NETWORK_ERROR = "NETWORK_ERROR"
    SHOPIFY_API_ERROR = "SHOPIFY_API_ERROR"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    RENEWAL_FAILED = "RENEWAL_FAILED"
    CANCELLATION_FAILED = "CANCELLATION_FAILED"
    MEMBERSHIP_EXPIRED = "MEMBERSHIP_EXPIRED"
    CUSTOMER_NOT_FOUND = "CUSTOMER_NOT_FOUND"


class LifecyclePhase(str, Enum):
    """Lifecycle controller phase"""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class WireModel(BaseModel):
    """Base for models exchanged with the remote API and the cache (camelCase on the wire)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ====================
# Core Data Models
# ====================

class MembershipBenefits(WireModel):
    """Benefit configuration attached to a membership"""
    service_discount_rate: Decimal = Field(
        default=Decimal("0.15"), ge=0, le=1, alias="serviceDiscount"
    )
    free_delivery: bool = True
    eligible_service_ids: Set[str] = Field(default_factory=set, alias="eligibleServices")
    annual_fee: Decimal = Field(default=Decimal("99"), ge=0)


class Membership(WireModel):
    """Membership entity model"""
    membership_id: str = Field(..., min_length=1, alias="id")
    customer_id: str = Field(..., min_length=1)
    status: MembershipStatus = MembershipStatus.PENDING
    start_date: datetime
    expiration_date: datetime
    subscription_id: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    benefits: MembershipBenefits = Field(default_factory=MembershipBenefits)

    # Timestamps
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("start_date", "expiration_date", "created_at", "updated_at")
    @classmethod
    def _ensure_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_validity_window(self) -> "Membership":
        if self.expiration_date <= self.start_date:
            raise ValueError("expiration_date must be after start_date")
        return self


class MembershipStats(WireModel):
    """Per-customer usage statistics supplied by the remote service"""
    total_savings: Decimal = Field(default=Decimal("0"), ge=0)
    services_used: int = Field(default=0, ge=0)
    orders_with_free_delivery: int = Field(default=0, ge=0)
    member_since: Optional[datetime] = None
    last_service_date: Optional[datetime] = None
    average_order_value: Optional[Decimal] = None
    total_orders: Optional[int] = Field(default=None, ge=0)

    @field_validator("member_since", "last_service_date")
    @classmethod
    def _ensure_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class CacheEntry(BaseModel):
    """Cached membership/stats pair"""
    membership: Optional[Membership] = None
    stats: Optional[MembershipStats] = None
    last_updated_at: datetime


# ====================
# Derived Results
# ====================

class DiscountCalculation(BaseModel):
    """Price breakdown for a single purchase"""
    original_price: Decimal
    discount_amount: Decimal = Decimal("0.00")
    discount_percentage: Decimal = Decimal("0")
    final_price: Decimal
    savings: Decimal = Decimal("0.00")


class ServiceDiscountInfo(BaseModel):
    """UI-facing discount summary for one service"""
    service_id: str
    service_name: str
    is_eligible: bool
    discount_percentage: Decimal
    original_price: Decimal
    discounted_price: Decimal


class MembershipValidation(BaseModel):
    """Validity/urgency flags computed from a membership and the current time"""
    is_valid: bool = False
    is_active: bool = False
    is_expired: bool = False
    days_until_expiration: int = Field(default=0, ge=0)
    requires_renewal: bool = False
    errors: List[str] = Field(default_factory=list)


class StatusInfo(BaseModel):
    """Status bucket with a display message"""
    status: StatusBucket
    message: str
    action_required: bool = False


# ====================
# Request / Response Models
# ====================

class DiscountRequest(BaseModel):
    """Discount calculation request"""
    customer_id: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    service_id: Optional[str] = None


class PurchaseRequest(BaseModel):
    """Membership purchase request"""
    customer_id: str = Field(..., min_length=1)


class PurchaseResponse(BaseModel):
    """Membership purchase response"""
    success: bool
    checkout_url: str
    membership: Optional[Membership] = None


class MembershipResponse(BaseModel):
    """Single membership response"""
    success: bool
    message: str
    membership: Optional[Membership] = None


class MembershipStatusResponse(BaseModel):
    """Membership status for one customer"""
    is_member: bool
    tier: Optional[str] = None
    discount_rate: Decimal = Decimal("0")
    membership: Optional[Membership] = None
    stats: Optional[MembershipStats] = None
    validation: MembershipValidation
    status_info: StatusInfo


# ====================
# System Models
# ====================

class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    port: int
    version: str
    dependencies: Dict[str, str]


class ServiceInfo(BaseModel):
    """Service information"""
    service: str
    version: str
    description: str
    capabilities: List[str]


__all__ = [
    # Enums
    "MembershipStatus",
    "PaymentStatus",
    "StatusBucket",
    "RenewalUrgency",
    "ErrorCode",
    "LifecyclePhase",
    # Core Models
    "WireModel",
    "MembershipBenefits",
    "Membership",
    "MembershipStats",
    "CacheEntry",
    # Derived
    "DiscountCalculation",
    "ServiceDiscountInfo",
    "MembershipValidation",
    "StatusInfo",
    # Request / Response
    "DiscountRequest",
    "PurchaseRequest",
    "PurchaseResponse",
    "MembershipResponse",
    "MembershipStatusResponse",
    # System
    "HealthResponse",
    "ServiceInfo",
]
