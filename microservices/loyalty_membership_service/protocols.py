"""
Loyalty Membership Protocols

Defines interfaces for dependency injection and testing, and the typed
membership error raised across the service.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from .models import ErrorCode, Membership, MembershipStats


# ====================
# Remote Service Protocol
# ====================


class MembershipRemoteServiceProtocol(Protocol):
    """Protocol for the remote (Shopify-backed) membership service.

    Implementations raise MembershipError on failure.
    """

    async def get_membership(self, customer_id: str) -> Optional[Membership]:
        """Get the customer's membership, None when the customer has none"""
        ...

    async def get_membership_stats(self, customer_id: str) -> MembershipStats:
        """Get usage statistics for the customer"""
        ...

    async def create_membership(self, customer_id: str) -> Membership:
        """Create a new membership"""
        ...

    async def renew_membership(
        self,
        membership_id: str,
        extend_from_current_expiration: bool = True
    ) -> Membership:
        """Renew membership for another term"""
        ...

    async def cancel_membership(self, membership_id: str) -> Membership:
        """Cancel membership"""
        ...


# ====================
# Storage Protocol
# ====================


class KeyValueStoreProtocol(Protocol):
    """Synchronous string key-value medium backing the membership cache"""

    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


# ====================
# Catalog Protocol
# ====================


class ServiceCatalogProtocol(Protocol):
    """Resolves display names for services"""

    def get_service_name(self, service_id: str) -> Optional[str]:
        ...


# ====================
# Event Bus Protocol
# ====================


class EventBusProtocol(Protocol):
    """Protocol for event bus operations"""

    async def publish(self, subject: str, data: Dict[str, Any]) -> None:
        """Publish event"""
        ...

    async def close(self) -> None:
        """Close event bus connection"""
        ...


# ====================
# Custom Exceptions
# ====================


USER_MESSAGES = {
    ErrorCode.INVALID_CUSTOMER: "Please sign in to view your membership.",
    ErrorCode.CUSTOMER_NOT_FOUND: "We could not find your customer account.",
    ErrorCode.MEMBERSHIP_EXPIRED: "Your membership has expired. Please renew to continue enjoying benefits.",
    ErrorCode.PAYMENT_FAILED: "Payment processing failed. Please check your payment method and try again.",
    ErrorCode.NETWORK_ERROR: "Connection error. Please check your internet connection and try again.",
    ErrorCode.RENEWAL_FAILED: "Membership renewal failed. Please try again or contact support.",
    ErrorCode.CANCELLATION_FAILED: "Membership cancellation failed. Please contact support for assistance.",
}

RETRYABLE_CODES = {
    ErrorCode.NETWORK_ERROR,
    ErrorCode.SHOPIFY_API_ERROR,
}


class MembershipError(Exception):
    """Typed membership error surfaced by the lifecycle controller"""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
        is_retryable: bool = False,
        status_code: int = 400
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.cause = cause
        self.details = details or {}
        self.is_retryable = is_retryable
        self.status_code = status_code
        self.timestamp = datetime.now(timezone.utc)
        self.request_id = self.details.get("request_id") or f"req_{uuid.uuid4().hex[:12]}"
        if cause is not None:
            self.__cause__ = cause

    def user_message(self) -> str:
        """User-facing message for the error code"""
        return USER_MESSAGES.get(
            self.code,
            "An unexpected error occurred. Please try again or contact support."
        )

    def should_retry(self) -> bool:
        return self.is_retryable and self.code in RETRYABLE_CODES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code.value,
            "details": self.details,
            "is_retryable": self.is_retryable,
            "status_code": self.status_code,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause is not None else None,
        }

    def __repr__(self) -> str:
        return f"MembershipError(code={self.code.value!r}, message={self.message!r})"


# ====================
# Error Factories
# ====================


def invalid_customer(customer_id: Optional[str] = None) -> MembershipError:
    return MembershipError(
        "Customer ID is required to load membership",
        ErrorCode.INVALID_CUSTOMER,
        details={"customer_id": customer_id},
    )


def customer_not_found(customer_id: Optional[str] = None, message: Optional[str] = None) -> MembershipError:
    return MembershipError(
        message or "Customer not found",
        ErrorCode.CUSTOMER_NOT_FOUND,
        details={"customer_id": customer_id},
        status_code=404,
    )


def network_error(cause: Optional[BaseException] = None) -> MembershipError:
    return MembershipError(
        "Network connection error",
        ErrorCode.NETWORK_ERROR,
        cause=cause,
        is_retryable=True,
        status_code=503,
    )


def shopify_api_error(message: str = "Membership service error", cause: Optional[BaseException] = None) -> MembershipError:
    return MembershipError(
        message,
        ErrorCode.SHOPIFY_API_ERROR,
        cause=cause,
        is_retryable=True,
        status_code=502,
    )


def payment_failed(
    reason: Optional[str] = None,
    cause: Optional[BaseException] = None,
    message: Optional[str] = None
) -> MembershipError:
    return MembershipError(
        message or "Payment processing failed",
        ErrorCode.PAYMENT_FAILED,
        cause=cause,
        details={"reason": reason} if reason else {},
        status_code=402,
    )


def renewal_failed(cause: Optional[BaseException] = None) -> MembershipError:
    return MembershipError(
        "Failed to renew membership",
        ErrorCode.RENEWAL_FAILED,
        cause=cause,
        status_code=400,
    )


def cancellation_failed(cause: Optional[BaseException] = None) -> MembershipError:
    return MembershipError(
        "Failed to cancel membership",
        ErrorCode.CANCELLATION_FAILED,
        cause=cause,
        status_code=400,
    )


def membership_expired(expiration_date: Optional[datetime] = None) -> MembershipError:
    return MembershipError(
        "Membership has expired",
        ErrorCode.MEMBERSHIP_EXPIRED,
        details={"expiration_date": expiration_date.isoformat() if expiration_date else None},
        status_code=403,
    )


def wrap_error(error: BaseException, code: ErrorCode, message: str) -> MembershipError:
    """Return error unchanged if it is already a MembershipError, otherwise wrap it"""
    if isinstance(error, MembershipError):
        return error
    return MembershipError(
        message,
        code,
        cause=error,
        is_retryable=code in RETRYABLE_CODES,
        status_code=503 if code in RETRYABLE_CODES else 400,
    )


__all__ = [
    "MembershipRemoteServiceProtocol",
    "KeyValueStoreProtocol",
    "ServiceCatalogProtocol",
    "EventBusProtocol",
    "MembershipError",
    "invalid_customer",
    "customer_not_found",
    "network_error",
    "shopify_api_error",
    "payment_failed",
    "renewal_failed",
    "cancellation_failed",
    "membership_expired",
    "wrap_error",
]
