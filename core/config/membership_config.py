#!/usr/bin/env python3
"""Membership program configuration

Program constants (fee, discount, eligible services), cache policy,
remote API endpoint and checkout URL settings for the loyalty membership
service.
"""
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, List

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default

def _decimal(val: str, default: str) -> Decimal:
    try:
        return Decimal(val) if val else Decimal(default)
    except InvalidOperation:
        return Decimal(default)

def _list(val: str, default: List[str]) -> List[str]:
    if not val:
        return list(default)
    return [item.strip() for item in val.split(",") if item.strip()]


DEFAULT_ELIGIBLE_SERVICES = [
    "home-massage-spa",
    "ems-training",
    "home-yoga",
    "cosmetics-supplements",
]

DEFAULT_SERVICE_NAMES = {
    "home-massage-spa": "Home Massage & Spa Services",
    "ems-training": "EMS Training",
    "home-yoga": "Home Yoga Sessions",
    "cosmetics-supplements": "Cosmetics & Healthy Food Supplements",
}


@dataclass
class MembershipConfig:
    """Loyalty membership configuration"""

    # ===========================================
    # Remote membership API
    # ===========================================
    backend: str = "http"  # "http" or "local"
    api_url: str = "http://localhost:3000"
    api_token: str = ""
    api_timeout: float = 10.0
    api_retry_attempts: int = 3
    api_retry_wait_seconds: float = 1.0
    api_retry_max_wait_seconds: float = 10.0

    # ===========================================
    # Cache
    # ===========================================
    cache_ttl_seconds: int = 300
    cache_backend: str = "memory"  # "memory" or "file"
    cache_path: str = "data/membership_cache.json"

    # ===========================================
    # Program rules
    # ===========================================
    renewal_window_days: int = 14
    membership_duration_months: int = 12
    annual_fee: Decimal = Decimal("99")
    currency: str = "AED"
    service_discount_rate: Decimal = Decimal("0.15")
    free_delivery: bool = True
    eligible_services: List[str] = field(default_factory=lambda: list(DEFAULT_ELIGIBLE_SERVICES))
    service_names: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SERVICE_NAMES))

    # ===========================================
    # Checkout
    # ===========================================
    variant_id: str = ""
    use_direct_checkout: bool = False
    checkout_locale: str = ""

    # ===========================================
    # HTTP surface
    # ===========================================
    service_port: int = 8250
    debug: bool = False

    @property
    def is_variant_configured(self) -> bool:
        return bool(self.variant_id)

    @classmethod
    def from_env(cls) -> 'MembershipConfig':
        """Load membership configuration from environment variables"""
        return cls(
            backend=os.getenv("MEMBERSHIP_BACKEND", "http").lower(),
            api_url=os.getenv("MEMBERSHIP_API_URL", "http://localhost:3000"),
            api_token=os.getenv("MEMBERSHIP_API_TOKEN", ""),
            api_timeout=_float(os.getenv("MEMBERSHIP_API_TIMEOUT", "10"), 10.0),
            api_retry_attempts=_int(os.getenv("MEMBERSHIP_API_RETRY_ATTEMPTS", "3"), 3),
            api_retry_wait_seconds=_float(os.getenv("MEMBERSHIP_API_RETRY_WAIT", "1"), 1.0),
            api_retry_max_wait_seconds=_float(os.getenv("MEMBERSHIP_API_RETRY_MAX_WAIT", "10"), 10.0),

            cache_ttl_seconds=_int(os.getenv("MEMBERSHIP_CACHE_TTL_SECONDS", "300"), 300),
            cache_backend=os.getenv("MEMBERSHIP_CACHE_BACKEND", "memory").lower(),
            cache_path=os.getenv("MEMBERSHIP_CACHE_PATH", "data/membership_cache.json"),

            renewal_window_days=_int(os.getenv("MEMBERSHIP_RENEWAL_WINDOW_DAYS", "14"), 14),
            membership_duration_months=_int(os.getenv("MEMBERSHIP_DURATION_MONTHS", "12"), 12),
            annual_fee=_decimal(os.getenv("MEMBERSHIP_ANNUAL_FEE", ""), "99"),
            currency=os.getenv("MEMBERSHIP_CURRENCY", "AED"),
            service_discount_rate=_decimal(os.getenv("MEMBERSHIP_SERVICE_DISCOUNT", ""), "0.15"),
            free_delivery=_bool(os.getenv("MEMBERSHIP_FREE_DELIVERY", "true")),
            eligible_services=_list(os.getenv("MEMBERSHIP_ELIGIBLE_SERVICES", ""), DEFAULT_ELIGIBLE_SERVICES),

            variant_id=os.getenv("MEMBERSHIP_VARIANT_ID", ""),
            use_direct_checkout=_bool(os.getenv("MEMBERSHIP_USE_DIRECT_CHECKOUT", "false")),
            checkout_locale=os.getenv("MEMBERSHIP_CHECKOUT_LOCALE", ""),

            service_port=_int(os.getenv("SERVICE_PORT", "8250"), 8250),
            debug=_bool(os.getenv("DEBUG", "false")),
        )
