"""
Loyalty Membership Service - Contracts Package

- data_contract.py: test data factory, wire payload builders, fixed clock
"""

from .data_contract import (
    FIXED_NOW,
    ELIGIBLE_SERVICES,
    FakeClock,
    LoyaltyMembershipTestDataFactory,
    make_membership,
    make_stats,
)

__all__ = [
    "FIXED_NOW",
    "ELIGIBLE_SERVICES",
    "FakeClock",
    "LoyaltyMembershipTestDataFactory",
    "make_membership",
    "make_stats",
]
