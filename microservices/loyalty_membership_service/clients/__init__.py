"""
Loyalty Membership Service Clients

HTTP clients for external service calls.
"""

from .membership_api_client import MembershipApiClient

__all__ = ["MembershipApiClient"]
