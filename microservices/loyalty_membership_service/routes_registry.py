"""
Loyalty Membership Service Routes Registry

Defines service metadata and routes exposed by the HTTP surface.
"""

SERVICE_METADATA = {
    "service_name": "loyalty_membership_service",
    "version": "1.0.0",
    "description": "Loyalty membership lifecycle, status and member discounts",
    "tags": ["v1", "membership", "loyalty", "microservice"],
    "capabilities": [
        "membership_status",
        "membership_purchase",
        "membership_renewal",
        "membership_cancellation",
        "member_discounts",
        "free_delivery",
    ],
}

# Route definitions for API documentation
ROUTES = [
    # Health endpoints
    {"path": "/health", "methods": ["GET"], "description": "Health check"},

    # Service info
    {"path": "/api/v1/memberships/info", "methods": ["GET"], "description": "Service information"},

    # Status & discounts
    {"path": "/api/v1/memberships/status", "methods": ["GET"], "description": "Customer membership status"},
    {"path": "/api/v1/memberships/discount", "methods": ["POST"], "description": "Calculate member discount"},

    # Lifecycle
    {"path": "/api/v1/memberships/purchase", "methods": ["POST"], "description": "Purchase membership"},
    {"path": "/api/v1/memberships/{membership_id}/renew", "methods": ["POST"], "description": "Renew membership"},
    {"path": "/api/v1/memberships/{membership_id}/cancel", "methods": ["POST"], "description": "Cancel membership"},
]


def get_route_metadata():
    """Get route metadata summary"""
    route_paths = [r["path"] for r in ROUTES]
    return {
        "route_count": str(len(ROUTES)),
        "routes": ",".join(route_paths),
        "api_version": "v1",
        "base_path": "/api/v1/memberships",
    }


__all__ = ["SERVICE_METADATA", "ROUTES", "get_route_metadata"]
