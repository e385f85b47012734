"""
Loyalty Membership Microservice API

Membership status, purchase, renewal, cancellation and member discounts.
"""

import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Query
from fastapi.responses import JSONResponse

# Add parent directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../.."))
from core.config import LoggingConfig, get_settings
from core.logger import setup_service_logger

from .events import InProcessEventBus
from .factory import (
    create_lifecycle_service,
    create_load_registry,
    create_membership_cache,
    create_remote_service,
)
from .load_registry import InflightLoadRegistry
from .membership_cache import MembershipCache
from .membership_service import MembershipLifecycleService
from .models import (
    DiscountCalculation,
    DiscountRequest,
    HealthResponse,
    MembershipResponse,
    MembershipStatusResponse,
    PurchaseRequest,
    PurchaseResponse,
    ServiceInfo,
)
from .protocols import EventBusProtocol, MembershipError, MembershipRemoteServiceProtocol
from .routes_registry import SERVICE_METADATA, get_route_metadata

config = get_settings()
logging_config = LoggingConfig.from_env()

# Configure logger
logger = setup_service_logger("microservices.loyalty_membership_service", config=logging_config)

# Global variables
remote_service: Optional[MembershipRemoteServiceProtocol] = None
membership_cache: Optional[MembershipCache] = None
load_registry: Optional[InflightLoadRegistry] = None
event_bus: Optional[EventBusProtocol] = None
SERVICE_PORT = config.service_port or 8250

MEMBER_TIER = "atp"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    global remote_service, membership_cache, load_registry, event_bus

    try:
        remote_service = create_remote_service(config)
        membership_cache = create_membership_cache(config)
        load_registry = create_load_registry()
        event_bus = InProcessEventBus()

        route_meta = get_route_metadata()
        logger.info(
            f"Loyalty membership service started on port {SERVICE_PORT} "
            f"({route_meta['route_count']} routes, backend={config.backend})"
        )
        yield

    except Exception as e:
        logger.error(f"Failed to initialize loyalty membership service: {e}")
        raise
    finally:
        if event_bus:
            try:
                await event_bus.close()
            except Exception as e:
                logger.error(f"Error closing event bus: {e}")

        close = getattr(remote_service, "close", None)
        if close:
            await close()
            logger.info("Membership API client closed")


# Create FastAPI app
app = FastAPI(
    title="Loyalty Membership Service",
    description=SERVICE_METADATA["description"],
    version=SERVICE_METADATA["version"],
    lifespan=lifespan,
)


# ====================
# Dependency Injection
# ====================


async def get_remote_service() -> MembershipRemoteServiceProtocol:
    if not remote_service:
        raise HTTPException(status_code=503, detail="Membership backend not initialized")
    return remote_service


async def get_membership_cache() -> MembershipCache:
    if not membership_cache:
        raise HTTPException(status_code=503, detail="Membership cache not initialized")
    return membership_cache


async def get_load_registry() -> InflightLoadRegistry:
    if load_registry is None:
        raise HTTPException(status_code=503, detail="Load registry not initialized")
    return load_registry


async def get_event_bus() -> Optional[EventBusProtocol]:
    return event_bus


async def get_lifecycle_service(
    remote: MembershipRemoteServiceProtocol = Depends(get_remote_service),
    cache: MembershipCache = Depends(get_membership_cache),
    loads: InflightLoadRegistry = Depends(get_load_registry),
    bus: Optional[EventBusProtocol] = Depends(get_event_bus),
) -> MembershipLifecycleService:
    """Fresh lifecycle controller per request over the shared backend, cache and load registry"""
    return create_lifecycle_service(remote=remote, cache=cache, config=config, event_bus=bus, loads=loads)


async def load_customer(service: MembershipLifecycleService, customer_id: str) -> None:
    """Load a customer's membership, raising the recorded error on failure"""
    if not customer_id or not customer_id.strip():
        raise HTTPException(status_code=400, detail="customer_id is required")

    state = await service.load(customer_id)
    if state.error is not None:
        raise state.error


# ====================
# Health Check and Service Info
# ====================


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check"""
    dependencies = {}

    health = getattr(remote_service, "health_check", None)
    if remote_service is None:
        dependencies["membership_backend"] = "unhealthy"
    elif health is None:
        dependencies["membership_backend"] = "healthy"
    else:
        try:
            dependencies["membership_backend"] = "healthy" if await health() else "unhealthy"
        except Exception:
            dependencies["membership_backend"] = "unhealthy"

    dependencies["cache"] = "healthy" if membership_cache is not None else "unhealthy"

    return HealthResponse(
        status="healthy" if all(v == "healthy" for v in dependencies.values()) else "degraded",
        service=SERVICE_METADATA["service_name"],
        port=SERVICE_PORT,
        version=SERVICE_METADATA["version"],
        dependencies=dependencies,
    )


@app.get("/api/v1/memberships/info", response_model=ServiceInfo)
async def get_service_info():
    """Get service information"""
    return ServiceInfo(
        service=SERVICE_METADATA["service_name"],
        version=SERVICE_METADATA["version"],
        description=SERVICE_METADATA["description"],
        capabilities=SERVICE_METADATA["capabilities"],
    )


# ====================
# Status & Discount API
# ====================


@app.get("/api/v1/memberships/status", response_model=MembershipStatusResponse)
async def get_membership_status(
    customer_id: str = Query(default=""),
    service: MembershipLifecycleService = Depends(get_lifecycle_service)
):
    """Get membership status for a customer"""
    await load_customer(service, customer_id)

    membership = service.membership
    validation = service.validate_membership()
    is_active_member = membership is not None and validation.is_active

    return MembershipStatusResponse(
        is_member=is_active_member,
        tier=MEMBER_TIER if is_active_member else None,
        discount_rate=membership.benefits.service_discount_rate if is_active_member else 0,
        membership=membership,
        stats=service.stats,
        validation=validation,
        status_info=service.get_status_info(),
    )


@app.post("/api/v1/memberships/discount", response_model=DiscountCalculation)
async def calculate_discount(
    request: DiscountRequest,
    service: MembershipLifecycleService = Depends(get_lifecycle_service)
):
    """Calculate the member discount for a purchase"""
    await load_customer(service, request.customer_id)
    try:
        return service.calculate_discount(request.price, request.service_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ====================
# Lifecycle API
# ====================


@app.post("/api/v1/memberships/purchase", response_model=PurchaseResponse)
async def purchase_membership(
    request: PurchaseRequest,
    service: MembershipLifecycleService = Depends(get_lifecycle_service)
):
    """Create a pending membership and return its checkout URL"""
    checkout_url = await service.purchase(request.customer_id)
    return PurchaseResponse(
        success=True,
        checkout_url=checkout_url,
        membership=service.membership,
    )


@app.post("/api/v1/memberships/{membership_id}/renew", response_model=MembershipResponse)
async def renew_membership(
    membership_id: str,
    service: MembershipLifecycleService = Depends(get_lifecycle_service)
):
    """Renew membership"""
    membership = await service.renew(membership_id)
    return MembershipResponse(
        success=True,
        message="Membership renewed successfully",
        membership=membership,
    )


@app.post("/api/v1/memberships/{membership_id}/cancel", response_model=MembershipResponse)
async def cancel_membership(
    membership_id: str,
    service: MembershipLifecycleService = Depends(get_lifecycle_service)
):
    """Cancel membership"""
    membership = await service.cancel(membership_id)
    return MembershipResponse(
        success=True,
        message="Membership cancelled successfully",
        membership=membership,
    )


# ====================
# Error Handling
# ====================


@app.exception_handler(MembershipError)
async def membership_error_handler(request: Request, exc: MembershipError):
    """Translate membership errors to their HTTP status"""
    logger.warning(f"Membership error in {request.url.path}: [{exc.code.value}] {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict(), "message": exc.user_message()}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception in {request.url}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error occurred"}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "microservices.loyalty_membership_service.main:app",
        host="0.0.0.0",
        port=SERVICE_PORT,
        reload=config.debug,
        log_level=logging_config.log_level.lower(),
    )
