"""
Base Service Client for Remote HTTP APIs

Base class for HTTP clients: owns the httpx client, default headers,
bearer-token auth and timeouts.
"""

import httpx
import logging
from typing import Optional, Dict, Any
from abc import ABC

logger = logging.getLogger(__name__)


class BaseServiceClient(ABC):
    """
    Base class for service clients

    Handles:
    1. Base URL resolution
    2. Bearer-token authentication
    3. HTTP client lifecycle
    4. Timeouts

    Example:
        class MembershipApiClient(BaseServiceClient):
            service_name = "membership_api"
            default_port = 3000

            async def get_membership(self, customer_id: str):
                response = await self.get("/api/membership", params={"customerId": customer_id})
                return response.json()
    """

    # Subclasses define these
    service_name: str = None  # e.g. "membership_api"
    default_port: int = None  # e.g. 3000

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the service client

        Args:
            base_url: Service base URL (defaults to localhost:default_port)
            api_token: Bearer token sent on every request, if given
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        if not self.service_name:
            raise ValueError(f"{self.__class__.__name__} must define 'service_name'")

        if base_url:
            self.base_url = base_url.rstrip('/')
        else:
            self.base_url = f"http://localhost:{self.default_port}" if self.default_port else "http://localhost:8000"
            logger.warning(f"No base URL for {self.service_name}, using default: {self.base_url}")

        default_headers = self._build_default_headers(api_token)

        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers=default_headers,
            transport=transport
        )

        logger.debug(
            f"Initialized {self.service_name} client: {self.base_url} "
            f"(auth={'enabled' if api_token else 'disabled'})"
        )

    def _build_default_headers(self, api_token: Optional[str]) -> Dict[str, str]:
        """
        Build default request headers

        Args:
            api_token: Bearer token, if any

        Returns:
            Headers dict
        """
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"loyalty-membership-client/{self.service_name}"
        }

        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"

        return headers

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()
        logger.debug(f"Closed {self.service_name} client")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ========================================
    # HTTP method wrappers
    # ========================================

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        return await self.client.get(url, params=params, headers=headers)

    async def post(
        self,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        return await self.client.post(url, json=json, headers=headers)

    async def health_check(self) -> bool:
        """
        Health check

        Returns:
            Whether the service answered /health with 200
        """
        try:
            response = await self.get("/health")
            return response.status_code == 200
        except Exception as e:
            logger.warning(f"{self.service_name} health check failed: {e}")
            return False


__all__ = ["BaseServiceClient"]
