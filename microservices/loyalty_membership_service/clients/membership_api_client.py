"""
Membership API Client

HTTP client for the remote (Shopify-backed) membership API. Parses
responses into models once and maps every failure to a MembershipError.

Response envelope: {"success": bool, "data": ..., "error": {"code", "message"}}
"""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from core.service_client_base import BaseServiceClient

from ..models import ErrorCode, Membership, MembershipStats
from ..protocols import (
    MembershipError,
    customer_not_found,
    network_error,
    payment_failed,
    shopify_api_error,
)

logger = logging.getLogger(__name__)


STATUS_CODE_ERRORS = {
    404: ErrorCode.CUSTOMER_NOT_FOUND,
    402: ErrorCode.PAYMENT_FAILED,
}


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, MembershipError) and error.should_retry()


class MembershipApiClient(BaseServiceClient):
    """Remote membership service over HTTP"""

    service_name = "membership_api"
    default_port = 3000

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_attempts: int = 3,
        retry_wait: float = 1.0,
        retry_max_wait: float = 10.0
    ):
        """
        Initialize the membership API client

        Args:
            retry_attempts: Attempts per read before giving up (1 disables retries)
            retry_wait: Base of the exponential wait between read attempts, in seconds
            retry_max_wait: Upper bound of the wait between read attempts, in seconds
        """
        super().__init__(base_url=base_url, api_token=api_token, timeout=timeout, transport=transport)
        self.retry_attempts = max(1, retry_attempts)
        self.retry_wait = retry_wait
        self.retry_max_wait = retry_max_wait

    # ====================
    # Response handling
    # ====================

    def _error_from_body(self, response: httpx.Response, body: Any) -> MembershipError:
        error_body = body.get("error") if isinstance(body, dict) else None
        code = None
        message = None
        if isinstance(error_body, dict):
            message = error_body.get("message")
            try:
                code = ErrorCode(error_body.get("code"))
            except ValueError:
                code = None

        if code is None:
            code = STATUS_CODE_ERRORS.get(response.status_code, ErrorCode.SHOPIFY_API_ERROR)

        if code == ErrorCode.CUSTOMER_NOT_FOUND:
            error = customer_not_found(message=message)
        elif code == ErrorCode.PAYMENT_FAILED:
            error = payment_failed(reason=message, message=message)
        elif code == ErrorCode.SHOPIFY_API_ERROR:
            error = shopify_api_error(message or f"Membership API returned {response.status_code}")
        else:
            error = MembershipError(
                message or f"Membership API returned {response.status_code}",
                code,
                status_code=response.status_code if response.status_code >= 400 else 400,
            )

        error.details.setdefault("http_status", response.status_code)
        return error

    def _unwrap(self, response: httpx.Response) -> Any:
        """Return the envelope's data or raise the mapped MembershipError"""
        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success and isinstance(body, dict) and body.get("success"):
            return body.get("data")

        if response.is_success and not isinstance(body, dict):
            raise shopify_api_error("Malformed response from membership API")

        raise self._error_from_body(response, body)

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Any:
        try:
            if method == "GET":
                response = await self.get(path, params=params)
            else:
                response = await self.post(path, json=json)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            logger.error(f"Membership API {method} {path} failed: {e}")
            raise network_error(cause=e)

        return self._unwrap(response)

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Send a request; reads are retried with exponential backoff on retryable errors"""
        if method != "GET" or self.retry_attempts == 1:
            return await self._send(method, path, params=params, json=json)

        @retry(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_wait, min=self.retry_wait, max=self.retry_max_wait),
            retry=retry_if_exception(_is_retryable),
            before_sleep=lambda state: logger.warning(
                f"Retrying {method} {path} (attempt {state.attempt_number} failed: {state.outcome.exception()})"
            ),
            reraise=True
        )
        async def _retry_wrapper():
            return await self._send(method, path, params=params)

        try:
            return await _retry_wrapper()
        except MembershipError as e:
            if _is_retryable(e):
                logger.error(f"Membership API {method} {path} failed after {self.retry_attempts} attempts: {e}")
            raise

    @staticmethod
    def _parse(model, data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise shopify_api_error(f"Invalid {model.__name__} payload from membership API", cause=e)

    # ====================
    # Queries
    # ====================

    async def get_membership(self, customer_id: str) -> Optional[Membership]:
        data = await self._request("GET", "/api/membership", params={"customerId": customer_id})
        if data is None:
            return None
        return self._parse(Membership, data)

    async def get_membership_stats(self, customer_id: str) -> MembershipStats:
        data = await self._request("GET", "/api/membership/stats", params={"customerId": customer_id})
        if data is None:
            return MembershipStats()
        return self._parse(MembershipStats, data)

    # ====================
    # Mutations
    # ====================

    async def create_membership(self, customer_id: str) -> Membership:
        data = await self._request("POST", "/api/membership", json={"customerId": customer_id})
        return self._parse(Membership, data)

    async def renew_membership(
        self,
        membership_id: str,
        extend_from_current_expiration: bool = True
    ) -> Membership:
        data = await self._request(
            "POST",
            "/api/membership/renew",
            json={
                "membershipId": membership_id,
                "extendFromCurrentExpiration": extend_from_current_expiration,
            },
        )
        return self._parse(Membership, data)

    async def cancel_membership(self, membership_id: str) -> Membership:
        data = await self._request("POST", "/api/membership/cancel", json={"membershipId": membership_id})
        return self._parse(Membership, data)


__all__ = ["MembershipApiClient"]
