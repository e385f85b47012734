"""
Unit Tests for Membership API Client

Exercises the HTTP client against httpx.MockTransport: envelope parsing,
request shapes and error mapping.
"""

import json
import pytest
from datetime import datetime, timezone

import httpx

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.loyalty_membership_service.clients import MembershipApiClient
from microservices.loyalty_membership_service.models import ErrorCode, MembershipStatus
from microservices.loyalty_membership_service.protocols import MembershipError

from tests.contracts.loyalty_membership import LoyaltyMembershipTestDataFactory as factory


class RecordingHandler:
    """MockTransport handler returning queued responses and recording requests"""

    def __init__(self, status_code=200, body=None, raw=None, error=None):
        self.status_code = status_code
        self.body = body
        self.raw = raw
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.raw is not None:
            return httpx.Response(self.status_code, content=self.raw)
        return httpx.Response(self.status_code, json=self.body)


class SequenceHandler:
    """MockTransport handler answering from a list of exceptions and responses, last one repeated"""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes[min(len(self.requests), len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_client(handler, api_token="secret-token", retry_attempts=3):
    return MembershipApiClient(
        base_url="http://membership.test",
        api_token=api_token,
        transport=httpx.MockTransport(handler),
        retry_attempts=retry_attempts,
        retry_wait=0,
        retry_max_wait=0,
    )


# ====================
# Queries
# ====================


class TestGetMembership:

    @pytest.mark.asyncio
    async def test_parses_camel_case_payload(self):
        handler = RecordingHandler(body=factory.envelope(factory.make_membership_payload()))
        client = make_client(handler)

        membership = await client.get_membership("cust_123")

        assert membership.membership_id == "atp_0001"
        assert membership.customer_id == "cust_123"
        assert membership.status == MembershipStatus.ACTIVE
        assert membership.start_date == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert membership.expiration_date == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert float(membership.benefits.service_discount_rate) == 0.15
        assert "ems-training" in membership.benefits.eligible_service_ids
        await client.close()

    @pytest.mark.asyncio
    async def test_request_shape(self):
        handler = RecordingHandler(body=factory.envelope(None))
        client = make_client(handler)

        await client.get_membership("cust_123")

        request = handler.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/api/membership"
        assert request.url.params["customerId"] == "cust_123"
        assert request.headers["Authorization"] == "Bearer secret-token"
        await client.close()

    @pytest.mark.asyncio
    async def test_no_token_no_auth_header(self):
        handler = RecordingHandler(body=factory.envelope(None))
        client = make_client(handler, api_token=None)

        await client.get_membership("cust_123")

        assert "Authorization" not in handler.requests[0].headers
        await client.close()

    @pytest.mark.asyncio
    async def test_null_data_means_no_membership(self):
        client = make_client(RecordingHandler(body=factory.envelope(None)))
        assert await client.get_membership("cust_123") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_stats(self):
        handler = RecordingHandler(body=factory.envelope(factory.make_stats_payload()))
        client = make_client(handler)

        stats = await client.get_membership_stats("cust_123")

        assert float(stats.total_savings) == 45.5
        assert stats.services_used == 3
        assert stats.orders_with_free_delivery == 2
        assert stats.member_since == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert handler.requests[0].url.path == "/api/membership/stats"
        await client.close()

    @pytest.mark.asyncio
    async def test_null_stats_are_empty(self):
        client = make_client(RecordingHandler(body=factory.envelope(None)))

        stats = await client.get_membership_stats("cust_123")

        assert stats.services_used == 0
        await client.close()


# ====================
# Mutations
# ====================


class TestMutations:

    @pytest.mark.asyncio
    async def test_create_membership(self):
        payload = factory.make_membership_payload(status="pending")
        handler = RecordingHandler(body=factory.envelope(payload))
        client = make_client(handler)

        membership = await client.create_membership("cust_123")

        request = handler.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/membership"
        assert json.loads(request.content) == {"customerId": "cust_123"}
        assert membership.status == MembershipStatus.PENDING
        await client.close()

    @pytest.mark.asyncio
    async def test_renew_membership(self):
        payload = factory.make_membership_payload(expiration_date="2027-01-01T00:00:00.000Z")
        handler = RecordingHandler(body=factory.envelope(payload))
        client = make_client(handler)

        membership = await client.renew_membership("atp_0001")

        assert handler.requests[0].url.path == "/api/membership/renew"
        assert json.loads(handler.requests[0].content) == {
            "membershipId": "atp_0001",
            "extendFromCurrentExpiration": True,
        }
        assert membership.expiration_date.year == 2027
        await client.close()

    @pytest.mark.asyncio
    async def test_cancel_membership(self):
        payload = factory.make_membership_payload(status="cancelled")
        handler = RecordingHandler(body=factory.envelope(payload))
        client = make_client(handler)

        membership = await client.cancel_membership("atp_0001")

        assert handler.requests[0].url.path == "/api/membership/cancel"
        assert json.loads(handler.requests[0].content) == {"membershipId": "atp_0001"}
        assert membership.status == MembershipStatus.CANCELLED
        await client.close()


# ====================
# Error Mapping
# ====================


class TestErrorMapping:

    @pytest.mark.asyncio
    async def test_404_customer_not_found(self):
        client = make_client(RecordingHandler(status_code=404, body={"success": False}))

        with pytest.raises(MembershipError) as exc_info:
            await client.get_membership("cust_missing")

        assert exc_info.value.code == ErrorCode.CUSTOMER_NOT_FOUND
        assert exc_info.value.details["http_status"] == 404
        await client.close()

    @pytest.mark.asyncio
    async def test_402_payment_failed(self):
        body = {"success": False, "error": {"message": "Card declined"}}
        client = make_client(RecordingHandler(status_code=402, body=body))

        with pytest.raises(MembershipError) as exc_info:
            await client.create_membership("cust_123")

        assert exc_info.value.code == ErrorCode.PAYMENT_FAILED
        assert exc_info.value.message == "Card declined"
        assert str(exc_info.value) == "Card declined"
        await client.close()

    @pytest.mark.asyncio
    async def test_500_shopify_api_error(self):
        client = make_client(RecordingHandler(status_code=500, raw=b"Internal Server Error"))

        with pytest.raises(MembershipError) as exc_info:
            await client.get_membership("cust_123")

        assert exc_info.value.code == ErrorCode.SHOPIFY_API_ERROR
        assert exc_info.value.should_retry() is True
        await client.close()

    @pytest.mark.asyncio
    async def test_body_error_code_honored(self):
        body = factory.error_envelope("RENEWAL_FAILED", "Subscription locked")
        client = make_client(RecordingHandler(status_code=400, body=body))

        with pytest.raises(MembershipError) as exc_info:
            await client.renew_membership("atp_0001")

        assert exc_info.value.code == ErrorCode.RENEWAL_FAILED
        assert exc_info.value.message == "Subscription locked"
        await client.close()

    @pytest.mark.asyncio
    async def test_unknown_body_code_falls_back_to_status(self):
        body = factory.error_envelope("SOMETHING_ELSE", "Nope")
        client = make_client(RecordingHandler(status_code=404, body=body))

        with pytest.raises(MembershipError) as exc_info:
            await client.get_membership("cust_123")

        assert exc_info.value.code == ErrorCode.CUSTOMER_NOT_FOUND
        await client.close()

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope_with_200(self):
        body = factory.error_envelope("SHOPIFY_API_ERROR", "GraphQL throttled")
        client = make_client(RecordingHandler(status_code=200, body=body))

        with pytest.raises(MembershipError) as exc_info:
            await client.get_membership("cust_123")

        assert exc_info.value.code == ErrorCode.SHOPIFY_API_ERROR
        assert exc_info.value.message == "GraphQL throttled"
        await client.close()

    @pytest.mark.asyncio
    async def test_connection_error_is_network_error(self):
        handler = RecordingHandler(error=httpx.ConnectError("connection refused"))
        client = make_client(handler)

        with pytest.raises(MembershipError) as exc_info:
            await client.get_membership("cust_123")

        assert exc_info.value.code == ErrorCode.NETWORK_ERROR
        assert isinstance(exc_info.value.cause, httpx.ConnectError)
        await client.close()

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self):
        client = make_client(RecordingHandler(error=httpx.ReadTimeout("timed out")))

        with pytest.raises(MembershipError) as exc_info:
            await client.cancel_membership("atp_0001")

        assert exc_info.value.code == ErrorCode.NETWORK_ERROR
        await client.close()

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        client = make_client(RecordingHandler(status_code=200, raw=b"<html>oops</html>"))

        with pytest.raises(MembershipError) as exc_info:
            await client.get_membership("cust_123")

        assert exc_info.value.code == ErrorCode.SHOPIFY_API_ERROR
        await client.close()

    @pytest.mark.asyncio
    async def test_invalid_payload(self):
        payload = factory.make_membership_payload(expiration_date="2024-01-01T00:00:00.000Z")
        client = make_client(RecordingHandler(body=factory.envelope(payload)))

        with pytest.raises(MembershipError) as exc_info:
            await client.get_membership("cust_123")

        assert exc_info.value.code == ErrorCode.SHOPIFY_API_ERROR
        await client.close()

    @pytest.mark.asyncio
    async def test_404_body_message_is_error_text(self):
        body = factory.error_envelope("CUSTOMER_NOT_FOUND", "No customer cust_missing")
        client = make_client(RecordingHandler(status_code=404, body=body))

        with pytest.raises(MembershipError) as exc_info:
            await client.get_membership("cust_missing")

        assert exc_info.value.message == "No customer cust_missing"
        assert str(exc_info.value) == exc_info.value.message
        await client.close()


# ====================
# Retries
# ====================


class TestRetries:

    @pytest.mark.asyncio
    async def test_transient_network_error_then_success(self):
        payload = factory.make_membership_payload()
        handler = SequenceHandler(
            httpx.ConnectError("connection reset"),
            httpx.Response(200, json=factory.envelope(payload)),
        )
        client = make_client(handler)

        membership = await client.get_membership("cust_123")

        assert membership.membership_id == "atp_0001"
        assert len(handler.requests) == 2
        await client.close()

    @pytest.mark.asyncio
    async def test_server_error_then_success(self):
        handler = SequenceHandler(
            httpx.Response(503, content=b"Service Unavailable"),
            httpx.Response(500, content=b"Internal Server Error"),
            httpx.Response(200, json=factory.envelope(None)),
        )
        client = make_client(handler)

        assert await client.get_membership("cust_123") is None
        assert len(handler.requests) == 3
        await client.close()

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        handler = SequenceHandler(httpx.ConnectError("connection refused"))
        client = make_client(handler, retry_attempts=3)

        with pytest.raises(MembershipError) as exc_info:
            await client.get_membership_stats("cust_123")

        assert exc_info.value.code == ErrorCode.NETWORK_ERROR
        assert len(handler.requests) == 3
        await client.close()

    @pytest.mark.asyncio
    async def test_single_attempt_when_retries_disabled(self):
        handler = SequenceHandler(httpx.ConnectError("connection refused"))
        client = make_client(handler, retry_attempts=1)

        with pytest.raises(MembershipError):
            await client.get_membership("cust_123")

        assert len(handler.requests) == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_client_errors_not_retried(self):
        handler = SequenceHandler(httpx.Response(404, json={"success": False}))
        client = make_client(handler)

        with pytest.raises(MembershipError) as exc_info:
            await client.get_membership("cust_missing")

        assert exc_info.value.code == ErrorCode.CUSTOMER_NOT_FOUND
        assert len(handler.requests) == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_mutations_not_retried(self):
        handler = SequenceHandler(httpx.ConnectError("connection reset"))
        client = make_client(handler)

        with pytest.raises(MembershipError) as exc_info:
            await client.create_membership("cust_123")

        assert exc_info.value.code == ErrorCode.NETWORK_ERROR
        assert len(handler.requests) == 1
        await client.close()


class TestHealthCheck:

    @pytest.mark.asyncio
    async def test_healthy(self):
        async with make_client(RecordingHandler(body={"status": "ok"})) as client:
            assert await client.health_check() is True

    @pytest.mark.asyncio
    async def test_unreachable(self):
        async with make_client(RecordingHandler(error=httpx.ConnectError("down"))) as client:
            assert await client.health_check() is False
