"""
Test suite for the checkout session endpoints.

- POST /subscriptions/session-create
- POST /subscriptions/session-update

Run all tests:
    pytest tests/apps/checkout/routers/test_checkout_routes.py -v
"""

import httpx
import pytest

from trial_checkout.core.exceptions.types import (
    ProviderUnavailableException,
    StripeAPIException,
)


class TestSessionCreate:

    @pytest.mark.asyncio
    async def test_returns_session_id(self, client, fake_provider):
        response = await client.post("/subscriptions/session-create")

        assert response.status_code == 200
        assert response.json() == {"id": "cs_test_1"}
        (request,) = fake_provider.calls_named("create_checkout_session")
        assert request["subscription_data"].metadata == {"trial": "auto"}
        assert request["subscription_data"].trial_end is not None

    @pytest.mark.asyncio
    async def test_ignores_request_body(self, client, fake_provider):
        response = await client.post(
            "/subscriptions/session-create", json={"customer": "cus_someone_else"}
        )

        assert response.status_code == 200
        (request,) = fake_provider.calls_named("create_checkout_session")
        assert request["customer"] == "cus_test_123"

    @pytest.mark.asyncio
    async def test_provider_failure_is_5xx(self, client, fake_provider, monkeypatch):
        async def failing(*args, **kwargs):
            raise StripeAPIException(message="No such plan", upstream_status=400)

        monkeypatch.setattr(fake_provider, "create_checkout_session", failing)

        response = await client.post("/subscriptions/session-create")

        assert response.status_code == 502
        assert response.json()["detail"] == "No such plan"

    @pytest.mark.asyncio
    async def test_provider_unreachable_is_503(self, client, fake_provider, monkeypatch):
        async def failing(*args, **kwargs):
            raise ProviderUnavailableException()

        monkeypatch.setattr(fake_provider, "create_checkout_session", failing)

        response = await client.post("/subscriptions/session-create")

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_get_not_allowed(self, client):
        response = await client.get("/subscriptions/session-create")

        assert response.status_code == 405


class TestSessionUpdate:

    @pytest.mark.asyncio
    async def test_returns_session_id_and_carries_trial(self, client, fake_provider):
        fake_provider.add_subscription("sub_new", 300, trial_end=3_000)
        fake_provider.add_subscription("sub_old", 100, trial_end=1_000)

        response = await client.post("/subscriptions/session-update")

        assert response.status_code == 200
        assert response.json() == {"id": "cs_test_1"}
        (request,) = fake_provider.calls_named("create_checkout_session")
        assert request["subscription_data"].trial_end == 1_000
        assert request["subscription_data"].metadata == {"trial": "full"}

    @pytest.mark.asyncio
    async def test_no_subscriptions_is_500(self, client, fake_provider):
        response = await client.post("/subscriptions/session-update")

        assert response.status_code == 500
        assert response.json()["customer_id"] == "cus_test_123"
        assert fake_provider.calls_named("create_checkout_session") == []


def stripe_error(status_code: int, error_type: str, message: str) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={"error": {"type": error_type, "message": message}},
        headers={"Request-Id": f"req_{status_code}"},
    )


class TestStripeErrorsThroughRoutes:
    """Upstream Stripe failures always reach the caller as 5xx."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "upstream",
        [
            stripe_error(400, "invalid_request_error", "No such plan: 'plan_test_123'"),
            stripe_error(402, "card_error", "Your card was declined."),
            stripe_error(409, "idempotency_error", "Keys for idempotent requests can only be used once."),
            stripe_error(429, "rate_limit_error", "Too many requests"),
            stripe_error(500, "api_error", "Something went wrong"),
        ],
    )
    async def test_session_create_upstream_error_is_5xx(
        self, stripe_backed_client, stripe_stub, upstream
    ):
        stripe_stub.queue(upstream)

        response = await stripe_backed_client.post("/subscriptions/session-create")

        assert response.status_code >= 500
        assert response.status_code < 600

    @pytest.mark.asyncio
    async def test_session_create_retry_reuses_idempotency_key(
        self, stripe_backed_client, stripe_stub
    ):
        stripe_stub.queue(
            stripe_error(500, "api_error", "Something went wrong"),
            httpx.Response(200, json={"id": "cs_test_retry"}),
        )

        response = await stripe_backed_client.post("/subscriptions/session-create")

        assert response.status_code == 200
        assert response.json() == {"id": "cs_test_retry"}
        keys = [request.headers.get("Idempotency-Key") for request in stripe_stub.requests]
        assert len(keys) == 2
        assert keys[0] is not None
        assert keys[0] == keys[1]
