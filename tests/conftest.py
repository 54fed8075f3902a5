"""
Pytest configuration and core fixtures.

Provides an in-memory payment provider that stands in for Stripe, and an
HTTP client wired to the FastAPI app with that provider injected.
"""

import os
from typing import Any, AsyncGenerator
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

TEST_CUSTOMER_ID = "cus_test_123"
TEST_PLAN_ID = "plan_test_123"
TEST_CLIENT_DOMAIN = "https://client.example.com"


def pytest_configure(config):
    """Configure the environment before the application settings are loaded."""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["DEBUG"] = "true"
    os.environ["STRIPE_API_KEY"] = "sk_test_123"
    os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_123"
    os.environ["STRIPE_WEBHOOK_VERIFY_SIGNATURE"] = "false"
    os.environ["STRIPE_MAX_ATTEMPTS"] = "3"
    os.environ["STRIPE_CUSTOMER_ID"] = TEST_CUSTOMER_ID
    os.environ["STRIPE_PLAN_ID"] = TEST_PLAN_ID
    os.environ["CLIENT_DOMAIN"] = TEST_CLIENT_DOMAIN
    os.environ["SENTRY_DSN"] = ""


class FakePaymentProvider:
    """In-memory payment provider recording every call it receives."""

    WRITE_CALLS = {
        "create_checkout_session",
        "update_subscription",
        "cancel_subscription",
    }

    def __init__(self, customer_id: str = TEST_CUSTOMER_ID):
        from trial_checkout.core.services.payment.stripe.types import Subscription

        self.customer_id = customer_id
        self.subscriptions: dict[str, Subscription] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.fail_cancel: set[str] = set()
        self._session_count = 0

    def add_subscription(
        self,
        subscription_id: str,
        created: int,
        *,
        status: str = "trialing",
        trial: str | None = None,
        trial_start: int | None = None,
        trial_end: int | None = None,
        customer: str | None = None,
    ):
        from trial_checkout.core.services.payment.stripe.types import Subscription

        subscription = Subscription(
            id=subscription_id,
            customer=customer or self.customer_id,
            status=status,
            created=created,
            trial_start=trial_start,
            trial_end=trial_end,
            metadata={"trial": trial} if trial else {},
        )
        self.subscriptions[subscription_id] = subscription
        return subscription

    def calls_named(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for call, kwargs in self.calls if call == name]

    @property
    def write_calls(self) -> list[tuple[str, dict[str, Any]]]:
        return [call for call in self.calls if call[0] in self.WRITE_CALLS]

    def _not_found(self, subscription_id: str):
        from trial_checkout.core.exceptions.types import StripeAPIException

        return StripeAPIException(
            message=f"No such subscription: '{subscription_id}'",
            error_type="invalid_request_error",
            stripe_code="resource_missing",
            upstream_status=404,
        )

    async def create_checkout_session(
        self,
        success_url: str,
        cancel_url: str,
        line_items,
        *,
        mode: str = "subscription",
        customer: str | None = None,
        payment_method_types: list[str] | None = None,
        subscription_data=None,
        idempotency_key: str | None = None,
    ):
        from trial_checkout.core.services.payment.stripe.types import CheckoutSession

        self.calls.append(
            (
                "create_checkout_session",
                {
                    "success_url": success_url,
                    "cancel_url": cancel_url,
                    "line_items": line_items,
                    "mode": mode,
                    "customer": customer,
                    "payment_method_types": payment_method_types,
                    "subscription_data": subscription_data,
                    "idempotency_key": idempotency_key,
                },
            )
        )
        self._session_count += 1
        return CheckoutSession(
            id=f"cs_test_{self._session_count}",
            mode=mode,
            customer=customer,
            success_url=success_url,
            cancel_url=cancel_url,
            status="open",
        )

    async def retrieve_customer(self, customer_id: str, *, expand=None):
        from trial_checkout.core.services.payment.stripe.types import (
            Customer,
            SubscriptionListResponse,
        )

        self.calls.append(("retrieve_customer", {"customer_id": customer_id, "expand": expand}))
        subscriptions = None
        if expand and "subscriptions" in expand:
            subscriptions = SubscriptionListResponse(
                data=[
                    sub
                    for sub in self.subscriptions.values()
                    if sub.customer == customer_id
                ],
                url=f"/v1/customers/{customer_id}/subscriptions",
            )
        return Customer(id=customer_id, created=1_600_000_000, subscriptions=subscriptions)

    async def retrieve_subscription(self, subscription_id: str):
        self.calls.append(("retrieve_subscription", {"subscription_id": subscription_id}))
        if subscription_id not in self.subscriptions:
            raise self._not_found(subscription_id)
        return self.subscriptions[subscription_id]

    async def list_subscriptions(
        self,
        *,
        customer: str | None = None,
        status: str | None = None,
        created=None,
        limit: int = 10,
        starting_after: str | None = None,
    ):
        from trial_checkout.core.services.payment.stripe.types import (
            CreatedParams,
            SubscriptionListResponse,
        )

        self.calls.append(
            (
                "list_subscriptions",
                {
                    "customer": customer,
                    "status": status,
                    "created": created,
                    "limit": limit,
                    "starting_after": starting_after,
                },
            )
        )
        if isinstance(created, dict):
            created = CreatedParams(**created)

        matches = [
            sub
            for sub in self.subscriptions.values()
            if (customer is None or sub.customer == customer)
            and (status is None or sub.status == status)
            and (created is None or created.lt is None or sub.created < created.lt)
        ]
        if starting_after is not None:
            ids = [sub.id for sub in matches]
            matches = matches[ids.index(starting_after) + 1 :]

        return SubscriptionListResponse(
            data=matches[:limit],
            has_more=len(matches) > limit,
            url="/v1/subscriptions",
        )

    async def update_subscription(self, subscription_id: str, *, cancel_at=None, **kwargs):
        self.calls.append(
            ("update_subscription", {"subscription_id": subscription_id, "cancel_at": cancel_at})
        )
        if subscription_id not in self.subscriptions:
            raise self._not_found(subscription_id)
        subscription = self.subscriptions[subscription_id].model_copy(
            update={"cancel_at": cancel_at}
        )
        self.subscriptions[subscription_id] = subscription
        return subscription

    async def cancel_subscription(self, subscription_id: str, **kwargs):
        self.calls.append(("cancel_subscription", {"subscription_id": subscription_id}))
        if subscription_id in self.fail_cancel or subscription_id not in self.subscriptions:
            raise self._not_found(subscription_id)
        subscription = self.subscriptions[subscription_id].model_copy(
            update={"status": "canceled"}
        )
        self.subscriptions[subscription_id] = subscription
        return subscription


@pytest.fixture
def fake_provider() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture
def checkout_config():
    from trial_checkout.apps.checkout.schemas import CheckoutConfig

    return CheckoutConfig(
        customer_id=TEST_CUSTOMER_ID,
        plan_id=TEST_PLAN_ID,
        client_domain=TEST_CLIENT_DOMAIN,
    )


@pytest.fixture
def app():
    from trial_checkout.main import app

    return app


@pytest.fixture
async def client(app, fake_provider) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client with the in-memory provider injected."""
    from trial_checkout.core.services.payment import get_payment_provider

    app.dependency_overrides[get_payment_provider] = lambda: fake_provider

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_payment_provider, None)


class StripeStub:
    """Answers Stripe REST calls from a queue; the last response repeats."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response] = []

    def queue(self, *responses: httpx.Response) -> None:
        self.responses.extend(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return httpx.Response(
            response.status_code, content=response.content, headers=response.headers
        )


@pytest.fixture
def stripe_stub() -> StripeStub:
    return StripeStub()


@pytest.fixture
async def stripe_backed_client(app, stripe_stub) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client with the real Stripe client behind a stub transport."""
    from trial_checkout.core.services.payment import get_payment_provider
    from trial_checkout.core.services.payment.stripe.main import Stripe

    Stripe._client = httpx.AsyncClient(
        base_url="https://api.stripe.test",
        transport=httpx.MockTransport(stripe_stub),
    )
    app.dependency_overrides[get_payment_provider] = lambda: Stripe

    try:
        with patch(
            "trial_checkout.core.services.payment.stripe.main.asyncio.sleep",
            new_callable=AsyncMock,
        ):
            async with AsyncClient(
                transport=ASGITransport(app=app),
                base_url="http://test",
            ) as ac:
                yield ac
    finally:
        app.dependency_overrides.pop(get_payment_provider, None)
        await Stripe.aclose()
