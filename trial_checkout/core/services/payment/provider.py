"""
Payment provider capability.

Checkout services depend on this protocol rather than on the concrete
Stripe client, so the HTTP-backed ``Stripe`` class can be swapped for an
in-memory implementation in tests.
"""

from typing import Any, Literal, Protocol

from trial_checkout.core.services.payment.stripe.main import Stripe
from trial_checkout.core.services.payment.stripe.types import (
    CheckoutSession,
    CreatedParams,
    Customer,
    LineItem,
    Subscription,
    SubscriptionData,
    SubscriptionListResponse,
)


class PaymentProvider(Protocol):
    async def create_checkout_session(
        self,
        success_url: str,
        cancel_url: str,
        line_items: list[LineItem] | list[dict[str, Any]],
        *,
        idempotency_key: str | None = ...,
        mode: Literal["payment", "setup", "subscription"] = ...,
        customer: str | None = ...,
        payment_method_types: list[str] | None = ...,
        subscription_data: SubscriptionData | dict[str, Any] | None = ...,
    ) -> CheckoutSession: ...

    async def retrieve_customer(
        self,
        customer_id: str,
        *,
        expand: list[str] | None = ...,
    ) -> Customer: ...

    async def retrieve_subscription(self, subscription_id: str) -> Subscription: ...

    async def list_subscriptions(
        self,
        *,
        customer: str | None = ...,
        status: str | None = ...,
        created: CreatedParams | dict[str, int] | None = ...,
        limit: int = ...,
        starting_after: str | None = ...,
    ) -> SubscriptionListResponse: ...

    async def update_subscription(
        self,
        subscription_id: str,
        *,
        cancel_at: int,
    ) -> Subscription: ...

    async def cancel_subscription(self, subscription_id: str) -> Subscription: ...


def get_payment_provider() -> PaymentProvider:
    """FastAPI dependency returning the production provider (the Stripe REST client)."""
    return Stripe  # type: ignore[return-value]


__all__ = ["PaymentProvider", "get_payment_provider"]
