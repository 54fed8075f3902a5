"""
Checkout session service.

Builds Stripe checkout sessions for the configured customer:

- a trial session, tagged ``trial: "auto"``, whose trial ends three days
  (plus a five second grace) after the request
- a full session, tagged ``trial: "full"``, that keeps the trial end of the
  customer's selected existing subscription
"""

import time
from uuid import uuid4

from trial_checkout.apps.checkout.schemas import CheckoutConfig
from trial_checkout.core.config import checkout_logger
from trial_checkout.core.exceptions.types import NoSubscriptionsException
from trial_checkout.core.services.payment import PaymentProvider
from trial_checkout.core.services.payment.stripe.types import (
    CheckoutSession,
    LineItem,
    Subscription,
    SubscriptionData,
)

TRIAL_AUTO = "auto"
TRIAL_FULL = "full"

# 3 days + 5 seconds, in milliseconds
TRIAL_DURATION_MS = (1000 * 60 * 60 * 24 * 3) + 5000

PAYMENT_METHOD_TYPES = ["card"]


def current_time_ms() -> int:
    return int(time.time() * 1000)


def compute_trial_end(now_ms: int) -> int:
    """Return the Unix-seconds trial end for a trial starting at ``now_ms``."""
    return (now_ms + TRIAL_DURATION_MS) // 1000


def select_carry_over_subscription(
    subscriptions: list[Subscription],
    customer_id: str | None = None,
) -> Subscription:
    """
    Pick the subscription whose trial end is carried into a full checkout.

    Subscriptions are sorted ascending by ``created`` (stable, so equal
    timestamps keep their original order) and the first entry is returned,
    i.e. the oldest subscription.

    Raises:
        NoSubscriptionsException: If ``subscriptions`` is empty.
    """
    if not subscriptions:
        raise NoSubscriptionsException(customer_id=customer_id)

    ordered = sorted(subscriptions, key=lambda sub: sub.created)
    return ordered[0]


class CheckoutSessionService:
    """Service for creating trial and full checkout sessions."""

    async def create_trial_session(
        self,
        provider: PaymentProvider,
        config: CheckoutConfig,
        now_ms: int | None = None,
    ) -> CheckoutSession:
        """
        Create a checkout session for a new subscription with an automatic trial.

        Args:
            provider: Payment provider to submit the session to.
            config: Fixed customer, plan and client domain.
            now_ms: Current time in epoch milliseconds. Defaults to the wall clock.

        Returns:
            The created CheckoutSession.
        """
        if now_ms is None:
            now_ms = current_time_ms()

        subscription_data = SubscriptionData(
            trial_end=compute_trial_end(now_ms),
            metadata={"trial": TRIAL_AUTO},
        )
        return await self._create_session(provider, config, subscription_data)

    async def create_full_session(
        self,
        provider: PaymentProvider,
        config: CheckoutConfig,
    ) -> CheckoutSession:
        """
        Create a checkout session for a full subscription.

        If the selected existing subscription has a trial end, the new
        subscription continues that trial window instead of starting a new
        one. Otherwise ``trial_end`` is left out of the request.

        Args:
            provider: Payment provider to submit the session to.
            config: Fixed customer, plan and client domain.

        Returns:
            The created CheckoutSession.

        Raises:
            NoSubscriptionsException: If the customer has no subscriptions.
        """
        customer = await provider.retrieve_customer(
            config.customer_id, expand=["subscriptions"]
        )
        subscriptions = customer.subscriptions.data if customer.subscriptions else []
        checkout_logger.debug(
            f"Customer {customer.id} subscriptions: "
            f"{[(sub.id, sub.created, sub.trial_end) for sub in subscriptions]}"
        )

        selected = select_carry_over_subscription(subscriptions, customer.id)

        subscription_data = SubscriptionData(metadata={"trial": TRIAL_FULL})
        if selected.trial_end:
            subscription_data.trial_end = selected.trial_end
            checkout_logger.info(
                f"Carrying trial end {selected.trial_end} over from {selected.id}"
            )
        else:
            checkout_logger.info(
                f"Subscription {selected.id} has no trial; full session starts without one"
            )

        return await self._create_session(provider, config, subscription_data)

    async def _create_session(
        self,
        provider: PaymentProvider,
        config: CheckoutConfig,
        subscription_data: SubscriptionData,
    ) -> CheckoutSession:
        # One key per checkout request; client retries reuse it so Stripe
        # never creates a second session for the same request
        idempotency_key = str(uuid4())
        checkout_logger.debug(
            f"Checkout request: customer={config.customer_id} plan={config.plan_id} "
            f"subscription_data={subscription_data.model_dump(exclude_none=True)} "
            f"idempotency_key={idempotency_key}"
        )

        checkout_session = await provider.create_checkout_session(
            success_url=config.success_url,
            cancel_url=config.cancel_url,
            line_items=[LineItem(price=config.plan_id, quantity=1)],
            mode="subscription",
            customer=config.customer_id,
            payment_method_types=PAYMENT_METHOD_TYPES,
            subscription_data=subscription_data,
            idempotency_key=idempotency_key,
        )

        checkout_logger.info(
            f"Created checkout session {checkout_session.id} "
            f"(trial={subscription_data.metadata.get('trial') if subscription_data.metadata else None}) "
            f"for customer {config.customer_id}"
        )
        return checkout_session


checkout_session_service = CheckoutSessionService()


__all__ = [
    "TRIAL_AUTO",
    "TRIAL_FULL",
    "TRIAL_DURATION_MS",
    "PAYMENT_METHOD_TYPES",
    "current_time_ms",
    "compute_trial_end",
    "select_carry_over_subscription",
    "CheckoutSessionService",
    "checkout_session_service",
]
