"""
Trial reconciliation service.

Runs when a checkout completes and keeps at most one trial subscription
alive for the customer:

- an auto-trial subscription is scheduled to cancel at its own trial end
- any other subscription cancels every trialing subscription of the
  customer created before its trial started
"""

import asyncio

from trial_checkout.apps.checkout.schemas import CheckoutConfig
from trial_checkout.apps.checkout.services.session import TRIAL_AUTO
from trial_checkout.core.config import webhook_logger
from trial_checkout.core.exceptions.types import PartialCancellationException
from trial_checkout.core.services.payment import PaymentProvider
from trial_checkout.core.services.payment.stripe.types import (
    CancellationResult,
    CreatedParams,
    Subscription,
)

LIST_PAGE_SIZE = 100


class TrialReconciliationService:
    """Service reconciling overlapping trial subscriptions after checkout."""

    async def handle_subscription_complete(
        self,
        provider: PaymentProvider,
        config: CheckoutConfig,
        subscription_id: str,
    ) -> list[CancellationResult]:
        """
        Reconcile trials for the subscription a checkout just produced.

        Args:
            provider: Payment provider holding the subscriptions.
            config: Fixed checkout configuration (customer).
            subscription_id: ID of the subscription named by the webhook.

        Returns:
            Per-subscription cancellation results. Empty for auto-trial
            subscriptions, which are only scheduled for cancellation.

        Raises:
            PartialCancellationException: If any stale trial could not be cancelled.
        """
        subscription = await provider.retrieve_subscription(subscription_id)
        webhook_logger.debug(f"Subscription {subscription_id}: {subscription}")

        if subscription.trial_tag == TRIAL_AUTO:
            await self.schedule_trial_cancellation(provider, subscription)
            return []

        return await self.cancel_stale_trials(provider, config, subscription)

    async def schedule_trial_cancellation(
        self,
        provider: PaymentProvider,
        subscription: Subscription,
    ) -> Subscription:
        """
        Schedule an auto-trial subscription to cancel when its trial ends.

        Re-scheduling the same ``cancel_at`` is harmless, so repeated
        deliveries of the same webhook are safe.
        """
        if subscription.trial_end is None:
            webhook_logger.warning(
                f"Auto-trial subscription {subscription.id} has no trial end; "
                f"cancellation not scheduled"
            )
            return subscription

        updated = await provider.update_subscription(
            subscription.id, cancel_at=subscription.trial_end
        )
        webhook_logger.info(
            f"Scheduled auto-trial subscription {subscription.id} to cancel at "
            f"{subscription.trial_end}"
        )
        return updated

    async def cancel_stale_trials(
        self,
        provider: PaymentProvider,
        config: CheckoutConfig,
        subscription: Subscription,
    ) -> list[CancellationResult]:
        """
        Cancel the customer's trialing subscriptions that predate ``subscription``'s trial.

        When ``subscription`` has no trial start, every trialing subscription
        of the customer is cancelled.
        """
        created = (
            CreatedParams(lt=subscription.trial_start)
            if subscription.trial_start
            else None
        )
        stale = await self.list_trialing_subscriptions(
            provider, config.customer_id, created
        )
        webhook_logger.info(
            f"Found {len(stale)} trialing subscription(s) to cancel for "
            f"customer {config.customer_id} (trial_start={subscription.trial_start})"
        )

        results = await self.cancel_all(provider, [sub.id for sub in stale])

        failed = [result.subscription_id for result in results if not result.cancelled]
        if failed:
            raise PartialCancellationException(
                failed=failed,
                results=[result.model_dump() for result in results],
            )
        return results

    async def list_trialing_subscriptions(
        self,
        provider: PaymentProvider,
        customer_id: str,
        created: CreatedParams | None = None,
    ) -> list[Subscription]:
        """List every trialing subscription of the customer, following pagination."""
        subscriptions: list[Subscription] = []
        starting_after: str | None = None

        while True:
            webhook_logger.debug(
                f"Listing trialing subscriptions: customer={customer_id} "
                f"created={created} starting_after={starting_after}"
            )
            page = await provider.list_subscriptions(
                customer=customer_id,
                status="trialing",
                created=created,
                limit=LIST_PAGE_SIZE,
                starting_after=starting_after,
            )
            subscriptions.extend(page.data)
            if not page.has_more or not page.data:
                break
            starting_after = page.data[-1].id

        return subscriptions

    async def cancel_all(
        self,
        provider: PaymentProvider,
        subscription_ids: list[str],
    ) -> list[CancellationResult]:
        """
        Cancel subscriptions concurrently.

        Every cancellation is issued and awaited regardless of the others'
        outcome; results come back in the order of ``subscription_ids``.
        """

        async def _cancel(subscription_id: str) -> None:
            webhook_logger.info(f"Cancelling subscription {subscription_id}")
            await provider.cancel_subscription(subscription_id)

        outcomes = await asyncio.gather(
            *(_cancel(subscription_id) for subscription_id in subscription_ids),
            return_exceptions=True,
        )

        results: list[CancellationResult] = []
        for subscription_id, outcome in zip(subscription_ids, outcomes):
            if isinstance(outcome, BaseException):
                webhook_logger.error(
                    f"Failed to cancel subscription {subscription_id}: "
                    f"{type(outcome).__name__} - {outcome}"
                )
                results.append(
                    CancellationResult(
                        subscription_id=subscription_id,
                        cancelled=False,
                        error=str(outcome),
                    )
                )
            else:
                results.append(
                    CancellationResult(subscription_id=subscription_id, cancelled=True)
                )
        return results


trial_reconciliation_service = TrialReconciliationService()


__all__ = [
    "LIST_PAGE_SIZE",
    "TrialReconciliationService",
    "trial_reconciliation_service",
]
