"""
Subscription-complete webhook.

Called once a checkout completes; reconciles the customer's trial
subscriptions so that only one trial stays alive.
"""

from typing import Any

from fastapi import APIRouter, Depends, status

from trial_checkout.apps.checkout.dependencies import (
    Config,
    Provider,
    verify_stripe_signature,
)
from trial_checkout.apps.checkout.schemas import SubscriptionCompleteEvent
from trial_checkout.apps.checkout.services import trial_reconciliation_service
from trial_checkout.core.config import webhook_logger


router = APIRouter(prefix="/webhook")


@router.post(
    "/subscription-complete",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(verify_stripe_signature)],
    summary="Reconcile trials after checkout",
    description="""
Receives the checkout-completed event and reconciles trial subscriptions.

**Processing Flow:**
1. Retrieve the subscription named by `data.object.subscription`
2. `trial: "auto"` subscription: schedule it to cancel at its trial end
3. Any other subscription: cancel every trialing subscription of the customer
   created before its trial start

Cancellations run concurrently. If some of them fail the response is
`502` and lists the outcome for every subscription.

**Note:** Signature verification is only enforced when
`STRIPE_WEBHOOK_VERIFY_SIGNATURE` is enabled.
    """,
    responses={
        200: {
            "description": "Reconciliation finished",
            "content": {"application/json": {"example": {}}},
        },
        400: {
            "description": "Missing or invalid Stripe-Signature header",
            "content": {
                "application/json": {
                    "example": {"detail": "Missing Stripe-Signature header"}
                }
            },
        },
        502: {
            "description": "Some subscriptions could not be cancelled",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "Failed to cancel 1 of 2 subscriptions.",
                        "results": [
                            {"subscription_id": "sub_1", "cancelled": True, "error": None},
                            {
                                "subscription_id": "sub_2",
                                "cancelled": False,
                                "error": "No such subscription: 'sub_2'",
                            },
                        ],
                    }
                }
            },
        },
    },
)
async def handle_subscription_complete(
    event: SubscriptionCompleteEvent,
    provider: Provider,
    config: Config,
) -> dict[str, Any]:
    """Reconcile trial subscriptions once a checkout has completed."""
    webhook_logger.info(
        f"Received subscription-complete webhook: {event.type} ({event.id}) "
        f"subscription={event.subscription_id}"
    )

    results = await trial_reconciliation_service.handle_subscription_complete(
        provider, config, event.subscription_id
    )

    webhook_logger.info(
        f"Reconciled subscription {event.subscription_id}: "
        f"{len(results)} trial subscription(s) cancelled"
    )
    return {}


__all__ = ["router"]
