"""
Checkout session router.

- Trial checkout sessions
- Full (post-trial) checkout sessions
"""

from fastapi import APIRouter, status

from trial_checkout.apps.checkout.dependencies import Config, Provider
from trial_checkout.apps.checkout.schemas import CheckoutSessionResponse
from trial_checkout.apps.checkout.services import checkout_session_service
from trial_checkout.core.config import request_logger

router = APIRouter(prefix="/subscriptions")


@router.post(
    "/session-create",
    response_model=CheckoutSessionResponse,
    status_code=status.HTTP_200_OK,
    summary="Create trial checkout session",
    description="""
## Create Trial Checkout Session

Create a Stripe checkout session for the configured customer and plan with an
automatic trial.

### Request Body

None. Customer, plan and redirect domain come from configuration.

### Behavior

- Trial ends 3 days and 5 seconds after the request (Unix seconds)
- The subscription is tagged with metadata `{"trial": "auto"}`

### Response

| Field | Type | Description |
|-------|------|-------------|
| `id` | string | Stripe checkout session ID |
""",
)
async def create_trial_session(
    provider: Provider,
    config: Config,
) -> CheckoutSessionResponse:
    """Create a Stripe checkout session with an automatic trial."""
    request_logger.info(
        f"POST /subscriptions/session-create - customer={config.customer_id}"
    )
    checkout_session = await checkout_session_service.create_trial_session(
        provider, config
    )
    return CheckoutSessionResponse(id=checkout_session.id)


@router.post(
    "/session-update",
    response_model=CheckoutSessionResponse,
    status_code=status.HTTP_200_OK,
    summary="Create full checkout session",
    description="""
## Create Full Checkout Session

Create a Stripe checkout session for a full subscription that keeps the trial
window of the customer's existing subscription.

### Behavior

1. Retrieve the customer with its subscriptions
2. Sort them ascending by creation time and take the first (oldest) one
3. Copy its `trial_end` onto the new subscription, if it has one
4. Tag the subscription with metadata `{"trial": "full"}`

### Error Responses

| Status | Reason |
|--------|--------|
| `500 Internal Server Error` | Customer has no subscriptions |
| `502 Bad Gateway` | Stripe rejected a request |
""",
    responses={
        500: {
            "description": "Customer has no subscriptions",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "Customer has no subscriptions to upgrade.",
                        "customer_id": "cus_123",
                    }
                }
            },
        },
    },
)
async def create_full_session(
    provider: Provider,
    config: Config,
) -> CheckoutSessionResponse:
    """Create a Stripe checkout session that carries the existing trial end forward."""
    request_logger.info(
        f"POST /subscriptions/session-update - customer={config.customer_id}"
    )
    checkout_session = await checkout_session_service.create_full_session(
        provider, config
    )
    return CheckoutSessionResponse(id=checkout_session.id)


__all__ = ["router"]
