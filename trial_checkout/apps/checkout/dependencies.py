"""FastAPI dependencies for the checkout app."""

from typing import Annotated

from fastapi import Depends, Request

from trial_checkout.apps.checkout.schemas import CheckoutConfig
from trial_checkout.core.config import get_settings, webhook_logger
from trial_checkout.core.exceptions.types import BadRequestException
from trial_checkout.core.services.payment import PaymentProvider, get_payment_provider
from trial_checkout.core.services.payment.stripe.main import Stripe


def get_checkout_config() -> CheckoutConfig:
    return CheckoutConfig.from_settings(get_settings())


async def verify_stripe_signature(request: Request) -> None:
    """
    Verify the Stripe-Signature header when signature verification is enabled.

    Raises:
        BadRequestException: If the header is missing or the signature is invalid.
    """
    if not get_settings().STRIPE_WEBHOOK_VERIFY_SIGNATURE:
        return

    sig_header = request.headers.get("Stripe-Signature")
    if not sig_header:
        webhook_logger.warning("Webhook received without Stripe-Signature header")
        raise BadRequestException("Missing Stripe-Signature header")

    payload = await request.body()
    Stripe.verify_webhook_signature(payload, {"Stripe-Signature": sig_header})


Provider = Annotated[PaymentProvider, Depends(get_payment_provider)]
Config = Annotated[CheckoutConfig, Depends(get_checkout_config)]


__all__ = [
    "get_checkout_config",
    "verify_stripe_signature",
    "Provider",
    "Config",
]
