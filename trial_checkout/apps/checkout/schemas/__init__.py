"""Pydantic schemas for the checkout app."""

from trial_checkout.apps.checkout.schemas.checkout import (
    CheckoutConfig,
    CheckoutSessionResponse,
    SubscriptionCompleteData,
    SubscriptionCompleteEvent,
    SubscriptionCompleteObject,
)

__all__ = [
    "CheckoutConfig",
    "CheckoutSessionResponse",
    "SubscriptionCompleteData",
    "SubscriptionCompleteEvent",
    "SubscriptionCompleteObject",
]
