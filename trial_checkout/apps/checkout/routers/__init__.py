"""API routers for the checkout app."""

from trial_checkout.apps.checkout.routers.subscription import router as subscription_router
from trial_checkout.apps.checkout.routers.webhook import router as webhook_router

__all__ = ["subscription_router", "webhook_router"]
