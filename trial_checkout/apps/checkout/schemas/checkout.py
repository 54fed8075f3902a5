"""
Pydantic schemas for checkout session and webhook endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field

from trial_checkout.core.config import Settings


class CheckoutConfig(BaseModel):
    """Fixed single-tenant checkout configuration handed to each service call."""

    model_config = ConfigDict(frozen=True)

    customer_id: str = Field(..., description="Stripe customer every session is created for")
    plan_id: str = Field(..., description="Stripe plan/price ID purchased by every session")
    client_domain: str = Field(..., description="Base URL of the client the customer returns to")

    @property
    def success_url(self) -> str:
        return f"{self.client_domain.rstrip('/')}/success"

    @property
    def cancel_url(self) -> str:
        return f"{self.client_domain.rstrip('/')}/cancel"

    @classmethod
    def from_settings(cls, settings: Settings) -> "CheckoutConfig":
        return cls(
            customer_id=settings.STRIPE_CUSTOMER_ID,
            plan_id=settings.STRIPE_PLAN_ID,
            client_domain=settings.CLIENT_DOMAIN,
        )


class CheckoutSessionResponse(BaseModel):
    """Schema for a created checkout session."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"id": "cs_test_a1b2c3d4e5"}}
    )

    id: str = Field(..., description="Stripe checkout session ID")


class SubscriptionCompleteObject(BaseModel):
    """The checkout session carried by the event; only the subscription ID is read."""

    model_config = ConfigDict(extra="allow")

    subscription: str = Field(..., description="ID of the subscription the checkout produced")


class SubscriptionCompleteData(BaseModel):
    model_config = ConfigDict(extra="allow")

    object: SubscriptionCompleteObject


class SubscriptionCompleteEvent(BaseModel):
    """Schema for the subscription-complete webhook payload."""

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "id": "evt_1ABC",
                "type": "checkout.session.completed",
                "data": {"object": {"subscription": "sub_1ABC"}},
            }
        },
    )

    id: str | None = Field(None, description="Stripe event ID")
    type: str | None = Field(None, description="Stripe event type")
    data: SubscriptionCompleteData

    @property
    def subscription_id(self) -> str:
        return self.data.object.subscription


__all__ = [
    "CheckoutConfig",
    "CheckoutSessionResponse",
    "SubscriptionCompleteObject",
    "SubscriptionCompleteData",
    "SubscriptionCompleteEvent",
]
