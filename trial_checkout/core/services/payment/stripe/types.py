from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, Field


def coerce_timestamp_to_datetime(ts: int) -> datetime:
    """Converts a Unix timestamp (in seconds) to an aware UTC datetime."""
    if isinstance(ts, int):
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    return ts


class ListResponse(BaseModel):
    has_more: bool = False
    url: str = ""


class CreatedParams(BaseModel):
    """Range filter on an object's creation timestamp (Unix seconds)."""

    gt: int | None = None
    gte: int | None = None
    lt: int | None = None
    lte: int | None = None


SubscriptionStatus = Literal[
    "incomplete",
    "incomplete_expired",
    "trialing",
    "active",
    "past_due",
    "canceled",
    "unpaid",
    "paused",
]


class Subscription(BaseModel):
    """Stripe Subscription object, limited to the fields checkout reconciliation reads."""

    id: Annotated[str, Field(description="Unique identifier for the object.")]
    object: Annotated[
        Literal["subscription"],
        Field(
            description="String representing the object's type. Always 'subscription'."
        ),
    ] = "subscription"
    customer: Annotated[
        str | None,
        Field(description="ID of the customer who owns the subscription."),
    ] = None
    status: Annotated[
        SubscriptionStatus | None,
        Field(description="Possible values are `incomplete`, `trialing`, `active`, ..."),
    ] = None
    # Timestamps are kept as Unix seconds so they can be sent back to Stripe as-is
    created: Annotated[
        int,
        Field(
            description="Time at which the object was created. Measured in seconds since the Unix epoch."
        ),
    ]
    trial_start: Annotated[
        int | None,
        Field(description="If the subscription has a trial, the beginning of that trial."),
    ] = None
    trial_end: Annotated[
        int | None,
        Field(description="If the subscription has a trial, the end of that trial."),
    ] = None
    cancel_at: Annotated[
        int | None,
        Field(
            description="A date in the future at which the subscription will automatically get canceled."
        ),
    ] = None
    cancel_at_period_end: Annotated[
        bool,
        Field(
            description="Whether this subscription will cancel at the end of the current billing period."
        ),
    ] = False
    canceled_at: Annotated[
        int | None,
        Field(description="If the subscription has been canceled, the date of that cancellation."),
    ] = None
    metadata: Annotated[
        dict[str, str],
        Field(description="Set of key-value pairs attached to the object."),
    ] = {}
    livemode: Annotated[
        bool,
        Field(
            description="Has the value `true` if the object exists in live mode or the value `false` if the object exists in test mode."
        ),
    ] = False

    @property
    def trial_tag(self) -> str | None:
        """Provenance tag written by checkout (``"auto"`` or ``"full"``)."""
        return self.metadata.get("trial")


class SubscriptionListResponse(ListResponse):
    object: Literal["list"] = "list"
    data: list[Subscription] = []


class Customer(BaseModel):
    """Simplified Stripe Customer object with essential fields."""

    id: Annotated[str, Field(description="Unique identifier for the customer.")]
    object: Annotated[
        Literal["customer"],
        Field(description="String representing the object's type. Always 'customer'."),
    ] = "customer"
    email: Annotated[
        str | None,
        Field(description="The customer's email address."),
    ] = None
    name: Annotated[
        str | None,
        Field(description="The customer's full name or business name."),
    ] = None
    created: Annotated[
        datetime,
        BeforeValidator(coerce_timestamp_to_datetime),
        Field(
            description="Time at which the object was created. Measured in seconds since the Unix epoch."
        ),
    ]
    metadata: Annotated[
        dict[str, Any],
        Field(description="Set of key-value pairs attached to the object."),
    ] = {}
    subscriptions: Annotated[
        SubscriptionListResponse | None,
        Field(
            description="The customer's current subscriptions. Only present when expanded."
        ),
    ] = None
    livemode: Annotated[
        bool,
        Field(
            description="Has the value true if the object exists in live mode or the value false if the object exists in test mode."
        ),
    ] = False


class LineItem(BaseModel):
    """A checkout line item referencing an existing price (or legacy plan) ID."""

    price: Annotated[
        str,
        Field(description="The ID of the Price or Plan object."),
    ]
    quantity: Annotated[
        int,
        Field(description="The quantity of the line item being purchased."),
    ] = 1


class SubscriptionData(BaseModel):
    """A subset of parameters to be passed to subscription creation for Checkout Sessions in subscription mode."""

    metadata: Annotated[
        dict[str, Any] | None,
        Field(description="Set of key-value pairs that you can attach to an object."),
    ] = None
    trial_end: Annotated[
        int | None,
        Field(
            description="Unix timestamp representing the end of the trial period the customer will get before being charged for the first time."
        ),
    ] = None


class CheckoutSession(BaseModel):
    """Stripe Checkout Session object, limited to the fields this service reads."""

    id: Annotated[str, Field(description="Unique identifier for the object.")]
    object: Annotated[
        Literal["checkout.session"],
        Field(
            description="String representing the object's type. Always 'checkout.session'."
        ),
    ] = "checkout.session"
    mode: Annotated[
        Literal["payment", "setup", "subscription"],
        Field(description="The mode of the Checkout Session."),
    ] = "subscription"
    created: Annotated[
        datetime | None,
        BeforeValidator(coerce_timestamp_to_datetime),
        Field(description="Time at which the object was created."),
    ] = None
    expires_at: Annotated[
        datetime | None,
        BeforeValidator(coerce_timestamp_to_datetime),
        Field(description="The timestamp at which the Checkout Session will expire."),
    ] = None
    url: Annotated[
        str | None,
        Field(description="The URL to the Checkout Session."),
    ] = None
    success_url: Annotated[
        str | None,
        Field(description="The URL the customer will be directed to after the payment is successful."),
    ] = None
    cancel_url: Annotated[
        str | None,
        Field(description="The URL the customer will be directed to if they decide to cancel payment."),
    ] = None
    customer: Annotated[
        str | None,
        Field(description="The ID of the customer for this Session."),
    ] = None
    subscription: Annotated[
        str | None,
        Field(description="The ID of the subscription for Checkout Sessions in subscription mode."),
    ] = None
    status: Annotated[
        Literal["complete", "expired", "open"] | None,
        Field(description="The status of the Checkout Session."),
    ] = None
    metadata: Annotated[
        dict[str, Any],
        Field(description="Set of key-value pairs attached to the object."),
    ] = {}
    livemode: Annotated[
        bool,
        Field(
            description="Has the value `true` if the object exists in live mode or the value `false` if the object exists in test mode."
        ),
    ] = False


class CancellationResult(BaseModel):
    """Outcome of cancelling one subscription inside a batch."""

    subscription_id: str
    cancelled: bool
    error: str | None = None


__all__ = [
    "coerce_timestamp_to_datetime",
    "ListResponse",
    "CreatedParams",
    "SubscriptionStatus",
    "Subscription",
    "SubscriptionListResponse",
    "Customer",
    "LineItem",
    "SubscriptionData",
    "CheckoutSession",
    "CancellationResult",
]
