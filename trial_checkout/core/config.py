from functools import lru_cache
import logging

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trial_checkout.core.logger import setup_logger, init_sentry


class Settings(BaseSettings):
    # Application settings
    ENVIRONMENT: str = "development"  # Options: development, production
    API_DOMAIN: str = "http://localhost:8080"
    APP_NAME: str = "Trial Checkout"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = """
Trial Checkout proxies subscription checkout operations to Stripe for a single, pre-configured customer.

## Endpoints

| Area | Description |
|------|-------------|
| **Subscriptions** | Create a checkout session with an automatic 3-day trial, or a full subscription that keeps the current trial end date. |
| **Webhooks** | Reconcile overlapping trial subscriptions once a checkout completes. |
"""
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # CORS settings
    CORS_ALLOW_ORIGINS: list[str] = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = False

    # Sentry settings
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # Stripe settings
    STRIPE_API_KEY: str = Field(
        default="your_stripe_api_key",
        validation_alias=AliasChoices("STRIPE_API_KEY", "STRIPE_KEY"),
    )
    STRIPE_API_BASE_URL: str = "https://api.stripe.com"
    STRIPE_WEBHOOK_SECRET: str = "your_stripe_webhook_secret"
    STRIPE_WEBHOOK_VERIFY_SIGNATURE: bool = False
    STRIPE_MAX_ATTEMPTS: int = 3
    ## Checkout settings (single customer, single plan)
    STRIPE_PLAN_ID: str = "plan_EXAMPLE"
    STRIPE_CUSTOMER_ID: str = "cus_EXAMPLE"
    CLIENT_DOMAIN: str = "http://localhost:3000"

    model_config: SettingsConfigDict = SettingsConfigDict(  # type: ignore
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_production_secrets(self) -> "Settings":
        """Ensure placeholder Stripe values are overridden in production."""
        if self.ENVIRONMENT != "production":
            return self

        placeholders: dict[str, str] = {
            "STRIPE_API_KEY": "your_stripe_api_key",
            "STRIPE_PLAN_ID": "plan_EXAMPLE",
            "STRIPE_CUSTOMER_ID": "cus_EXAMPLE",
        }
        if self.STRIPE_WEBHOOK_VERIFY_SIGNATURE:
            placeholders["STRIPE_WEBHOOK_SECRET"] = "your_stripe_webhook_secret"

        still_default = [
            name
            for name, default_val in placeholders.items()
            if getattr(self, name) == default_val
        ]

        if still_default:
            raise ValueError(
                f"ENVIRONMENT is 'production' but the following settings still "
                f"have their placeholder values: {', '.join(still_default)}. "
                f"Set them via environment variables or .env file."
            )

        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()  # type: ignore


settings = get_settings()

if not settings.DEBUG:
    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

# Debug mode traces checkout parameters and provider responses
_domain_level = logging.DEBUG if settings.DEBUG else logging.INFO

app_logger = setup_logger(
    name="app_logger",
    log_file="logs/app.log",
    level=logging.INFO,
    sentry_tag="app",
)
request_logger = setup_logger(
    name="request_logger",
    log_file="logs/requests.log",
    level=logging.INFO,
    sentry_tag="request",
)
stripe_logger = setup_logger(
    name="stripe_logger",
    log_file="logs/stripe.log",
    level=_domain_level,
    sentry_tag="stripe",
)
webhook_logger = setup_logger(
    name="webhook_logger",
    log_file="logs/webhook.log",
    level=_domain_level,
    sentry_tag="webhook",
)
checkout_logger = setup_logger(
    name="checkout_logger",
    log_file="logs/checkout.log",
    level=_domain_level,
    sentry_tag="checkout",
)

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "app_logger",
    "request_logger",
    "stripe_logger",
    "webhook_logger",
    "checkout_logger",
]
