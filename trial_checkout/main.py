from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware

from trial_checkout.apps.checkout.routers import subscription_router, webhook_router
from trial_checkout.core.config import app_logger, request_logger, settings
from trial_checkout.core.exceptions.handlers import (
    bad_request_exception_handler,
    exception_schema,
    general_exception_handler,
    idempotency_exception_handler,
    no_subscriptions_exception_handler,
    partial_cancellation_exception_handler,
    stripe_api_exception_handler,
    stripe_card_exception_handler,
    stripe_rate_limit_exception_handler,
)
from trial_checkout.core.exceptions.types import (
    AppException,
    BadRequestException,
    IdempotencyException,
    NoSubscriptionsException,
    PartialCancellationException,
    RateLimitException,
    StripeAPIException,
    StripeCardException,
)
from trial_checkout.core.services.payment.stripe.main import Stripe


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_logger.info("Starting application...")
    app_logger.info(
        f"Checkout configured for customer={settings.STRIPE_CUSTOMER_ID} "
        f"plan={settings.STRIPE_PLAN_ID} client={settings.CLIENT_DOMAIN}"
    )
    if settings.STRIPE_WEBHOOK_VERIFY_SIGNATURE:
        app_logger.info("Webhook signature verification enabled.")
    else:
        app_logger.warning("Webhook signature verification disabled.")

    yield

    app_logger.info("Shutting down application...")
    app_logger.info("Closing Stripe client...")
    await Stripe.aclose()
    app_logger.info("Stripe client closed successfully.")


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=settings.APP_DESCRIPTION,
    debug=settings.DEBUG,
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    responses=exception_schema,
    servers=[
        {
            "url": f"{settings.API_DOMAIN}",
        },
    ],
)

# Register exception handlers (order matters - more specific first)
app.add_exception_handler(BadRequestException, bad_request_exception_handler)
app.add_exception_handler(NoSubscriptionsException, no_subscriptions_exception_handler)
app.add_exception_handler(
    PartialCancellationException, partial_cancellation_exception_handler
)
# Stripe-specific exception handlers
app.add_exception_handler(StripeCardException, stripe_card_exception_handler)
app.add_exception_handler(IdempotencyException, idempotency_exception_handler)
app.add_exception_handler(RateLimitException, stripe_rate_limit_exception_handler)
app.add_exception_handler(StripeAPIException, stripe_api_exception_handler)
# Generic fallback
app.add_exception_handler(AppException, general_exception_handler)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Access log: ``METHOD path - status elapsed``."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    request_logger.info(
        f"{request.method.upper()} {request.url.path} - "
        f"{response.status_code} {elapsed_ms:.0f}ms"
    )
    return response


# Include routers
app.include_router(subscription_router, tags=["Subscriptions"])
app.include_router(webhook_router, tags=["Webhooks"])


@app.get("/", include_in_schema=False)
async def root(request: Request):
    base_url = str(request.base_url).rstrip("/")
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "documentations": {
            "swagger": f"{base_url}/docs",
            "redoc": f"{base_url}/redoc",
        },
        "version": settings.APP_VERSION,
    }


@app.head("/health", include_in_schema=False)
@app.get("/health")
async def health_check():
    """
    Health check endpoint to verify if the API is running.

    No upstream call is made; Stripe availability is reported by the
    checkout endpoints themselves.
    """
    return {
        "status": "ok",
        "message": f"{settings.APP_NAME} is running.",
        "checks": {
            "stripe_client": "open" if Stripe._client is not None else "idle",
        },
    }
