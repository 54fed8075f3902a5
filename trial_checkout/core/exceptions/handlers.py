from fastapi import Request, status
from fastapi.responses import JSONResponse

from trial_checkout.core.config import request_logger
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


async def general_exception_handler(request: Request, exc: AppException):
    """
    Handles general exceptions by returning a JSON response with the error message.

    Args:
        request: The request object.
        exc (AppException): The exception instance.

    Returns:
        JSONResponse: A response containing the error message and the exception's status code.
    """
    request_logger.error(f"GeneralException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": f"An unexpected error occurred.\n{str(exc)}"},
    )


async def bad_request_exception_handler(request: Request, exc: BadRequestException):
    request_logger.warning(f"BadRequestException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def no_subscriptions_exception_handler(
    request: Request, exc: NoSubscriptionsException
):
    """
    Handles upgrade attempts for a customer without subscriptions.

    Args:
        request: The request object.
        exc (NoSubscriptionsException): The exception instance.

    Returns:
        JSONResponse: A response with status code 500 naming the customer.
    """
    request_logger.error(f"NoSubscriptionsException: {exc} ({exc.customer_id})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "customer_id": exc.customer_id},
    )


async def stripe_api_exception_handler(request: Request, exc: StripeAPIException):
    """
    Handles Stripe API exceptions.

    Upstream errors are reported as a gateway failure; the Stripe error type
    and request id are included so the call can be traced in the Stripe
    dashboard.
    """
    request_logger.error(
        f"StripeAPIException: {exc} | type={exc.error_type} | "
        f"upstream_status={exc.upstream_status} | request_id={exc.request_id}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": str(exc),
            "error_type": exc.error_type,
            "request_id": exc.request_id,
        },
    )


async def stripe_card_exception_handler(request: Request, exc: StripeCardException):
    request_logger.warning(
        f"StripeCardException: {exc} | decline_code={exc.decline_code}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "decline_code": exc.decline_code},
    )


async def idempotency_exception_handler(request: Request, exc: IdempotencyException):
    request_logger.warning(f"IdempotencyException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def stripe_rate_limit_exception_handler(
    request: Request, exc: RateLimitException
):
    request_logger.warning(f"RateLimitException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def partial_cancellation_exception_handler(
    request: Request, exc: PartialCancellationException
):
    """
    Handles a cancellation batch in which some subscriptions could not be cancelled.

    Args:
        request: The request object.
        exc (PartialCancellationException): The exception instance.

    Returns:
        JSONResponse: A 502 response listing the outcome for every subscription.
    """
    request_logger.error(
        f"PartialCancellationException: {exc} | failed={', '.join(exc.failed)}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "results": exc.results},
    )


exception_schema = {
    status.HTTP_500_INTERNAL_SERVER_ERROR: {
        "description": "Internal Server Error",
        "content": {
            "application/json": {
                "example": {"detail": "Some internal server error message"},
            }
        },
    },
    status.HTTP_502_BAD_GATEWAY: {
        "description": "Stripe Error",
        "content": {
            "application/json": {
                "example": {
                    "detail": "No such customer: 'cus_123'",
                    "error_type": "invalid_request_error",
                    "request_id": "req_123",
                },
            }
        },
    },
}


__all__ = [
    "general_exception_handler",
    "bad_request_exception_handler",
    "no_subscriptions_exception_handler",
    "stripe_api_exception_handler",
    "stripe_card_exception_handler",
    "idempotency_exception_handler",
    "stripe_rate_limit_exception_handler",
    "partial_cancellation_exception_handler",
    "exception_schema",
]
