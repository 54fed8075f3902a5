from fastapi import status


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
        self.details = details
        super().__init__(message)


class BadRequestException(AppException):
    """Exception raised for bad request errors."""

    def __init__(self, message: str = "Bad request."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class NoSubscriptionsException(AppException):
    """Exception raised when the customer has no subscription to carry a trial from."""

    def __init__(
        self,
        message: str = "Customer has no subscriptions to upgrade.",
        customer_id: str | None = None,
    ):
        super().__init__(
            message,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"customer_id": customer_id} if customer_id else None,
        )
        self.customer_id = customer_id


class StripeAPIException(AppException):
    """Exception raised for Stripe API errors."""

    def __init__(
        self,
        message: str = "A Stripe API error occurred.",
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        stripe_code: str | None = None,
        error_type: str = "api_error",
        param: str | None = None,
        request_id: str | None = None,
        upstream_status: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, status_code, details)
        self.stripe_code = stripe_code
        self.error_type = error_type
        self.param = param
        self.request_id = request_id
        self.upstream_status = upstream_status


class StripeCardException(AppException):
    """Exception raised for Stripe card errors (declined, invalid, etc.).

    Stripe answers these with 402; callers of this service see a gateway error.
    """

    def __init__(
        self,
        message: str = "Card was declined.",
        stripe_code: str | None = None,
        decline_code: str | None = None,
        param: str | None = None,
        request_id: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, details)
        self.upstream_status = status.HTTP_402_PAYMENT_REQUIRED
        self.stripe_code = stripe_code
        self.decline_code = decline_code
        self.param = param
        self.request_id = request_id


class IdempotencyException(AppException):
    """Exception raised for Stripe idempotency errors."""

    def __init__(
        self,
        message: str = "Idempotency key was used with different parameters.",
        request_id: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, details)
        self.upstream_status = status.HTTP_409_CONFLICT
        self.request_id = request_id


class RateLimitException(AppException):
    """Exception raised when Stripe rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Stripe rate limit exceeded. Please try again later.",
        details: dict | None = None,
    ):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE, details)
        self.upstream_status = status.HTTP_429_TOO_MANY_REQUESTS


class ProviderUnavailableException(AppException):
    """Exception raised when Stripe cannot be reached after all retries."""

    def __init__(
        self,
        message: str = "Unable to connect to Stripe. Please try again later.",
        details: dict | None = None,
    ):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE, details)


class PartialCancellationException(AppException):
    """Exception raised when some subscriptions in a cancellation batch failed."""

    def __init__(
        self,
        failed: list[str],
        results: list[dict],
        message: str | None = None,
    ):
        super().__init__(
            message or f"Failed to cancel {len(failed)} of {len(results)} subscriptions.",
            status.HTTP_502_BAD_GATEWAY,
            {"failed": failed, "results": results},
        )
        self.failed = failed
        self.results = results


__all__ = [
    "AppException",
    "BadRequestException",
    "NoSubscriptionsException",
    "StripeAPIException",
    "StripeCardException",
    "IdempotencyException",
    "RateLimitException",
    "ProviderUnavailableException",
    "PartialCancellationException",
]
