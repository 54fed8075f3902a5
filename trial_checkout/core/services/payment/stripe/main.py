import asyncio
import random
from typing import Any, Literal

import httpx
import stripe as stripe_sdk

from trial_checkout.core.config import settings, stripe_logger
from trial_checkout.core.exceptions.types import (
    AppException,
    BadRequestException,
    IdempotencyException,
    ProviderUnavailableException,
    RateLimitException,
    StripeAPIException,
    StripeCardException,
)
from trial_checkout.core.services.payment.stripe.types import (
    CheckoutSession,
    CreatedParams,
    Customer,
    LineItem,
    Subscription,
    SubscriptionData,
    SubscriptionListResponse,
)


class Stripe:
    _api_key: str = settings.STRIPE_API_KEY
    _base_url: str = settings.STRIPE_API_BASE_URL or "https://api.stripe.com"
    _webhook_secret: str = settings.STRIPE_WEBHOOK_SECRET
    _client: httpx.AsyncClient | None = None

    # Bounded retries + backoff
    _MAX_ATTEMPTS: int = settings.STRIPE_MAX_ATTEMPTS
    _BACKOFF_BASE: float = 0.5
    _BACKOFF_MAX: float = 8.0
    _JITTER: float = 0.2  # +/-20%

    @staticmethod
    def _flatten_to_payload(
        payload: dict[str, Any],
        prefix: str,
        data: dict[str, Any],
        *,
        max_depth: int = 3,
        _current_depth: int = 0,
    ) -> None:
        """
        Flatten a nested dict into Stripe's form-encoded format.

        Example:
            data = {"metadata": {"trial": "auto"}, "trial_end": 1700000000}
            prefix = "subscription_data"
            Result: payload["subscription_data[metadata][trial]"] = "auto"
                    payload["subscription_data[trial_end]"] = "1700000000"

        Parameters
        ----------
        payload : dict[str, Any]
            The payload dict to add flattened keys to.
        prefix : str
            The base key prefix (e.g., "subscription_data", "created").
        data : dict[str, Any]
            The dict to flatten.
        max_depth : int, optional
            Maximum nesting depth. Deeper values are stringified. Defaults to 3.
        _current_depth : int
            Internal counter for recursion depth. Do not set manually.
        """
        if _current_depth >= max_depth:
            for key, value in data.items():
                payload[f"{prefix}[{key}]"] = str(value) if value is not None else ""
            return

        for key, value in data.items():
            full_key = f"{prefix}[{key}]"
            if isinstance(value, dict):
                Stripe._flatten_to_payload(
                    payload,
                    full_key,
                    value,
                    max_depth=max_depth,
                    _current_depth=_current_depth + 1,
                )
            elif isinstance(value, list):
                for idx, item in enumerate(value):
                    if isinstance(item, dict):
                        Stripe._flatten_to_payload(
                            payload,
                            f"{full_key}[{idx}]",
                            item,
                            max_depth=max_depth,
                            _current_depth=_current_depth + 1,
                        )
                    else:
                        payload[f"{full_key}[{idx}]"] = (
                            str(item) if item is not None else ""
                        )
            else:
                payload[full_key] = str(value) if value is not None else ""

    @classmethod
    def _check_api_key(cls) -> None:
        """Validate that a Stripe API key has been configured.

        Raises
        ------
            ValueError
                If the API key is missing or contains only whitespace. The API
                key is expected to be provided via the STRIPE_API_KEY (or
                STRIPE_KEY) environment variable or a .env file.
        """
        if not cls._api_key.strip():
            raise ValueError(
                "Stripe API key is not set. Please set STRIPE_API_KEY in the environment variables or .env file."
            )

    @classmethod
    def _check_webhook_secret(cls) -> None:
        if not cls._webhook_secret.strip():
            raise ValueError(
                "Stripe Webhook Secret is not set. Please set STRIPE_WEBHOOK_SECRET in the environment variables or .env file."
            )

    @classmethod
    def _init_client(cls) -> None:
        """Lazily construct the httpx.AsyncClient used to talk to Stripe.

        The client authenticates with HTTP basic auth (API key as user, empty
        password). Calling this when a client already exists is a no-op. The
        client is closed by ``aclose()`` during application shutdown.
        """
        cls._check_api_key()
        if cls._client is None:
            cls._client = httpx.AsyncClient(
                base_url=cls._base_url,
                timeout=httpx.Timeout(80.0),
                auth=httpx.BasicAuth(cls._api_key, ""),
            )
            stripe_logger.info("Stripe HTTP client initialized")

    @classmethod
    def _compute_backoff(cls, attempt: int) -> float:
        """
        Compute the backoff time with jitter for a given retry attempt.

        Parameters
        ----------
            attempt : int
                The current retry attempt number (1-based).

        Returns
        -------
            float
                The computed backoff time in seconds.
        """
        base = min(cls._BACKOFF_BASE * (2 ** (attempt - 1)), cls._BACKOFF_MAX)
        jitter = random.uniform(1 - cls._JITTER, 1 + cls._JITTER)
        return base * jitter

    @classmethod
    async def _request(
        cls,
        method: str,
        endpoint: str,
        headers: dict[str, str] | None = None,
        *,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        max_attempts: int | None = None,
    ) -> dict[str, Any]:
        """
        Makes an asynchronous HTTP request to the Stripe API with retry logic.

        - Retries 5xx errors, 429 and network errors with exponential backoff
        - Does NOT retry other 4xx errors
        - Logs the Stripe Request-Id of every call
        - Maps Stripe error types to exception classes

        Parameters
        ----------
            method : str
                The HTTP method to use (e.g., 'GET', 'POST', 'DELETE').
            endpoint : str
                The API endpoint to send the request to.
            headers : dict[str, str] | None, optional
                Additional headers to include in the request.
            data : dict[str, Any] | None, optional
                Form-encoded payload to include in the request body.
            params : dict[str, Any] | None, optional
                Query parameters for GET requests.
            max_attempts : int | None, optional
                Maximum number of attempts for retryable errors. Defaults to
                the STRIPE_MAX_ATTEMPTS setting.

        Returns
        -------
            dict[str, Any]
                The decoded JSON response body.

        Raises
        ------
            StripeCardException
                For card_error type errors.
            IdempotencyException
                For idempotency_error type errors (409 conflicts).
            RateLimitException
                For rate limiting errors after all retries are exhausted.
            StripeAPIException
                For every other Stripe API error.
            ProviderUnavailableException
                For network errors after all retries are exhausted.
        """
        if cls._client is None:
            cls._init_client()

        assert cls._client is not None, "HTTP client should be initialized"

        attempts = max(1, max_attempts or cls._MAX_ATTEMPTS)

        for attempt in range(1, attempts + 1):
            try:
                resp: httpx.Response = await cls._client.request(
                    method, endpoint, data=data, headers=headers, params=params
                )
                resp.raise_for_status()

                body = resp.json()

                stripe_logger.info(
                    f"Stripe {method} {endpoint} succeeded (Request-Id: {resp.headers.get('Request-Id', 'N/A')})"
                )
                stripe_logger.debug(f"Stripe {method} {endpoint} response: {body}")
                return body

            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                request_id = exc.response.headers.get("Request-Id")

                try:
                    err_body = exc.response.json()
                except ValueError:
                    err_body = {"error": {"message": exc.response.text}}

                error_data = err_body.get("error", {})
                error_type = error_data.get("type")
                error_code = error_data.get("code")
                error_message = error_data.get("message", f"Stripe API error {status}")
                error_param = error_data.get("param")
                decline_code = error_data.get("decline_code")

                stripe_logger.error(
                    f"Stripe error: {status} {error_type or 'unknown'} | "
                    f"Code: {error_code or 'N/A'} | Request-Id: {request_id or 'N/A'} | "
                    f"Message: {error_message}"
                )

                if 500 <= status < 600 or status == 429:
                    wait = cls._compute_backoff(attempt)
                    stripe_logger.warning(
                        f"{status} from Stripe; attempt {attempt}/{attempts}; "
                        f"wait={wait:.1f}s; Request-Id={request_id}"
                    )
                    if attempt < attempts:
                        await asyncio.sleep(wait)
                        continue

                    stripe_logger.error(
                        f"{status} error after {attempts} attempts. Request-Id: {request_id}"
                    )
                    if status == 429:
                        raise RateLimitException(
                            message=error_message or "Too many requests to Stripe API",
                            details={
                                "code": error_code,
                                "type": error_type or "rate_limit_error",
                                "request_id": request_id,
                            },
                        ) from exc
                    raise StripeAPIException(
                        message=error_message,
                        stripe_code=error_code,
                        error_type=error_type or "api_error",
                        request_id=request_id,
                        upstream_status=status,
                        details=err_body,
                    ) from exc

                # Non-retryable 4xx errors
                # https://docs.stripe.com/api/errors
                if status == 409 or error_type == "idempotency_error":
                    raise IdempotencyException(
                        message=error_message
                        or "Idempotency key was used with different parameters",
                        request_id=request_id,
                        details={
                            "code": error_code,
                            "type": error_type,
                            "param": error_param,
                        },
                    ) from exc

                if error_type == "card_error":
                    raise StripeCardException(
                        message=error_message,
                        stripe_code=error_code,
                        decline_code=decline_code,
                        param=error_param,
                        request_id=request_id,
                        details=err_body,
                    ) from exc

                default_types = {
                    401: "authentication_error",
                    402: "request_failed",
                    403: "permission_error",
                    404: "invalid_request_error",
                    424: "external_dependency_failed",
                }
                raise StripeAPIException(
                    message=error_message,
                    stripe_code=error_code,
                    error_type=error_type or default_types.get(status, "api_error"),
                    param=error_param,
                    request_id=request_id,
                    upstream_status=status,
                    details=err_body,
                ) from exc

            except (httpx.TimeoutException, httpx.TransportError) as exc:
                wait = cls._compute_backoff(attempt)
                stripe_logger.warning(
                    f"Network error; attempt {attempt}/{attempts}; "
                    f"wait={wait:.1f}s; error={exc.__class__.__name__}: {exc}"
                )
                if attempt < attempts:
                    await asyncio.sleep(wait)
                    continue

                stripe_logger.error(f"Network error after {attempts} attempts: {exc}")
                raise ProviderUnavailableException(
                    details={"error": str(exc), "type": "network_error"},
                ) from exc

        # Unreachable: every branch above returns, continues or raises
        raise AppException(message="Unexpected error in Stripe request loop")

    @classmethod
    async def aclose(cls) -> None:
        """Close the underlying HTTP client if it was initialized."""
        if cls._client is not None:
            await cls._client.aclose()
            cls._client = None
            stripe_logger.info("Stripe HTTP client closed")

    @classmethod
    def verify_webhook_signature(
        cls, body: bytes, headers: dict[str, str]
    ) -> stripe_sdk.Event:
        """Verify the signature of a Stripe webhook event.

        Parameters
        ----------
        body : bytes
            The raw request body of the webhook event.
        headers : dict[str, str]
            The headers of the webhook request, which should include the 'Stripe-Signature'.

        Returns
        -------
        stripe_sdk.Event
            The verified Stripe Event object.

        Raises
        ------
        ValueError
            If the webhook secret is not configured.
        BadRequestException
            If the payload or signature is invalid.
        """
        cls._check_webhook_secret()
        try:
            return stripe_sdk.Webhook.construct_event(
                payload=body,
                sig_header=headers.get("Stripe-Signature", ""),
                secret=cls._webhook_secret,
            )
        except stripe_sdk.SignatureVerificationError as exc:
            stripe_logger.error(f"Webhook signature verification failed: {exc}")
            raise BadRequestException("Invalid Stripe webhook signature.") from exc
        except ValueError as exc:
            stripe_logger.error(f"Webhook payload could not be parsed: {exc}")
            raise BadRequestException("Invalid Stripe webhook payload.") from exc

    @classmethod
    async def create_checkout_session(
        cls,
        success_url: str,
        cancel_url: str,
        line_items: list[LineItem] | list[dict[str, Any]],
        *,
        idempotency_key: str | None = None,
        mode: Literal["payment", "setup", "subscription"] = "subscription",
        customer: str | None = None,
        payment_method_types: list[str] | None = None,
        subscription_data: SubscriptionData | dict[str, Any] | None = None,
    ) -> CheckoutSession:
        """
        Create a Stripe Checkout Session (POST /v1/checkout/sessions).

        Parameters
        ----------
        success_url : str
            The URL to which the customer will be redirected after a successful payment.
        cancel_url : str
            The URL to which the customer will be redirected if they cancel the payment.
        line_items : list[LineItem] | list[dict[str, Any]]
            The items to purchase.
        idempotency_key : str | None, optional
            Idempotency key to ensure the operation is performed only once by Stripe.
        mode : Literal["payment", "setup", "subscription"], optional
            The mode of the checkout session. Defaults to "subscription".
        customer : str | None, optional
            The ID of an existing customer to associate with the session.
        payment_method_types : list[str] | None, optional
            Payment method types accepted by the session (e.g. ["card"]).
        subscription_data : SubscriptionData | dict[str, Any] | None, optional
            Parameters for the subscription the session creates. Unset
            fields are omitted from the request.

        Returns
        -------
        CheckoutSession
            The created session.
        """
        endpoint = "/v1/checkout/sessions"
        payload: dict[str, Any] = {
            "success_url": success_url,
            "cancel_url": cancel_url,
            "mode": mode,
        }

        for idx, item in enumerate(line_items):
            if isinstance(item, LineItem):
                item = item.model_dump(exclude_none=True)
            cls._flatten_to_payload(payload, f"line_items[{idx}]", item)

        if customer is not None:
            payload["customer"] = customer
        if payment_method_types is not None:
            for idx, method in enumerate(payment_method_types):
                payload[f"payment_method_types[{idx}]"] = method
        if subscription_data is not None:
            if isinstance(subscription_data, SubscriptionData):
                subscription_data = subscription_data.model_dump(exclude_none=True)
            cls._flatten_to_payload(payload, "subscription_data", subscription_data)

        headers: dict[str, str] = {}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        stripe_logger.debug(f"Creating checkout session: {payload}")
        body = await cls._request("POST", endpoint, data=payload, headers=headers)
        return CheckoutSession.model_validate(body)

    @classmethod
    async def retrieve_customer(
        cls,
        customer_id: str,
        *,
        expand: list[str] | None = None,
    ) -> Customer:
        """Retrieve a Stripe Customer by ID (GET /v1/customers/{customer_id}).

        Parameters
        ----------
        customer_id : str
            The Stripe customer identifier (e.g. "cus_ABC123").
        expand : list[str] | None, optional
            Related objects to expand, e.g. ["subscriptions"] to embed the
            customer's subscription list.

        Returns
        -------
        Customer
            The validated customer.
        """
        endpoint = f"/v1/customers/{customer_id}"
        params: dict[str, Any] | None = None
        if expand:
            params = {"expand[]": expand}
        body = await cls._request("GET", endpoint, params=params)
        return Customer.model_validate(body)

    @classmethod
    async def retrieve_subscription(cls, subscription_id: str) -> Subscription:
        """Retrieve a Stripe Subscription by ID (GET /v1/subscriptions/{subscription_id})."""
        endpoint = f"/v1/subscriptions/{subscription_id}"
        body = await cls._request("GET", endpoint)
        return Subscription.model_validate(body)

    @classmethod
    async def list_subscriptions(
        cls,
        *,
        customer: str | None = None,
        status: str | None = None,
        created: CreatedParams | dict[str, int] | None = None,
        limit: int = 10,
        starting_after: str | None = None,
    ) -> SubscriptionListResponse:
        """
        List subscriptions (GET /v1/subscriptions).

        Parameters
        ----------
        customer : str | None
            Only return subscriptions for this customer.
        status : str | None
            Only return subscriptions in this status (e.g. "trialing").
        created : CreatedParams | dict[str, int] | None
            Filter on the creation timestamp. Possible keys: "gt", "gte", "lt", "lte".
        limit : int
            Page size, 1 to 100. Defaults to 10.
        starting_after : str | None
            Pagination cursor: return objects after this ID.

        Returns
        -------
        SubscriptionListResponse
            One page of subscriptions; ``has_more`` tells whether another page exists.
        """
        endpoint = "/v1/subscriptions"
        params: dict[str, Any] = {"limit": limit}
        if customer is not None:
            params["customer"] = customer
        if status is not None:
            params["status"] = status
        if created is not None:
            if isinstance(created, CreatedParams):
                created = created.model_dump(exclude_none=True)
            cls._flatten_to_payload(params, "created", created)
        if starting_after is not None:
            params["starting_after"] = starting_after
        body = await cls._request("GET", endpoint, params=params)
        return SubscriptionListResponse.model_validate(body)

    @classmethod
    async def update_subscription(
        cls,
        subscription_id: str,
        *,
        cancel_at: int,
    ) -> Subscription:
        """Schedule a Stripe subscription to cancel (POST /v1/subscriptions/{subscription_id}).

        Setting the same ``cancel_at`` again leaves the subscription unchanged,
        so the call is safe to retry.

        Parameters
        ----------
        subscription_id : str
            The Stripe subscription identifier to update.
        cancel_at : int
            Unix timestamp at which the subscription will be cancelled.

        Returns
        -------
        Subscription
            The updated subscription.
        """
        endpoint = f"/v1/subscriptions/{subscription_id}"
        payload: dict[str, Any] = {"cancel_at": cancel_at}
        body = await cls._request("POST", endpoint, data=payload)
        return Subscription.model_validate(body)

    @classmethod
    async def cancel_subscription(
        cls,
        subscription_id: str,
        *,
        prorate: bool = False,
        invoice_now: bool = False,
    ) -> Subscription:
        """Cancel a Stripe subscription immediately (DELETE /v1/subscriptions/{subscription_id}).

        Parameters
        ----------
        subscription_id : str
            The Stripe subscription identifier to cancel.
        prorate : bool, optional
            Whether to generate a proration invoice item. Default is False.
        invoice_now : bool, optional
            Whether to immediately invoice outstanding usage. Default is False.

        Returns
        -------
        Subscription
            The cancelled subscription.
        """
        endpoint = f"/v1/subscriptions/{subscription_id}"
        payload = {
            "prorate": prorate,
            "invoice_now": invoice_now,
        }
        body = await cls._request("DELETE", endpoint, data=payload)
        return Subscription.model_validate(body)


__all__ = ["Stripe"]
