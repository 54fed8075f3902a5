from trial_checkout.core.services.payment import PaymentProvider, get_payment_provider

__all__ = [
    "PaymentProvider",
    "get_payment_provider",
]
