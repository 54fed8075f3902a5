"""Trial Checkout: Stripe checkout sessions with automatic trials for a single customer."""

__version__ = "1.0.0"
