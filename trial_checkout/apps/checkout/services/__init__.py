from trial_checkout.apps.checkout.services.reconciliation import (
    TrialReconciliationService,
    trial_reconciliation_service,
)
from trial_checkout.apps.checkout.services.session import (
    CheckoutSessionService,
    checkout_session_service,
    compute_trial_end,
    select_carry_over_subscription,
)

__all__ = [
    "CheckoutSessionService",
    "checkout_session_service",
    "compute_trial_end",
    "select_carry_over_subscription",
    "TrialReconciliationService",
    "trial_reconciliation_service",
]
