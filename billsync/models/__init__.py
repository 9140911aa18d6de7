"""Models for the application."""

from .billing_plan import BillingPlan, BillingPlanPrice
from .organization import Organization
from .subscription import Subscription

__all__ = [
    "BillingPlan",
    "BillingPlanPrice",
    "Organization",
    "Subscription",
]
