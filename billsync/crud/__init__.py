"""CRUD operations for the application."""

from .crud_billing_plan import billing_plan, billing_plan_price
from .crud_organization import organization
from .crud_subscription import subscription

__all__ = [
    "billing_plan",
    "billing_plan_price",
    "organization",
    "subscription",
]
