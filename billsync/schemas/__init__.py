"""Schemas for the application."""

from .billing import (
    ChangePlanRequest,
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    CheckoutSuccessRequest,
)
from .billing_plan import (
    BillingCycle,
    BillingPlan,
    BillingPlanCreate,
    BillingPlanPrice,
    BillingPlanPriceCreate,
    BillingPlanPriceUpdate,
    BillingPlanUpdate,
)
from .organization import Organization, OrganizationCreate
from .subscription import (
    SUPERSEDED_STATUSES,
    TERMINAL_STATUSES,
    BillingInfo,
    BillingProviderType,
    Subscription,
    SubscriptionCreate,
    SubscriptionDetail,
    SubscriptionStatus,
)
from .webhook import WebhookEvent, WebhookEventData
