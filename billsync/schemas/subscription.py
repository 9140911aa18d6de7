"""Subscription schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from billsync.schemas.billing_plan import BillingCycle


class BillingProviderType(str, Enum):
    """Payment providers a subscription can be linked to."""

    STRIPE = "stripe"


class SubscriptionStatus(str, Enum):
    """Local subscription lifecycle status."""

    PENDING = "pending"
    ACTIVE = "active"
    TRIALING = "trialing"
    CANCELING = "canceling"
    CANCELLED = "cancelled"
    UNPAID_CANCELED = "unpaid_canceled"
    DISABLED = "disabled"
    DELETED = "deleted"

    @property
    def is_terminal(self) -> bool:
        """Whether the row no longer counts as an organization's live subscription."""
        return self in TERMINAL_STATUSES

    @property
    def is_superseded(self) -> bool:
        """Whether the row was replaced or removed and is hidden from provider lookups."""
        return self in SUPERSEDED_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        SubscriptionStatus.CANCELLED,
        SubscriptionStatus.UNPAID_CANCELED,
        SubscriptionStatus.DISABLED,
        SubscriptionStatus.DELETED,
    }
)

SUPERSEDED_STATUSES = frozenset({SubscriptionStatus.DISABLED, SubscriptionStatus.DELETED})


class BillingInfo(BaseModel):
    """Payment method summary captured from the provider."""

    card_type: Optional[str] = None
    last4: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None

    def is_empty(self) -> bool:
        """True when nothing has been captured yet."""
        return not any(self.model_dump().values())


class SubscriptionBase(BaseModel):
    """Subscription base schema."""

    billing_plan_price_id: Optional[UUID] = None
    billing_provider: BillingProviderType = BillingProviderType.STRIPE
    provider_subscription_id: str = ""
    provider_customer_id: str = ""
    provider_price_id: str = ""
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    start_ts: int = 0
    end_ts: int = Field(default=0, description="Scheduled end in epoch seconds, 0 when none")
    trial_end_ts: int = 0
    next_billing_ts: int = 0
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    amount: Decimal = Decimal("0")
    currency: str = "USD"
    coupon_code: str = ""
    billing_info: Optional[BillingInfo] = None
    subscription_metadata: Optional[Dict[str, Any]] = None


class SubscriptionCreate(SubscriptionBase):
    """Subscription creation schema."""

    organization_id: UUID


class Subscription(SubscriptionBase):
    """Subscription write model.

    ``id`` is None until the row has been inserted.
    """

    model_config = {"from_attributes": True}

    id: Optional[UUID] = None
    organization_id: UUID
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    @property
    def has_billing_info(self) -> bool:
        """Whether a payment method summary has been captured."""
        return self.billing_info is not None and not self.billing_info.is_empty()


class SubscriptionDetail(BaseModel):
    """Read projection of a subscription joined with its plan price and plan."""

    subscription: Subscription
    billing_plan_price_price: Decimal
    billing_plan_price_currency: str
    billing_plan_name: str
    billing_plan_level: int
