"""Billing plan and plan price schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, Field


class BillingCycle(str, Enum):
    """How often a plan price is billed."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"

    def to_interval(self) -> Tuple[str, int]:
        """Return the provider's recurring ``(interval, interval_count)`` pair."""
        return _CYCLE_INTERVALS[self]


_CYCLE_INTERVALS = {
    BillingCycle.MONTHLY: ("month", 1),
    BillingCycle.QUARTERLY: ("month", 3),
    BillingCycle.ANNUALLY: ("year", 1),
}


class BillingPlanBase(BaseModel):
    """Billing plan base schema."""

    name: str = Field(..., description="Display name of the plan")
    description: Optional[str] = None
    level: int = Field(default=0, description="Ordering of plans, higher is richer")
    is_default: bool = False
    feature_set: Optional[Dict[str, Any]] = None


class BillingPlanCreate(BillingPlanBase):
    """Billing plan creation schema."""

    pass


class BillingPlanUpdate(BaseModel):
    """Billing plan update schema."""

    name: Optional[str] = None
    description: Optional[str] = None
    level: Optional[int] = None
    is_default: Optional[bool] = None
    feature_set: Optional[Dict[str, Any]] = None


class BillingPlan(BillingPlanBase):
    """Billing plan schema."""

    model_config = {"from_attributes": True}

    id: Optional[UUID] = None
    provider_product_id: Optional[str] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None


class BillingPlanPriceBase(BaseModel):
    """Billing plan price base schema."""

    name: str = ""
    price: Decimal = Field(..., ge=0, description="Price per billing cycle")
    currency: str = "USD"
    trial_days: int = Field(default=0, ge=0)
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    disabled: bool = False


class BillingPlanPriceCreate(BillingPlanPriceBase):
    """Billing plan price creation schema."""

    pass


class BillingPlanPriceUpdate(BaseModel):
    """Billing plan price update schema."""

    name: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = None
    trial_days: Optional[int] = Field(default=None, ge=0)
    billing_cycle: Optional[BillingCycle] = None
    disabled: Optional[bool] = None


class BillingPlanPrice(BillingPlanPriceBase):
    """Billing plan price schema."""

    model_config = {"from_attributes": True}

    id: Optional[UUID] = None
    billing_plan_id: UUID
    provider_price_id: Optional[str] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
