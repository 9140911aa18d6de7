"""Request and response schemas of the billing endpoints."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class CheckoutSessionRequest(BaseModel):
    """Request to start a hosted checkout."""

    promo_code: Optional[str] = Field(None, description="Promotion code to pre-apply")


class CheckoutSessionResponse(BaseModel):
    """Hosted checkout session."""

    checkout_url: str = Field(..., description="URL to redirect the customer to")


class CheckoutSuccessRequest(BaseModel):
    """Sent by the client once the hosted checkout has returned."""

    billing_plan_price_id: UUID
    promo_code: Optional[str] = None


class ChangePlanRequest(BaseModel):
    """Request to move the active subscription to another plan price."""

    billing_plan_price_id: UUID
