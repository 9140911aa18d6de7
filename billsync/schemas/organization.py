"""Organization schemas."""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class OrganizationBase(BaseModel):
    """Organization base schema."""

    name: str = Field(..., min_length=1, max_length=100)
    billing_email: Optional[str] = None


class OrganizationCreate(OrganizationBase):
    """Organization creation schema."""

    pass


class Organization(OrganizationBase):
    """Organization schema."""

    model_config = {"from_attributes": True}

    id: Optional[UUID] = None
    provider_customer_id: Optional[str] = None
    billing_plan_price_id: Optional[UUID] = None
    org_metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
