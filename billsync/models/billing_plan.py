"""Billing plan and plan price models."""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billsync.models._base import Base


class BillingPlan(Base):
    """A purchasable plan, mirrored as a product at the billing provider."""

    __tablename__ = "billing_plan"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    provider_product_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    feature_set: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True, default={})

    prices: Mapped[List["BillingPlanPrice"]] = relationship(
        "BillingPlanPrice",
        back_populates="billing_plan",
        lazy="noload",
    )


class BillingPlanPrice(Base):
    """A priced, cadence-bound offering of a plan."""

    __tablename__ = "billing_plan_price"

    billing_plan_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_plan.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String, default="", nullable=False)
    provider_price_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 4), default=Decimal("0"), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    trial_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    billing_cycle: Mapped[str] = mapped_column(String(20), default="monthly", nullable=False)
    disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    billing_plan: Mapped["BillingPlan"] = relationship(
        "BillingPlan", back_populates="prices", lazy="noload"
    )
