"""Subscription model."""

from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import JSON, BigInteger, ForeignKey, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.schema import Index

from billsync.models._base import Base

if TYPE_CHECKING:
    from billsync.models.organization import Organization

# Kept in sync with SubscriptionStatus in billsync.schemas.subscription
_TERMINAL_STATUSES = "('cancelled', 'unpaid_canceled', 'disabled', 'deleted')"
_SUPERSEDED_STATUSES = "('disabled', 'deleted')"


class Subscription(Base):
    """A tenant's subscription to a plan price, linked to a provider subscription.

    All ``*_ts`` columns are epoch seconds. ``end_ts = 0`` means no end is scheduled.
    """

    __tablename__ = "subscription"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.id", ondelete="CASCADE"), nullable=False, index=True
    )
    billing_plan_price_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("billing_plan_price.id", ondelete="SET NULL"), nullable=True
    )

    # Provider linkage
    billing_provider: Mapped[str] = mapped_column(String(20), default="stripe", nullable=False)
    provider_subscription_id: Mapped[str] = mapped_column(String, default="", nullable=False)
    provider_customer_id: Mapped[str] = mapped_column(String, default="", nullable=False)
    provider_price_id: Mapped[str] = mapped_column(String, default="", nullable=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(32), default="pending", nullable=False)
    start_ts: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    end_ts: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    trial_end_ts: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    next_billing_ts: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    # Commercial terms, copied from the plan price at purchase time
    billing_cycle: Mapped[str] = mapped_column(String(20), default="monthly", nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 4), default=Decimal("0"), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    coupon_code: Mapped[str] = mapped_column(String, default="", nullable=False)

    billing_info: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True, default={})
    subscription_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True, default={})

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="subscriptions", lazy="noload"
    )

    __table_args__ = (
        # Natural key of the checkout path
        Index(
            "uq_subscription_org_plan_price_live",
            "organization_id",
            "billing_plan_price_id",
            unique=True,
            postgresql_where=text(f"status NOT IN {_TERMINAL_STATUSES}"),
        ),
        # A plan change leaves a disabled row that shares the provider id
        Index(
            "uq_subscription_provider_subscription_id",
            "provider_subscription_id",
            unique=True,
            postgresql_where=text(
                f"provider_subscription_id <> '' AND status NOT IN {_SUPERSEDED_STATUSES}"
            ),
        ),
        Index("ix_subscription_org_status", "organization_id", "status"),
    )
