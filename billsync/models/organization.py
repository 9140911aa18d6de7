"""Organization model."""

from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billsync.models._base import Base

if TYPE_CHECKING:
    from billsync.models.subscription import Subscription


class Organization(Base):
    """Organization model.

    The tenant that owns subscriptions. ``billing_plan_price_id`` points at the
    plan price of whichever subscription last became active for it.
    """

    __tablename__ = "organization"

    name: Mapped[str] = mapped_column(String, nullable=False)
    billing_email: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Stripe customer id, created lazily on first checkout
    provider_customer_id: Mapped[Optional[str]] = mapped_column(
        String, nullable=True, unique=True, index=True
    )

    billing_plan_price_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("billing_plan_price.id", ondelete="SET NULL"), nullable=True, index=True
    )

    org_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True, default={})

    subscriptions: Mapped[List["Subscription"]] = relationship(
        "Subscription",
        back_populates="organization",
        lazy="noload",
    )
