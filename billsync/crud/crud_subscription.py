"""CRUD operations for subscriptions."""

from typing import Optional
from uuid import UUID

from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession

from billsync import schemas
from billsync.crud._base import CRUDBase
from billsync.models import BillingPlan, BillingPlanPrice, Subscription

_TERMINAL = [status.value for status in schemas.TERMINAL_STATUSES]
_SUPERSEDED = [status.value for status in schemas.SUPERSEDED_STATUSES]

# Rows without a scheduled end first, then the newest
ACTIVE_ORDER = (
    case((Subscription.end_ts == 0, 0), else_=1),
    Subscription.created_at.desc(),
)


class CRUDSubscription(CRUDBase[Subscription, schemas.SubscriptionCreate, schemas.Subscription]):
    """CRUD operations for subscriptions."""

    async def get_by_provider_subscription_id(
        self, db: AsyncSession, *, provider_subscription_id: str
    ) -> Optional[Subscription]:
        """Get the live row linked to a provider subscription.

        Disabled and deleted rows share the provider id after a plan change and
        are never returned.
        """
        if not provider_subscription_id:
            return None
        return await self.find_first(
            db,
            order_by=[Subscription.created_at.desc()],
            provider_subscription_id=provider_subscription_id,
            status__not_in=_SUPERSEDED,
        )

    async def get_by_natural_key(
        self, db: AsyncSession, *, organization_id: UUID, billing_plan_price_id: UUID
    ) -> Optional[Subscription]:
        """Get the non-terminal row for an organization and plan price."""
        return await self.find_first(
            db,
            order_by=[Subscription.created_at.desc()],
            organization_id=organization_id,
            billing_plan_price_id=billing_plan_price_id,
            status__not_in=_TERMINAL,
        )

    async def get_active(
        self, db: AsyncSession, *, organization_id: UUID
    ) -> Optional[Subscription]:
        """Get the subscription currently in force for an organization."""
        return await self.find_first(
            db,
            order_by=ACTIVE_ORDER,
            organization_id=organization_id,
            status__not_in=_TERMINAL,
        )

    async def get_with_plan(
        self, db: AsyncSession, *, id: UUID
    ) -> Optional[tuple[Subscription, BillingPlanPrice, BillingPlan]]:
        """Get a subscription together with its plan price and plan."""
        query = (
            select(Subscription, BillingPlanPrice, BillingPlan)
            .join(BillingPlanPrice, Subscription.billing_plan_price_id == BillingPlanPrice.id)
            .join(BillingPlan, BillingPlanPrice.billing_plan_id == BillingPlan.id)
            .where(Subscription.id == id)
        )
        result = await db.execute(query)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1], row[2]


subscription = CRUDSubscription(Subscription)
