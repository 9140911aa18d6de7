"""CRUD operations for billing plans and plan prices."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from billsync import schemas
from billsync.crud._base import CRUDBase
from billsync.models import BillingPlan, BillingPlanPrice


class CRUDBillingPlan(CRUDBase[BillingPlan, schemas.BillingPlanCreate, schemas.BillingPlanUpdate]):
    """CRUD operations for billing plans."""

    async def get_default(self, db: AsyncSession) -> Optional[BillingPlan]:
        """Get the plan new organizations fall back to."""
        return await self.find_first(db, is_default=True, order_by=[BillingPlan.level])


class CRUDBillingPlanPrice(
    CRUDBase[
        BillingPlanPrice,
        schemas.BillingPlanPriceCreate,
        schemas.BillingPlanPriceUpdate,
    ]
):
    """CRUD operations for billing plan prices."""


billing_plan = CRUDBillingPlan(BillingPlan)
billing_plan_price = CRUDBillingPlanPrice(BillingPlanPrice)
