"""Create tables and seed the default plan."""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from billsync import crud, schemas
from billsync.core.logging import logger
from billsync.models._base import Base


async def create_tables(engine: AsyncEngine) -> None:
    """Create any missing tables and indexes."""
    # Import models so they are registered on the metadata
    import billsync.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db(db: AsyncSession) -> None:
    """Seed a free default plan when the catalog is empty.

    The default plan is local only; it has no provider product and cannot be
    purchased through checkout.
    """
    default_plan = await crud.billing_plan.get_default(db)
    if default_plan is not None:
        return

    logger.info("No default billing plan found, creating 'Free'")
    plan = await crud.billing_plan.create(
        db,
        obj_in=schemas.BillingPlanCreate(name="Free", level=0, is_default=True),
        commit=False,
    )
    await crud.billing_plan_price.create(
        db,
        obj_in={
            "billing_plan_id": plan.id,
            "name": "Free",
            "price": Decimal("0"),
            "currency": "USD",
        },
        commit=False,
    )
    await db.commit()
