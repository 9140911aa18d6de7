"""API endpoints for the billing plan catalog."""

from uuid import UUID

from fastapi import APIRouter, Depends

from billsync import schemas
from billsync.api import deps
from billsync.platform.billing.catalog_service import CatalogService

router = APIRouter()


@router.post("", response_model=schemas.BillingPlan)
async def create_plan(
    plan_in: schemas.BillingPlanCreate,
    catalog: CatalogService = Depends(deps.get_catalog_service),
) -> schemas.BillingPlan:
    """Create a billing plan and its provider product."""
    return await catalog.create_plan(plan_in)


@router.patch("/prices/{price_id}", response_model=schemas.BillingPlanPrice)
async def update_plan_price(
    price_id: UUID,
    price_in: schemas.BillingPlanPriceUpdate,
    catalog: CatalogService = Depends(deps.get_catalog_service),
) -> schemas.BillingPlanPrice:
    """Update a plan price.

    Changing the amount, currency or cycle replaces the provider price;
    existing subscriptions keep what they were sold.
    """
    return await catalog.update_price(price_id, price_in)


@router.patch("/{plan_id}", response_model=schemas.BillingPlan)
async def update_plan(
    plan_id: UUID,
    plan_in: schemas.BillingPlanUpdate,
    catalog: CatalogService = Depends(deps.get_catalog_service),
) -> schemas.BillingPlan:
    """Update a billing plan."""
    return await catalog.update_plan(plan_id, plan_in)


@router.post("/{plan_id}/prices", response_model=schemas.BillingPlanPrice)
async def create_plan_price(
    plan_id: UUID,
    price_in: schemas.BillingPlanPriceCreate,
    catalog: CatalogService = Depends(deps.get_catalog_service),
) -> schemas.BillingPlanPrice:
    """Add a price to a billing plan."""
    return await catalog.create_price(plan_id, price_in)
