"""Keeps the plan catalog and the billing provider's products and prices in step."""

from typing import Optional
from uuid import UUID

from billsync import schemas
from billsync.core.exceptions import InvalidStateError, NotFoundException
from billsync.core.logging import ContextualLogger, logger
from billsync.integrations.billing_provider import BillingProvider
from billsync.platform.billing.billing_data_access import BillingRepository
from billsync.platform.billing.snapshot import snapshot_diff, take_snapshot

# Fields mirrored at the provider; changes to anything else stay local
PLAN_PROVIDER_FIELDS = ("name", "description")
PRICE_PROVIDER_FIELDS = ("price", "currency", "billing_cycle")


class CatalogService:
    """Create and update plans and plan prices, mirroring them at the provider."""

    def __init__(
        self,
        repository: BillingRepository,
        provider: BillingProvider,
        log: Optional[ContextualLogger] = None,
    ):
        """Initialize catalog service."""
        self.repository = repository
        self.provider = provider
        self.logger = log or logger

    async def _get_plan(self, plan_id: UUID) -> schemas.BillingPlan:
        plan = await self.repository.get_plan(plan_id)
        if not plan:
            raise NotFoundException(f"Billing plan {plan_id} not found")
        return plan

    async def create_plan(self, plan_in: schemas.BillingPlanCreate) -> schemas.BillingPlan:
        """Create a plan and its provider product."""
        product_id = await self.provider.create_product(
            name=plan_in.name,
            description=plan_in.description,
            metadata={"level": str(plan_in.level)},
        )
        plan = schemas.BillingPlan(**plan_in.model_dump(), provider_product_id=product_id)
        plan = await self.repository.save_plan(plan)
        self.logger.with_context(provider_product_id=product_id).info(
            f"Created billing plan '{plan.name}'"
        )
        return plan

    async def update_plan(
        self, plan_id: UUID, plan_in: schemas.BillingPlanUpdate
    ) -> schemas.BillingPlan:
        """Update a plan, pushing name and description changes to the provider."""
        plan = await self._get_plan(plan_id)
        before = take_snapshot(plan, PLAN_PROVIDER_FIELDS)

        plan = plan.model_copy(update=plan_in.model_dump(exclude_unset=True))
        changed = snapshot_diff(before, plan, PLAN_PROVIDER_FIELDS)
        if changed and plan.provider_product_id:
            await self.provider.update_product(
                plan.provider_product_id, name=plan.name, description=plan.description
            )
            self.logger.info(f"Updated provider product of plan {plan.id}: {sorted(changed)}")

        return await self.repository.save_plan(plan)

    async def create_price(
        self, plan_id: UUID, price_in: schemas.BillingPlanPriceCreate
    ) -> schemas.BillingPlanPrice:
        """Create a plan price and its provider price."""
        plan = await self._get_plan(plan_id)
        if not plan.provider_product_id:
            raise InvalidStateError(f"Billing plan {plan.id} has no provider product")

        provider_price_id = await self.provider.create_price(
            product_id=plan.provider_product_id,
            amount=price_in.price,
            currency=price_in.currency,
            billing_cycle=price_in.billing_cycle,
            metadata={"billing_plan_id": str(plan.id)},
        )
        price = schemas.BillingPlanPrice(
            **price_in.model_dump(),
            billing_plan_id=plan.id,
            provider_price_id=provider_price_id,
        )
        price = await self.repository.save_plan_price(price)
        self.logger.with_context(provider_price_id=provider_price_id).info(
            f"Created price {price.price} {price.currency} ({price.billing_cycle.value}) "
            f"for plan '{plan.name}'"
        )
        return price

    async def update_price(
        self, price_id: UUID, price_in: schemas.BillingPlanPriceUpdate
    ) -> schemas.BillingPlanPrice:
        """Update a plan price.

        A change of amount, currency or cycle replaces the provider price.
        Subscriptions keep the amount they were sold at.
        """
        price = await self.repository.get_plan_price(price_id)
        if not price:
            raise NotFoundException(f"Plan price {price_id} not found")
        before = take_snapshot(price, PRICE_PROVIDER_FIELDS)

        price = price.model_copy(update=price_in.model_dump(exclude_unset=True))
        changed = snapshot_diff(before, price, PRICE_PROVIDER_FIELDS)
        if changed and price.provider_price_id:
            plan = await self._get_plan(price.billing_plan_id)
            if not plan.provider_product_id:
                raise InvalidStateError(f"Billing plan {plan.id} has no provider product")
            old_price_id = price.provider_price_id
            price.provider_price_id = await self.provider.update_price(
                price_id=old_price_id,
                product_id=plan.provider_product_id,
                amount=price.price,
                currency=price.currency,
                billing_cycle=price.billing_cycle,
            )
            self.logger.with_context(provider_price_id=price.provider_price_id).info(
                f"Replaced provider price {old_price_id}: {sorted(changed)}"
            )

        return await self.repository.save_plan_price(price)
