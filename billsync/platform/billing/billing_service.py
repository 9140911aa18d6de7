"""Main billing service orchestrator.

This module coordinates subscription operations between the repository, the
state machine and the billing provider. The checkout-success call and the
webhook worker may touch the same subscription concurrently; they converge on
one row through the (organization, plan price) natural key and the provider
subscription id, never through a lock.
"""

from typing import Any, Optional
from uuid import UUID

from billsync import schemas
from billsync.core.datetime_utils import epoch_now
from billsync.core.exceptions import DuplicateRecordError, InvalidStateError, NotFoundException
from billsync.core.logging import ContextualLogger, logger
from billsync.integrations.billing_provider import (
    BillingProvider,
    provider_field,
    subscription_items,
)
from billsync.platform.billing.billing_data_access import BillingRepository
from billsync.platform.billing.billing_info import merge_billing_info
from billsync.platform.billing.provider_state import refresh_period
from billsync.platform.billing.state_machine import can_transition, transition
from billsync.schemas.subscription import SubscriptionStatus


class BillingService:
    """Service for managing organization subscriptions."""

    def __init__(
        self,
        repository: BillingRepository,
        provider: BillingProvider,
        log: Optional[ContextualLogger] = None,
    ):
        """Initialize billing service.

        Args:
            repository: Persistence port, scoped to one unit of work
            provider: Billing provider client
            log: Logger carrying request context
        """
        self.repository = repository
        self.provider = provider
        self.logger = log or logger

    # Lookups

    async def _get_organization(self, organization_id: UUID) -> schemas.Organization:
        organization = await self.repository.get_organization(organization_id)
        if not organization:
            raise NotFoundException(f"Organization {organization_id} not found")
        return organization

    async def _get_plan_price(self, billing_plan_price_id: UUID) -> schemas.BillingPlanPrice:
        price = await self.repository.get_plan_price(billing_plan_price_id)
        if not price:
            raise NotFoundException(f"Plan price {billing_plan_price_id} not found")
        return price

    async def _get_active_subscription(self, organization_id: UUID) -> schemas.Subscription:
        subscription = await self.repository.get_active_subscription(organization_id)
        if not subscription:
            raise NotFoundException("No active subscription found")
        return subscription

    async def _ensure_customer(self, organization: schemas.Organization) -> schemas.Organization:
        """Create the provider customer on first use and persist it right away."""
        if organization.provider_customer_id:
            return organization

        customer_id = await self.provider.create_customer(
            email=organization.billing_email,
            name=organization.name,
            metadata={"organization_id": str(organization.id)},
        )
        organization.provider_customer_id = customer_id
        organization = await self.repository.save_organization(organization)
        self.logger.with_context(provider_customer_id=customer_id).info(
            f"Created billing customer for organization {organization.id}"
        )
        return organization

    # Checkout

    async def start_checkout(
        self,
        organization_id: UUID,
        billing_plan_price_id: UUID,
        promo_code: Optional[str] = None,
    ) -> str:
        """Start a hosted checkout for a plan price and return its URL.

        No subscription row is created here; ``complete_checkout`` does that
        once the customer has paid.
        """
        organization = await self._get_organization(organization_id)
        price = await self._get_plan_price(billing_plan_price_id)
        if price.disabled or not price.provider_price_id:
            raise InvalidStateError("This plan price cannot be purchased")

        organization = await self._ensure_customer(organization)

        promotion_code_id = None
        if promo_code:
            promotion_code_id = await self.provider.get_promotion_code_id(promo_code)
            if not promotion_code_id:
                raise InvalidStateError(f"Unknown promotion code: {promo_code}")

        checkout_url = await self.provider.create_checkout_session(
            price_id=price.provider_price_id,
            customer_id=organization.provider_customer_id,
            promotion_code_id=promotion_code_id,
            metadata={
                "organization_id": str(organization.id),
                "billing_plan_price_id": str(price.id),
            },
            trial_days=price.trial_days,
        )
        self.logger.info(f"Started checkout for plan price {price.id}")
        return checkout_url

    def _new_subscription(
        self,
        organization: schemas.Organization,
        price: schemas.BillingPlanPrice,
        coupon_code: Optional[str] = None,
    ) -> schemas.Subscription:
        """A PENDING subscription carrying the commercial terms of ``price``."""
        return schemas.Subscription(
            organization_id=organization.id,
            billing_plan_price_id=price.id,
            provider_customer_id=organization.provider_customer_id or "",
            provider_price_id=price.provider_price_id or "",
            status=SubscriptionStatus.PENDING,
            billing_cycle=price.billing_cycle,
            amount=price.price,
            currency=price.currency,
            coupon_code=coupon_code or "",
        )

    async def complete_checkout(
        self,
        organization_id: UUID,
        billing_plan_price_id: UUID,
        promo_code: Optional[str] = None,
    ) -> schemas.Subscription:
        """Reconcile the local subscription after a hosted checkout returned.

        The provider is asked for the customer's current subscription; nothing
        the client sends about the subscription itself is trusted.

        Raises:
            NotFoundException: the provider has no subscription for the customer
                yet. The client retries later.
            ExternalServiceError: the provider call failed
        """
        organization = await self._get_organization(organization_id)
        price = await self._get_plan_price(billing_plan_price_id)

        subscription = await self.repository.get_subscription_by_natural_key(
            organization.id, price.id
        )
        if subscription is None:
            subscription = self._new_subscription(organization, price, promo_code)

        organization = await self._ensure_customer(organization)

        provider_subscription = await self.provider.get_subscription_by_customer(
            organization.provider_customer_id
        )
        if provider_subscription is None:
            raise NotFoundException("No subscription found at the billing provider")

        try:
            return await self._apply_checkout(organization, subscription, provider_subscription)
        except DuplicateRecordError:
            # A concurrent writer inserted the row first, adopt theirs
            winner = await self.repository.get_subscription_by_natural_key(
                organization.id, price.id
            )
            if winner is None:
                raise
            self.logger.with_context(subscription_id=str(winner.id)).warning(
                "Lost natural key race on checkout, re-applying to existing subscription"
            )
            organization = await self._get_organization(organization.id)
            return await self._apply_checkout(organization, winner, provider_subscription)

    async def _apply_checkout(
        self,
        organization: schemas.Organization,
        subscription: schemas.Subscription,
        provider_subscription: Any,
    ) -> schemas.Subscription:
        if not subscription.provider_subscription_id:
            subscription.provider_subscription_id = provider_field(provider_subscription, "id", "")
        if not subscription.provider_customer_id:
            subscription.provider_customer_id = organization.provider_customer_id or ""

        provider_status = provider_field(provider_subscription, "status", "")
        if provider_status == "active":
            merge_billing_info(subscription, provider_subscription)
            refresh_period(subscription, provider_subscription)
            transition(subscription, SubscriptionStatus.ACTIVE)

        subscription = await self.repository.save_subscription(subscription)

        organization.billing_plan_price_id = subscription.billing_plan_price_id
        await self.repository.save_organization(organization)

        self.logger.with_context(
            subscription_id=str(subscription.id),
            provider_subscription_id=subscription.provider_subscription_id,
        ).info(
            f"Checkout reconciled: provider status '{provider_status}', "
            f"local status '{subscription.status.value}'"
        )
        return subscription

    # Cancel and resume

    async def cancel(self, organization_id: UUID) -> schemas.Subscription:
        """Cancel the active subscription at the end of the current period."""
        subscription = await self._get_active_subscription(organization_id)
        if subscription.status not in (
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.TRIALING,
        ) or not can_transition(subscription.status, SubscriptionStatus.CANCELING):
            raise InvalidStateError(
                f"Cannot cancel a subscription that is {subscription.status.value}"
            )
        if not subscription.provider_subscription_id:
            raise InvalidStateError("Subscription is not linked to the billing provider")

        await self.provider.cancel_subscription(subscription.provider_subscription_id)

        transition(subscription, SubscriptionStatus.CANCELING)
        subscription.end_ts = subscription.next_billing_ts
        subscription = await self.repository.save_subscription(subscription)
        self.logger.with_context(subscription_id=str(subscription.id)).info(
            f"Subscription will be canceled at {subscription.end_ts}"
        )
        return subscription

    async def resume(self, organization_id: UUID) -> schemas.Subscription:
        """Resume a subscription that is scheduled to cancel.

        ``end_ts`` keeps the end that was scheduled.
        """
        subscription = await self._get_active_subscription(organization_id)
        if subscription.status != SubscriptionStatus.CANCELING:
            raise InvalidStateError("Subscription is not set to cancel")
        if not subscription.provider_subscription_id:
            raise InvalidStateError("Subscription is not linked to the billing provider")

        await self.provider.resume_subscription(subscription.provider_subscription_id)

        transition(subscription, SubscriptionStatus.ACTIVE)
        subscription = await self.repository.save_subscription(subscription)
        self.logger.with_context(subscription_id=str(subscription.id)).info(
            "Subscription resumed"
        )
        return subscription

    # Plan change

    async def change_plan(
        self, organization_id: UUID, billing_plan_price_id: UUID
    ) -> schemas.Subscription:
        """Move the active subscription to another plan price.

        The provider subscription keeps its id; its single line item gets the
        new price with proration. Locally the old row is disabled and a new
        ACTIVE row takes over.
        """
        organization = await self._get_organization(organization_id)
        current = await self._get_active_subscription(organization_id)
        target = await self._get_plan_price(billing_plan_price_id)

        if current.billing_plan_price_id == target.id:
            raise InvalidStateError("Subscription is already on this plan price")
        if not can_transition(current.status, SubscriptionStatus.DISABLED):
            raise InvalidStateError(
                f"Cannot change the plan of a subscription that is {current.status.value}"
            )
        if target.disabled or not target.provider_price_id:
            raise InvalidStateError("This plan price cannot be purchased")
        if not current.provider_subscription_id:
            raise InvalidStateError("Subscription is not linked to the billing provider")
        if await self.repository.get_subscription_by_natural_key(organization.id, target.id):
            raise InvalidStateError("A subscription for this plan price already exists")

        provider_subscription = await self.provider.get_subscription(
            current.provider_subscription_id
        )
        items = subscription_items(provider_subscription)
        if len(items) != 1:
            raise InvalidStateError(
                f"Expected one subscription item at the billing provider, found {len(items)}"
            )

        await self.provider.change_item_price(
            current.provider_subscription_id,
            provider_field(items[0], "id"),
            target.provider_price_id,
            prorate=True,
        )

        log = self.logger.with_context(
            provider_subscription_id=current.provider_subscription_id,
            billing_plan_price_id=str(target.id),
        )
        try:
            transition(current, SubscriptionStatus.DISABLED)
            await self.repository.save_subscription(current)

            replacement = self._new_subscription(organization, target)
            replacement.provider_subscription_id = current.provider_subscription_id
            replacement.provider_customer_id = current.provider_customer_id
            replacement.billing_info = current.billing_info
            replacement.next_billing_ts = current.next_billing_ts
            replacement.start_ts = epoch_now()
            transition(replacement, SubscriptionStatus.ACTIVE)
            replacement = await self.repository.save_subscription(replacement)

            organization.billing_plan_price_id = target.id
            await self.repository.save_organization(organization)
        except Exception:
            log.error(
                "Provider plan change succeeded but local state was not updated; "
                "subscription is inconsistent",
                exc_info=True,
            )
            raise

        log.with_context(subscription_id=str(replacement.id)).info(
            f"Changed plan from {current.billing_plan_price_id} to {target.id}"
        )
        return replacement

    # Queries

    async def get_current_subscription(self, organization_id: UUID) -> schemas.SubscriptionDetail:
        """Get the organization's subscription in force, joined with its plan."""
        subscription = await self._get_active_subscription(organization_id)
        detail = await self.repository.get_subscription_detail(subscription.id)
        if detail is None:
            raise NotFoundException("No active subscription found")
        return detail
