"""Stripe API client for billing operations.

This module provides a clean interface to Stripe API,
handling all direct Stripe interactions without business logic.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

import stripe

from billsync.core.exceptions import ExternalServiceError
from billsync.core.logging import LoggerConfigurator
from billsync.integrations.billing_provider import BillingProvider
from billsync.schemas.billing_plan import BillingCycle

logger = LoggerConfigurator.configure_logger(__name__, dimensions={"component": "stripe_client"})

# The payment method is needed to capture billing info
_SUBSCRIPTION_EXPAND = ["default_payment_method"]


def to_cents(amount: Decimal) -> int:
    """Convert a decimal amount to the smallest currency unit."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeClient(BillingProvider):
    """Client for Stripe API operations.

    Requests carry the API key explicitly, so several clients can coexist and
    nothing is configured globally.
    """

    def __init__(self, api_key: str, success_url: str, cancel_url: str):
        """Initialize Stripe client.

        Args:
            api_key: Stripe secret key
            success_url: Where the hosted checkout returns after payment
            cancel_url: Where the hosted checkout returns when abandoned
        """
        if not api_key:
            raise ValueError("A Stripe API key is required")

        self._api_key = api_key
        self.success_url = success_url
        self.cancel_url = cancel_url

    @classmethod
    def from_settings(cls, settings: Any) -> "StripeClient":
        """Build a client from application settings."""
        if not settings.STRIPE_ENABLED:
            raise ValueError("Stripe is not enabled in settings")
        return cls(
            api_key=settings.STRIPE_SECRET_KEY,
            success_url=settings.CHECKOUT_SUCCESS_URL,
            cancel_url=settings.CHECKOUT_CANCEL_URL,
        )

    def _sanitize_text(self, text: Optional[str]) -> Optional[str]:
        """Sanitize text for Stripe API (ASCII-only)."""
        if not text:
            return text
        return text.encode("ascii", "replace").decode("ascii")

    def _clean_metadata(self, metadata: Optional[Dict[str, Any]]) -> Dict[str, str]:
        """Clean metadata values for Stripe."""
        if not metadata:
            return {}

        return {
            self._sanitize_text(str(key)): self._sanitize_text(str(value))
            for key, value in metadata.items()
        }

    def _error(self, action: str, e: stripe.StripeError) -> ExternalServiceError:
        logger.with_context(stripe_code=str(e.code or "")).error(f"Failed to {action}: {e}")
        return ExternalServiceError(
            service_name="Stripe", message=f"Failed to {action}: {str(e)}"
        )

    # Customer operations

    async def create_customer(
        self, email: Optional[str], name: str, metadata: Optional[Dict[str, str]] = None
    ) -> str:
        """Create a Stripe customer."""
        params: Dict[str, Any] = {
            "name": self._sanitize_text(name),
            "metadata": self._clean_metadata(metadata),
        }
        if email:
            params["email"] = self._sanitize_text(email)

        try:
            customer = await stripe.Customer.create_async(api_key=self._api_key, **params)
        except stripe.StripeError as e:
            raise self._error("create customer", e) from e
        return customer.id

    # Subscription operations

    async def get_subscription_by_customer(
        self, customer_id: str
    ) -> Optional[stripe.Subscription]:
        """Return the customer's newest subscription in any status."""
        try:
            result = await stripe.Subscription.list_async(
                api_key=self._api_key,
                customer=customer_id,
                status="all",
                limit=1,
                expand=[f"data.{field}" for field in _SUBSCRIPTION_EXPAND],
            )
        except stripe.StripeError as e:
            raise self._error("list subscriptions", e) from e

        return result.data[0] if result.data else None

    async def get_subscription(self, subscription_id: str) -> stripe.Subscription:
        """Retrieve a subscription."""
        try:
            return await stripe.Subscription.retrieve_async(
                subscription_id, api_key=self._api_key, expand=_SUBSCRIPTION_EXPAND
            )
        except stripe.StripeError as e:
            raise self._error("retrieve subscription", e) from e

    async def cancel_subscription(self, subscription_id: str) -> stripe.Subscription:
        """Cancel a subscription at the end of the current period."""
        try:
            return await stripe.Subscription.modify_async(
                subscription_id, api_key=self._api_key, cancel_at_period_end=True
            )
        except stripe.StripeError as e:
            raise self._error("cancel subscription", e) from e

    async def resume_subscription(self, subscription_id: str) -> stripe.Subscription:
        """Resume a subscription that is scheduled to cancel."""
        try:
            return await stripe.Subscription.modify_async(
                subscription_id, api_key=self._api_key, cancel_at_period_end=False
            )
        except stripe.StripeError as e:
            raise self._error("resume subscription", e) from e

    async def change_item_price(
        self, subscription_id: str, item_id: str, new_price_id: str, prorate: bool = True
    ) -> stripe.Subscription:
        """Swap the price of one subscription item, keeping the subscription id."""
        try:
            return await stripe.Subscription.modify_async(
                subscription_id,
                api_key=self._api_key,
                items=[{"id": item_id, "price": new_price_id}],
                proration_behavior="create_prorations" if prorate else "none",
            )
        except stripe.StripeError as e:
            raise self._error("change subscription price", e) from e

    # Catalog operations

    async def create_product(
        self,
        name: str,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Create a product for a billing plan."""
        params: Dict[str, Any] = {
            "name": self._sanitize_text(name),
            "metadata": self._clean_metadata(metadata),
        }
        if description:
            params["description"] = self._sanitize_text(description)

        try:
            product = await stripe.Product.create_async(api_key=self._api_key, **params)
        except stripe.StripeError as e:
            raise self._error("create product", e) from e
        return product.id

    async def update_product(
        self, product_id: str, name: str, description: Optional[str] = None
    ) -> None:
        """Update the display fields of a product."""
        try:
            await stripe.Product.modify_async(
                product_id,
                api_key=self._api_key,
                name=self._sanitize_text(name),
                # An empty string clears the description
                description=self._sanitize_text(description) or "",
            )
        except stripe.StripeError as e:
            raise self._error("update product", e) from e

    async def create_price(
        self,
        product_id: str,
        amount: Decimal,
        currency: str,
        billing_cycle: BillingCycle,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Create a recurring price on a product."""
        interval, interval_count = BillingCycle(billing_cycle).to_interval()
        try:
            price = await stripe.Price.create_async(
                api_key=self._api_key,
                product=product_id,
                unit_amount=to_cents(amount),
                currency=currency.lower(),
                recurring={"interval": interval, "interval_count": interval_count},
                metadata=self._clean_metadata(metadata),
            )
        except stripe.StripeError as e:
            raise self._error("create price", e) from e
        return price.id

    async def update_price(
        self,
        price_id: str,
        product_id: str,
        amount: Decimal,
        currency: str,
        billing_cycle: BillingCycle,
    ) -> str:
        """Replace a price.

        Stripe prices are immutable, so a new price is created and the old one
        archived. Subscriptions already on the old price keep it.
        """
        new_price_id = await self.create_price(
            product_id, amount, currency, billing_cycle, metadata={"replaces": price_id}
        )
        try:
            await stripe.Price.modify_async(price_id, api_key=self._api_key, active=False)
        except stripe.StripeError as e:
            raise self._error("archive price", e) from e
        return new_price_id

    # Checkout operations

    async def create_checkout_session(
        self,
        price_id: str,
        customer_id: str,
        promotion_code_id: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        trial_days: int = 0,
    ) -> str:
        """Create a subscription checkout session."""
        clean_metadata = self._clean_metadata(metadata)
        subscription_data: Dict[str, Any] = {"metadata": clean_metadata}
        if trial_days:
            subscription_data["trial_period_days"] = trial_days

        params: Dict[str, Any] = {
            "customer": customer_id,
            "line_items": [{"price": price_id, "quantity": 1}],
            "mode": "subscription",
            "success_url": self._sanitize_text(self.success_url),
            "cancel_url": self._sanitize_text(self.cancel_url),
            "metadata": clean_metadata,
            "billing_address_collection": "required",
            "customer_update": {"address": "auto", "name": "auto"},
            "subscription_data": subscription_data,
        }
        # Stripe rejects allow_promotion_codes together with discounts
        if promotion_code_id:
            params["discounts"] = [{"promotion_code": promotion_code_id}]
        else:
            params["allow_promotion_codes"] = True

        try:
            session = await stripe.checkout.Session.create_async(api_key=self._api_key, **params)
        except stripe.StripeError as e:
            raise self._error("create checkout session", e) from e
        return session.url

    async def get_promotion_code_id(self, code: str) -> Optional[str]:
        """Look up an active promotion code by its customer-facing code."""
        try:
            result = await stripe.PromotionCode.list_async(
                api_key=self._api_key, code=code, active=True, limit=1
            )
        except stripe.StripeError as e:
            raise self._error("look up promotion code", e) from e

        return result.data[0].id if result.data else None
