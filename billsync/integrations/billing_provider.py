"""Billing provider port.

Provider objects (subscriptions, items, payment methods) are returned as the
provider SDK hands them out. Readers go through ``provider_field`` so that the
same code handles SDK objects and the plain dicts found in webhook payloads.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional

from billsync.schemas.billing_plan import BillingCycle


def provider_field(obj: Any, key: str, default: Any = None) -> Any:
    """Read ``key`` from a provider object or dict, returning ``default`` when absent."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(key)
    else:
        # SDK objects support item access; plain objects fall back to attributes
        try:
            value = obj[key]
        except (KeyError, TypeError):
            value = getattr(obj, key, None)
    return default if value is None else value


def subscription_items(provider_subscription: Any) -> list:
    """Line items of a provider subscription."""
    items = provider_field(provider_subscription, "items")
    return list(provider_field(items, "data", []) or [])


class BillingProvider(ABC):
    """Abstract base class for payment providers."""

    # Customers

    @abstractmethod
    async def create_customer(
        self, email: Optional[str], name: str, metadata: Optional[Dict[str, str]] = None
    ) -> str:
        """Create a customer and return its provider id."""
        pass

    # Subscriptions

    @abstractmethod
    async def get_subscription_by_customer(self, customer_id: str) -> Optional[Any]:
        """Return the customer's most recent subscription, or None."""
        pass

    @abstractmethod
    async def get_subscription(self, subscription_id: str) -> Any:
        """Retrieve a subscription with its payment method expanded."""
        pass

    @abstractmethod
    async def cancel_subscription(self, subscription_id: str) -> Any:
        """Schedule cancellation at the end of the current period."""
        pass

    @abstractmethod
    async def resume_subscription(self, subscription_id: str) -> Any:
        """Clear a scheduled cancellation."""
        pass

    @abstractmethod
    async def change_item_price(
        self, subscription_id: str, item_id: str, new_price_id: str, prorate: bool = True
    ) -> Any:
        """Swap the price of a subscription line item in place."""
        pass

    # Catalog

    @abstractmethod
    async def create_product(
        self,
        name: str,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Create a product and return its provider id."""
        pass

    @abstractmethod
    async def update_product(
        self, product_id: str, name: str, description: Optional[str] = None
    ) -> None:
        """Update a product's display fields."""
        pass

    @abstractmethod
    async def create_price(
        self,
        product_id: str,
        amount: Decimal,
        currency: str,
        billing_cycle: BillingCycle,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Create a recurring price and return its provider id."""
        pass

    @abstractmethod
    async def update_price(
        self,
        price_id: str,
        product_id: str,
        amount: Decimal,
        currency: str,
        billing_cycle: BillingCycle,
    ) -> str:
        """Replace a price and return the id of the replacement."""
        pass

    # Checkout

    @abstractmethod
    async def create_checkout_session(
        self,
        price_id: str,
        customer_id: str,
        promotion_code_id: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        trial_days: int = 0,
    ) -> str:
        """Create a hosted checkout session and return its URL."""
        pass

    @abstractmethod
    async def get_promotion_code_id(self, code: str) -> Optional[str]:
        """Resolve a customer-facing promotion code, or None when unknown."""
        pass
