"""In-process billing provider used by the unit tests."""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from billsync.core.exceptions import ExternalServiceError
from billsync.integrations.billing_provider import BillingProvider
from billsync.schemas.billing_plan import BillingCycle

PERIOD_START = 1_700_000_000
PERIOD_END = 1_702_592_000


def make_provider_subscription(
    subscription_id: str = "sub_123",
    customer_id: str = "cus_123",
    status: str = "active",
    price_id: str = "price_basic_monthly",
    cancel_at: Optional[int] = None,
    cancel_at_period_end: bool = False,
    with_payment_method: bool = True,
    item_ids: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Build a subscription shaped like the provider's expanded JSON."""
    item_ids = item_ids if item_ids is not None else ["si_1"]
    subscription: Dict[str, Any] = {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer_id,
        "status": status,
        "start_date": PERIOD_START,
        "cancel_at": cancel_at,
        "cancel_at_period_end": cancel_at_period_end,
        "trial_end": None,
        "items": {
            "object": "list",
            "data": [
                {
                    "id": item_id,
                    "price": {"id": price_id},
                    "current_period_start": PERIOD_START,
                    "current_period_end": PERIOD_END,
                }
                for item_id in item_ids
            ],
        },
        "default_payment_method": None,
    }
    if with_payment_method:
        subscription["default_payment_method"] = {
            "id": "pm_123",
            "card": {"brand": "visa", "last4": "4242", "exp_month": 12, "exp_year": 2030},
            "billing_details": {
                "address": {
                    "line1": "1 Main St",
                    "line2": None,
                    "city": "Springfield",
                    "state": "IL",
                    "postal_code": "62701",
                    "country": "US",
                }
            },
        }
    return subscription


class FakeBillingProvider(BillingProvider):
    """Billing provider that keeps its state in dicts and records every call."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.customer_subscriptions: Dict[str, Dict[str, Any]] = {}
        self.subscriptions: Dict[str, Dict[str, Any]] = {}
        self.promotion_codes: Dict[str, str] = {}
        self.fail_with: Optional[ExternalServiceError] = None
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}_{self._counter}"

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if self.fail_with is not None:
            raise self.fail_with

    def called(self, name: str) -> List[tuple]:
        """Calls made to the method ``name``."""
        return [call for call in self.calls if call[0] == name]

    def add_subscription(self, subscription: Dict[str, Any]) -> Dict[str, Any]:
        """Make ``subscription`` the customer's current one."""
        self.subscriptions[subscription["id"]] = subscription
        self.customer_subscriptions[subscription["customer"]] = subscription
        return subscription

    async def create_customer(
        self, email: Optional[str], name: str, metadata: Optional[Dict[str, str]] = None
    ) -> str:
        self._record("create_customer", email, name, metadata)
        return self._next_id("cus")

    async def get_subscription_by_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        self._record("get_subscription_by_customer", customer_id)
        return self.customer_subscriptions.get(customer_id)

    async def get_subscription(self, subscription_id: str) -> Dict[str, Any]:
        self._record("get_subscription", subscription_id)
        if subscription_id not in self.subscriptions:
            raise ExternalServiceError("Stripe", f"No such subscription: {subscription_id}")
        return self.subscriptions[subscription_id]

    async def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        self._record("cancel_subscription", subscription_id)
        subscription = self.subscriptions.get(subscription_id, {"id": subscription_id})
        subscription["cancel_at_period_end"] = True
        return subscription

    async def resume_subscription(self, subscription_id: str) -> Dict[str, Any]:
        self._record("resume_subscription", subscription_id)
        subscription = self.subscriptions.get(subscription_id, {"id": subscription_id})
        subscription["cancel_at_period_end"] = False
        return subscription

    async def change_item_price(
        self, subscription_id: str, item_id: str, new_price_id: str, prorate: bool = True
    ) -> Dict[str, Any]:
        self._record("change_item_price", subscription_id, item_id, new_price_id, prorate)
        subscription = self.subscriptions[subscription_id]
        for item in subscription["items"]["data"]:
            if item["id"] == item_id:
                item["price"] = {"id": new_price_id}
        return subscription

    async def create_product(
        self,
        name: str,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        self._record("create_product", name, description, metadata)
        return self._next_id("prod")

    async def update_product(
        self, product_id: str, name: str, description: Optional[str] = None
    ) -> None:
        self._record("update_product", product_id, name, description)

    async def create_price(
        self,
        product_id: str,
        amount: Decimal,
        currency: str,
        billing_cycle: BillingCycle,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        self._record("create_price", product_id, amount, currency, billing_cycle)
        return self._next_id("price")

    async def update_price(
        self,
        price_id: str,
        product_id: str,
        amount: Decimal,
        currency: str,
        billing_cycle: BillingCycle,
    ) -> str:
        self._record("update_price", price_id, product_id, amount, currency, billing_cycle)
        return self._next_id("price")

    async def create_checkout_session(
        self,
        price_id: str,
        customer_id: str,
        promotion_code_id: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        trial_days: int = 0,
    ) -> str:
        self._record(
            "create_checkout_session", price_id, customer_id, promotion_code_id, metadata
        )
        return f"https://checkout.example.com/{self._next_id('cs')}"

    async def get_promotion_code_id(self, code: str) -> Optional[str]:
        self._record("get_promotion_code_id", code)
        return self.promotion_codes.get(code)
