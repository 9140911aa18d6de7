"""Reading period and cancellation state from provider subscriptions."""

from typing import Any

from billsync.integrations.billing_provider import provider_field, subscription_items
from billsync.schemas.subscription import Subscription


def _period_field(provider_subscription: Any, key: str) -> int:
    # Newer provider API versions report the period on the line items only
    value = provider_field(provider_subscription, key)
    if value is None:
        items = subscription_items(provider_subscription)
        if items:
            value = provider_field(items[0], key)
    return int(value or 0)


def refresh_period(subscription: Subscription, provider_subscription: Any) -> None:
    """Copy billing period timestamps from the provider onto ``subscription``."""
    start = int(provider_field(provider_subscription, "start_date", 0))
    if start and not subscription.start_ts:
        subscription.start_ts = start

    next_billing = _period_field(provider_subscription, "current_period_end")
    if next_billing:
        subscription.next_billing_ts = next_billing

    trial_end = int(provider_field(provider_subscription, "trial_end", 0))
    if trial_end:
        subscription.trial_end_ts = trial_end


def scheduled_cancel_at(provider_subscription: Any) -> int:
    """Epoch second at which the provider will cancel, or 0 when none is scheduled."""
    cancel_at = int(provider_field(provider_subscription, "cancel_at", 0))
    if cancel_at:
        return cancel_at
    if provider_field(provider_subscription, "cancel_at_period_end", False):
        return _period_field(provider_subscription, "current_period_end")
    return 0
