"""Capture of payment method details from provider subscriptions."""

from typing import Any, Optional

from billsync.integrations.billing_provider import provider_field
from billsync.schemas.subscription import BillingInfo, Subscription


def extract_billing_info(provider_subscription: Any) -> Optional[BillingInfo]:
    """Map the expanded default payment method of a provider subscription.

    Returns None when the payment method is not attached or was not expanded
    (webhook payloads carry it as a bare id).
    """
    payment_method = provider_field(provider_subscription, "default_payment_method")
    if payment_method is None or isinstance(payment_method, str):
        return None

    card = provider_field(payment_method, "card")
    billing_details = provider_field(payment_method, "billing_details")
    address = provider_field(billing_details, "address")
    if card is None and address is None:
        return None

    return BillingInfo(
        card_type=provider_field(card, "brand"),
        last4=provider_field(card, "last4"),
        exp_month=provider_field(card, "exp_month"),
        exp_year=provider_field(card, "exp_year"),
        address_line1=provider_field(address, "line1"),
        address_line2=provider_field(address, "line2"),
        city=provider_field(address, "city"),
        state=provider_field(address, "state"),
        zip=provider_field(address, "postal_code"),
        country=provider_field(address, "country"),
    )


def merge_billing_info(subscription: Subscription, provider_subscription: Any) -> bool:
    """Copy the payment method summary onto ``subscription``.

    Returns True when billing info was written, False when the provider had
    nothing to offer.
    """
    billing_info = extract_billing_info(provider_subscription)
    if billing_info is None or billing_info.is_empty():
        return False
    subscription.billing_info = billing_info
    return True
