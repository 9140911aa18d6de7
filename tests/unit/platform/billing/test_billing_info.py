"""Unit tests for capturing billing info from provider subscriptions."""

import uuid
from types import SimpleNamespace

import stripe

from billsync import schemas
from billsync.platform.billing.billing_info import extract_billing_info, merge_billing_info
from tests.fixtures.providers import make_provider_subscription


def test_extract_from_dict():
    """Card and address fields are mapped from an expanded payment method."""
    info = extract_billing_info(make_provider_subscription())

    assert info.card_type == "visa"
    assert info.last4 == "4242"
    assert info.exp_month == 12
    assert info.exp_year == 2030
    assert info.address_line1 == "1 Main St"
    assert info.address_line2 is None
    assert info.city == "Springfield"
    assert info.state == "IL"
    assert info.zip == "62701"
    assert info.country == "US"


def test_extract_from_stripe_object():
    """SDK objects are read the same way as webhook dicts."""
    provider_subscription = stripe.Subscription.construct_from(
        make_provider_subscription(), "sk_test"
    )

    info = extract_billing_info(provider_subscription)

    assert info.card_type == "visa"
    assert info.zip == "62701"


def test_extract_from_attribute_object():
    """Objects exposing fields as attributes are supported."""
    provider_subscription = SimpleNamespace(
        default_payment_method=SimpleNamespace(
            card=SimpleNamespace(brand="amex", last4="0005", exp_month=1, exp_year=2031),
            billing_details=None,
        )
    )

    info = extract_billing_info(provider_subscription)

    assert info.card_type == "amex"
    assert info.city is None


def test_unexpanded_payment_method():
    """A payment method id without details yields nothing."""
    provider_subscription = make_provider_subscription()
    provider_subscription["default_payment_method"] = "pm_123"

    assert extract_billing_info(provider_subscription) is None


def test_no_payment_method():
    """Subscriptions without a payment method yield nothing."""
    assert extract_billing_info(make_provider_subscription(with_payment_method=False)) is None


def test_merge_sets_billing_info():
    """Merging copies the captured info onto the subscription."""
    subscription = schemas.Subscription(organization_id=uuid.uuid4())

    assert merge_billing_info(subscription, make_provider_subscription())
    assert subscription.has_billing_info
    assert subscription.billing_info.last4 == "4242"


def test_merge_keeps_existing_when_provider_has_nothing():
    """Merging never clears billing info already captured."""
    existing = schemas.BillingInfo(card_type="visa", last4="1111")
    subscription = schemas.Subscription(organization_id=uuid.uuid4(), billing_info=existing)

    assert not merge_billing_info(
        subscription, make_provider_subscription(with_payment_method=False)
    )
    assert subscription.billing_info == existing
