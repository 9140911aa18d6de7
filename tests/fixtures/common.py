"""Common test fixtures."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from billsync import schemas
from billsync.platform.billing.billing_data_access import InMemoryBillingRepository
from billsync.platform.billing.billing_service import BillingService
from billsync.platform.billing.catalog_service import CatalogService
from billsync.platform.billing.webhook_handler import BillingWebhookProcessor
from tests.fixtures.providers import FakeBillingProvider


@pytest.fixture
def mock_logger():
    """A logger whose contextual children are all the same mock."""
    log = MagicMock()
    log.with_context.return_value = log
    return log


@pytest.fixture
def repository():
    """Empty in-memory billing repository."""
    return InMemoryBillingRepository()


@pytest.fixture
def provider():
    """Fake billing provider."""
    return FakeBillingProvider()


@pytest.fixture
async def organization(repository):
    """An organization that already has a provider customer."""
    return await repository.save_organization(
        schemas.Organization(
            name="Acme",
            billing_email="billing@acme.test",
            provider_customer_id="cus_123",
        )
    )


@pytest.fixture
async def plan(repository):
    """A paid plan mirrored at the provider."""
    return await repository.save_plan(
        schemas.BillingPlan(name="Basic", level=1, provider_product_id="prod_basic")
    )


@pytest.fixture
async def pro_plan(repository):
    """A richer paid plan mirrored at the provider."""
    return await repository.save_plan(
        schemas.BillingPlan(name="Pro", level=2, provider_product_id="prod_pro")
    )


@pytest.fixture
async def price(repository, plan):
    """Monthly price of the basic plan."""
    return await repository.save_plan_price(
        schemas.BillingPlanPrice(
            billing_plan_id=plan.id,
            name="Basic monthly",
            provider_price_id="price_basic_monthly",
            price=Decimal("29.00"),
            currency="USD",
            billing_cycle=schemas.BillingCycle.MONTHLY,
        )
    )


@pytest.fixture
async def pro_price(repository, pro_plan):
    """Annual price of the pro plan."""
    return await repository.save_plan_price(
        schemas.BillingPlanPrice(
            billing_plan_id=pro_plan.id,
            name="Pro annual",
            provider_price_id="price_pro_annual",
            price=Decimal("990.00"),
            currency="USD",
            billing_cycle=schemas.BillingCycle.ANNUALLY,
        )
    )


@pytest.fixture
def billing_service(repository, provider, mock_logger):
    """Billing service over the in-memory repository and fake provider."""
    return BillingService(repository, provider, log=mock_logger)


@pytest.fixture
def catalog_service(repository, provider, mock_logger):
    """Catalog service over the in-memory repository and fake provider."""
    return CatalogService(repository, provider, log=mock_logger)


@pytest.fixture
def processor(repository, mock_logger):
    """Webhook processor over the in-memory repository."""
    return BillingWebhookProcessor(repository, log=mock_logger)


@pytest.fixture
def subscription_factory(repository):
    """Insert subscriptions directly into the repository."""

    async def _create(organization, price, **overrides) -> schemas.Subscription:
        values = {
            "organization_id": organization.id,
            "billing_plan_price_id": price.id,
            "provider_subscription_id": "sub_123",
            "provider_customer_id": organization.provider_customer_id or "",
            "provider_price_id": price.provider_price_id or "",
            "status": schemas.SubscriptionStatus.ACTIVE,
            "amount": price.price,
            "billing_cycle": price.billing_cycle,
            "next_billing_ts": 1_702_592_000,
        }
        values.update(overrides)
        return await repository.save_subscription(schemas.Subscription(**values))

    return _create
