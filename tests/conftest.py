"""Common test fixtures and configuration for pytest.

Tests run against the in-memory billing repository and a fake billing
provider; no database or network access is needed.
"""

# Import all fixtures so they are automatically available for all tests
from tests.fixtures.common import (  # noqa
    billing_service,
    catalog_service,
    mock_logger,
    organization,
    plan,
    price,
    pro_plan,
    pro_price,
    processor,
    provider,
    repository,
    subscription_factory,
)
