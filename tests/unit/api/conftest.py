"""Fixtures for API tests.

The application runs without its lifespan; dependencies are overridden with
the in-memory repository, the fake provider and a recording ingress.
"""

import asyncio

import httpx
import pytest

from billsync.api import deps
from billsync.main import app

class RecordingIngress:
    """Ingress stand-in that processes nothing and remembers what it was given."""

    def __init__(self):
        self.events = []

    async def submit(self, event):
        self.events.append(event)
        future = asyncio.get_running_loop().create_future()
        future.set_result(None)
        return future


@pytest.fixture
def ingress():
    """Recording webhook ingress."""
    return RecordingIngress()


@pytest.fixture
def webhook_secret():
    """Secret the test webhooks are signed with."""
    return "whsec_test"


@pytest.fixture
async def client(repository, provider, ingress, webhook_secret):
    """HTTP client bound to the application with test dependencies."""
    app.dependency_overrides[deps.get_repository] = lambda: repository
    app.dependency_overrides[deps.get_billing_provider] = lambda: provider
    app.dependency_overrides[deps.get_webhook_ingress] = lambda: ingress
    app.dependency_overrides[deps.get_webhook_secret] = lambda: webhook_secret

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()


@pytest.fixture
def org_headers(organization):
    """Headers selecting the test organization."""
    return {"X-Organization-ID": str(organization.id)}
