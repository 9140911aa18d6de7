"""End-to-end tests for webhook delivery through the real ingress and processor."""

import json
from unittest.mock import MagicMock

import pytest

from billsync.core.config import settings
from billsync.core.exceptions import NotFoundException
from billsync.platform.billing.webhook_ingress import WebhookIngress
from billsync.platform.billing.webhook_verifier import compute_signature
from billsync.schemas.subscription import SubscriptionStatus as S
from tests.fixtures.providers import make_provider_subscription

URL = "/billing/webhook"


class CapturingIngress(WebhookIngress):
    """Real ingress that keeps the futures handed back to the endpoint."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.futures = []

    async def submit(self, event):
        future = await super().submit(event)
        self.futures.append(future)
        return future


@pytest.fixture
def ingress_log():
    """Logger mock for the ingress worker."""
    log = MagicMock()
    log.with_context.return_value = log
    return log


@pytest.fixture
async def ingress(processor, ingress_log):
    """Running ingress that hands events to the webhook processor."""
    worker = CapturingIngress(processor.process_event, log=ingress_log)
    await worker.start()
    yield worker
    await worker.stop()


def _signed(event_id: str, provider_subscription: dict, secret: str = "whsec_test"):
    body = json.dumps(
        {
            "id": event_id,
            "type": "customer.subscription.updated",
            "created": 1_700_000_000,
            "data": {"object": provider_subscription},
        }
    ).encode()
    headers = {
        settings.BILLING_WEBHOOK_SIGNATURE_HEADER: compute_signature(body, secret),
        "Content-Type": "application/json",
    }
    return body, headers


class TestWebhookPipeline:
    """Signed webhook requests processed by the background worker."""

    @pytest.mark.asyncio
    async def test_canceled_event_without_local_row(
        self, client, ingress, ingress_log, repository
    ):
        """The provider gets 200 while the worker logs the missing subscription."""
        writes = repository.writes
        body, headers = _signed("evt_missing", make_provider_subscription(status="canceled"))

        response = await client.post(URL, content=body, headers=headers)
        await ingress.drain()

        assert response.status_code == 200
        (future,) = ingress.futures
        assert isinstance(future.exception(), NotFoundException)
        ingress_log.with_context.assert_any_call(
            event_id="evt_missing", event_type="customer.subscription.updated"
        )
        ingress_log.error.assert_called_once()
        assert "NotFoundException" in ingress_log.error.call_args[0][0]
        assert repository.writes == writes

    @pytest.mark.asyncio
    async def test_canceled_event_updates_linked_row(
        self, client, ingress, ingress_log, repository, organization, price, subscription_factory
    ):
        """A matching row is cancelled by the worker after the response."""
        subscription = await subscription_factory(organization, price)
        body, headers = _signed("evt_cancel", make_provider_subscription(status="canceled"))

        response = await client.post(URL, content=body, headers=headers)
        await ingress.drain()

        assert response.status_code == 200
        (future,) = ingress.futures
        assert future.result().id == subscription.id
        stored = await repository.get_subscription(subscription.id)
        assert stored.status == S.CANCELLED
        ingress_log.error.assert_not_called()
