"""Webhook processor for billing provider events.

Maps subscription events to lifecycle handlers. Each handler updates the local
subscription linked to the provider subscription through the state machine.
"""

from typing import Any, Awaitable, Callable, Optional

from billsync.core.exceptions import MalformedPayloadException, NotFoundException
from billsync.core.logging import ContextualLogger, logger
from billsync.integrations.billing_provider import provider_field
from billsync.platform.billing.billing_data_access import BillingRepository
from billsync.platform.billing.billing_info import merge_billing_info
from billsync.platform.billing.provider_state import refresh_period, scheduled_cancel_at
from billsync.platform.billing.state_machine import transition
from billsync.schemas.subscription import Subscription, SubscriptionStatus
from billsync.schemas.webhook import WebhookEvent

StatusHandler = Callable[[Subscription, Any, ContextualLogger], None]


class BillingWebhookProcessor:
    """Process billing provider webhook events."""

    def __init__(self, repository: BillingRepository, log: Optional[ContextualLogger] = None):
        """Initialize webhook processor."""
        self.repository = repository
        self.logger = log or logger

        # Event handler mapping
        self.handlers: dict[str, Callable[[WebhookEvent, ContextualLogger], Awaitable[Any]]] = {
            "customer.subscription.created": self._handle_subscription_changed,
            "customer.subscription.updated": self._handle_subscription_changed,
            "customer.subscription.resumed": self._handle_subscription_changed,
            "customer.subscription.deleted": self._handle_subscription_deleted,
            "customer.subscription.paused": self._handle_subscription_paused,
        }

        # Provider subscription status to lifecycle handler
        self.status_handlers: dict[str, StatusHandler] = {
            "active": self.process_active,
            "trialing": self.process_trial_started,
            "canceled": self.process_canceled,
            "paused": self.process_paused,
            "unpaid": self.process_unpaid,
        }

    async def process_event(self, event: WebhookEvent) -> Optional[Subscription]:
        """Process a webhook event.

        Returns the updated subscription, or None when the event was ignored.

        Raises:
            NotFoundException: no live subscription is linked to the event's
                provider subscription
            InvalidStateError: the event asks for a transition the state
                machine rejects; nothing is written
            MalformedPayloadException: the event object carries no provider
                subscription id
        """
        log = self.logger.with_context(event_id=event.id, event_type=event.type)

        handler = self.handlers.get(event.type)
        if handler is None:
            log.info(f"Unhandled webhook event type: {event.type}")
            return None

        log.info(f"Processing webhook event: {event.type}")
        return await handler(event, log)

    async def _handle_subscription_changed(
        self, event: WebhookEvent, log: ContextualLogger
    ) -> Optional[Subscription]:
        """Handle created, updated and resumed events by provider status."""
        provider_subscription = event.data.object
        status = provider_field(provider_subscription, "status", "")
        status_handler = self.status_handlers.get(status)
        if status_handler is None:
            log.info(f"Ignoring provider subscription status '{status}'")
            return None
        return await self._apply(provider_subscription, status_handler, log)

    async def _handle_subscription_deleted(
        self, event: WebhookEvent, log: ContextualLogger
    ) -> Subscription:
        """Handle the provider deleting a subscription."""
        return await self._apply(event.data.object, self.process_canceled, log)

    async def _handle_subscription_paused(
        self, event: WebhookEvent, log: ContextualLogger
    ) -> Subscription:
        """Handle the provider pausing a subscription."""
        return await self._apply(event.data.object, self.process_paused, log)

    async def _apply(
        self, provider_subscription: Any, status_handler: StatusHandler, log: ContextualLogger
    ) -> Subscription:
        provider_subscription_id = provider_field(provider_subscription, "id", "")
        if not provider_subscription_id:
            raise MalformedPayloadException("Webhook event object has no subscription id")
        log = log.with_context(provider_subscription_id=provider_subscription_id)

        subscription = await self.repository.get_subscription_by_provider_id(
            provider_subscription_id
        )
        if subscription is None:
            raise NotFoundException(
                f"No subscription linked to provider subscription {provider_subscription_id}"
            )

        previous = subscription.status
        status_handler(subscription, provider_subscription, log)
        subscription = await self.repository.save_subscription(subscription)

        log.with_context(subscription_id=str(subscription.id)).info(
            f"Subscription {previous.value} -> {subscription.status.value}"
        )
        return subscription

    # Lifecycle handlers

    def _activate(
        self, subscription: Subscription, provider_subscription: Any, log: ContextualLogger
    ) -> None:
        refresh_period(subscription, provider_subscription)
        if not subscription.has_billing_info and merge_billing_info(
            subscription, provider_subscription
        ):
            log.info("Captured billing info from provider subscription")

        cancel_at = scheduled_cancel_at(provider_subscription)
        if cancel_at:
            transition(subscription, SubscriptionStatus.CANCELING)
            subscription.end_ts = cancel_at
        else:
            transition(subscription, SubscriptionStatus.ACTIVE)

    def process_active(
        self, subscription: Subscription, provider_subscription: Any, log: ContextualLogger
    ) -> None:
        """Provider reports the subscription as paid and running."""
        self._activate(subscription, provider_subscription, log)

    def process_trial_started(
        self, subscription: Subscription, provider_subscription: Any, log: ContextualLogger
    ) -> None:
        """Provider reports a trial. Trials are treated as active locally."""
        self._activate(subscription, provider_subscription, log)

    def process_canceled(
        self, subscription: Subscription, provider_subscription: Any, log: ContextualLogger
    ) -> None:
        """Provider ended the subscription."""
        transition(subscription, SubscriptionStatus.CANCELLED)

    def process_paused(
        self, subscription: Subscription, provider_subscription: Any, log: ContextualLogger
    ) -> None:
        """Provider paused collection. Paused subscriptions are cancelled locally."""
        transition(subscription, SubscriptionStatus.CANCELLED)

    def process_unpaid(
        self, subscription: Subscription, provider_subscription: Any, log: ContextualLogger
    ) -> None:
        """Provider gave up collecting payment."""
        transition(subscription, SubscriptionStatus.UNPAID_CANCELED)
