"""Main module of the FastAPI application.

This module sets up the FastAPI application, the webhook worker and the
middleware to log incoming requests and unhandled exceptions.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from billsync import schemas
from billsync.api.middleware import (
    add_request_id,
    billsync_exception_handler,
    exception_logging_middleware,
    external_service_exception_handler,
    invalid_state_exception_handler,
    log_requests,
    not_found_exception_handler,
    validation_exception_handler,
)
from billsync.api.v1.api import api_router
from billsync.core.config import settings
from billsync.core.exceptions import (
    BillsyncException,
    ExternalServiceError,
    InvalidStateError,
    NotFoundException,
)
from billsync.core.logging import logger
from billsync.db.init_db import create_tables, init_db
from billsync.db.session import AsyncSessionLocal, async_engine, get_db_context
from billsync.integrations.stripe_client import StripeClient
from billsync.platform.billing.billing_data_access import SqlBillingRepository
from billsync.platform.billing.webhook_handler import BillingWebhookProcessor
from billsync.platform.billing.webhook_ingress import WebhookIngress


async def process_webhook_event(event: schemas.WebhookEvent) -> Optional[schemas.Subscription]:
    """Process one webhook event in its own database session."""
    async with get_db_context() as db:
        processor = BillingWebhookProcessor(SqlBillingRepository(db))
        return await processor.process_event(event)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events.

    Creates tables when asked to, builds the billing provider client and runs
    the webhook worker for the lifetime of the application.
    """
    if settings.RUN_DB_INIT:
        logger.info("Creating database tables...")
        await create_tables(async_engine)
        async with AsyncSessionLocal() as db:
            await init_db(db)

    if settings.STRIPE_ENABLED:
        app.state.billing_provider = StripeClient.from_settings(settings)
    else:
        logger.warning("Stripe is disabled; billing endpoints will answer 502")
        app.state.billing_provider = None

    if not settings.webhook_configured:
        logger.warning("BILLING_WEBHOOK_SECRET is not set; webhooks will be rejected")

    ingress = WebhookIngress(process_webhook_event, maxsize=settings.WEBHOOK_QUEUE_SIZE)
    app.state.webhook_ingress = ingress
    await ingress.start()

    yield

    await ingress.stop()
    await async_engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.include_router(api_router)

# Register middleware directly
app.middleware("http")(add_request_id)
app.middleware("http")(log_requests)
app.middleware("http")(exception_logging_middleware)

# Register exception handlers
app.exception_handler(RequestValidationError)(validation_exception_handler)
app.exception_handler(ValidationError)(validation_exception_handler)
app.exception_handler(NotFoundException)(not_found_exception_handler)
app.exception_handler(InvalidStateError)(invalid_state_exception_handler)
app.exception_handler(ExternalServiceError)(external_service_exception_handler)

# Remaining billsync exceptions are mapped by type
app.exception_handler(BillsyncException)(billsync_exception_handler)
