"""API endpoints for billing operations.

This module provides the HTTP interface for billing operations,
delegating all business logic to the billing service.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Request, Response

from billsync import schemas
from billsync.api import deps
from billsync.api.context import ApiContext
from billsync.core.config import settings
from billsync.core.exceptions import WebhookMisconfiguredException
from billsync.core.logging import logger
from billsync.platform.billing.billing_service import BillingService
from billsync.platform.billing.webhook_ingress import WebhookIngress
from billsync.platform.billing.webhook_verifier import parse_event, verify_signature

router = APIRouter()


@router.post("/checkout/plan-prices/{price_id}", response_model=schemas.CheckoutSessionResponse)
async def create_checkout_session(
    price_id: UUID,
    request: Optional[schemas.CheckoutSessionRequest] = Body(None),
    billing_service: BillingService = Depends(deps.get_billing_service),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.CheckoutSessionResponse:
    """Create a hosted checkout session for a plan price.

    Args:
        price_id: Plan price to subscribe to
        request: Optional promotion code
        billing_service: Billing service for the organization
        ctx: API context

    Returns:
        Checkout session URL to redirect the customer to
    """
    checkout_url = await billing_service.start_checkout(
        ctx.organization.id,
        price_id,
        promo_code=request.promo_code if request else None,
    )
    return schemas.CheckoutSessionResponse(checkout_url=checkout_url)


@router.post("/checkout/success", response_model=schemas.Subscription)
async def checkout_success(
    request: schemas.CheckoutSuccessRequest,
    billing_service: BillingService = Depends(deps.get_billing_service),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.Subscription:
    """Reconcile the subscription once the hosted checkout has returned.

    The billing provider is queried for the customer's subscription, so the
    call is safe to repeat. A 404 means the provider has not created the
    subscription yet and the client should retry.
    """
    return await billing_service.complete_checkout(
        ctx.organization.id,
        request.billing_plan_price_id,
        promo_code=request.promo_code,
    )


@router.post("/cancel", response_model=schemas.Subscription)
async def cancel_subscription(
    billing_service: BillingService = Depends(deps.get_billing_service),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.Subscription:
    """Cancel the active subscription at the end of the current billing period."""
    return await billing_service.cancel(ctx.organization.id)


@router.post("/resume", response_model=schemas.Subscription)
async def resume_subscription(
    billing_service: BillingService = Depends(deps.get_billing_service),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.Subscription:
    """Resume a subscription that is scheduled to cancel."""
    return await billing_service.resume(ctx.organization.id)


@router.post("/change-plan", response_model=schemas.Subscription)
async def change_plan(
    request: schemas.ChangePlanRequest,
    billing_service: BillingService = Depends(deps.get_billing_service),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.Subscription:
    """Move the active subscription to another plan price, prorated."""
    return await billing_service.change_plan(ctx.organization.id, request.billing_plan_price_id)


@router.get("/subscription", response_model=schemas.SubscriptionDetail)
async def get_subscription(
    billing_service: BillingService = Depends(deps.get_billing_service),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.SubscriptionDetail:
    """Get the organization's current subscription with its plan."""
    return await billing_service.get_current_subscription(ctx.organization.id)


@router.post("/webhook", include_in_schema=False)
async def billing_webhook(
    request: Request,
    ingress: WebhookIngress = Depends(deps.get_webhook_ingress),
    secret: Optional[str] = Depends(deps.get_webhook_secret),
) -> Response:
    """Receive billing provider webhook events.

    The signature is checked against the raw body before anything is decoded.
    Verified events are queued and acknowledged right away; processing
    outcomes only reach the logs.

    Returns:
        200 once queued, 400 for an undecodable body, 401 for a missing or
        invalid signature, 500 when no secret is configured
    """
    payload = await request.body()
    signature = request.headers.get(settings.BILLING_WEBHOOK_SIGNATURE_HEADER)

    try:
        verify_signature(payload, signature, secret)
    except WebhookMisconfiguredException:
        logger.error("Received a billing webhook but no webhook secret is configured")
        raise

    event = parse_event(payload)
    await ingress.submit(event)

    return Response(status_code=200)
