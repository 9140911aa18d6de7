"""Dependencies that are used in the API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.api.context import ApiContext
from billsync.core.config import settings
from billsync.core.exceptions import ExternalServiceError, NotFoundException
from billsync.core.logging import logger
from billsync.db.session import get_db
from billsync.integrations.billing_provider import BillingProvider
from billsync.platform.billing.billing_data_access import BillingRepository, SqlBillingRepository
from billsync.platform.billing.billing_service import BillingService
from billsync.platform.billing.catalog_service import CatalogService
from billsync.platform.billing.webhook_ingress import WebhookIngress


async def get_repository(db: AsyncSession = Depends(get_db)) -> BillingRepository:
    """Billing repository bound to the request's database session."""
    return SqlBillingRepository(db)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


async def get_context(
    request: Request,
    x_organization_id: Optional[str] = Header(None),
    repository: BillingRepository = Depends(get_repository),
) -> ApiContext:
    """Resolve the organization of the request.

    Raises:
        NotFoundException: the header is missing, malformed or names an
            unknown organization
    """
    if not x_organization_id:
        raise NotFoundException("Organization not found")
    try:
        organization_id = UUID(x_organization_id)
    except ValueError as e:
        raise NotFoundException("Organization not found") from e

    organization = await repository.get_organization(organization_id)
    if organization is None:
        raise NotFoundException("Organization not found")

    request_id = _request_id(request)
    return ApiContext(
        request_id=request_id,
        organization=organization,
        logger=logger.with_context(
            request_id=request_id,
            organization_id=str(organization.id),
        ),
    )


def get_billing_provider(request: Request) -> BillingProvider:
    """Billing provider client built at startup.

    Raises:
        ExternalServiceError: billing is disabled for this instance
    """
    provider = getattr(request.app.state, "billing_provider", None)
    if provider is None:
        raise ExternalServiceError(
            service_name="Billing",
            message="Billing is not enabled for this instance",
        )
    return provider


async def get_billing_service(
    ctx: ApiContext = Depends(get_context),
    repository: BillingRepository = Depends(get_repository),
    provider: BillingProvider = Depends(get_billing_provider),
) -> BillingService:
    """Billing service for the request's organization."""
    return BillingService(repository, provider, log=ctx.logger)


async def get_catalog_service(
    request: Request,
    repository: BillingRepository = Depends(get_repository),
    provider: BillingProvider = Depends(get_billing_provider),
) -> CatalogService:
    """Catalog service for plan administration."""
    return CatalogService(
        repository, provider, log=logger.with_context(request_id=_request_id(request))
    )


def get_webhook_ingress(request: Request) -> WebhookIngress:
    """Webhook ingress started by the application lifespan."""
    return request.app.state.webhook_ingress


def get_webhook_secret() -> Optional[str]:
    """Shared secret webhooks are signed with."""
    return settings.BILLING_WEBHOOK_SECRET
