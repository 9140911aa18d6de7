"""API routes for the FastAPI application."""

from fastapi import APIRouter

from billsync.api.v1.endpoints import billing, billing_plans, health

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(billing.router, prefix="/billing", tags=["billing"])
api_router.include_router(billing_plans.router, prefix="/billing-plans", tags=["billing-plans"])
