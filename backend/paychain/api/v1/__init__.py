"""
API v1 routes - Merchant-facing API (API key authentication)
"""

from fastapi import APIRouter
from paychain.infrastructure.settings import get_settings
from paychain.api.v1.charges import router as charges_router
from paychain.api.v1.account import router as account_router
from paychain.api.v1.compliance import router as compliance_router

settings = get_settings()
router = APIRouter(prefix=settings.API_V1_PREFIX, tags=["api-v1"])

# Register sub-routers
router.include_router(charges_router, tags=["charges"])
router.include_router(account_router, tags=["account"])
router.include_router(compliance_router, tags=["compliance"])
