"""
Admin API routes - INTERNAL ONLY (operator JWT)
"""

from fastapi import APIRouter
from paychain.infrastructure.settings import get_settings
from paychain.api.admin.compliance import router as compliance_router
from paychain.api.admin.accounts import router as accounts_router

settings = get_settings()
router = APIRouter(prefix=settings.ADMIN_V1_PREFIX, tags=["admin-v1"])

router.include_router(compliance_router, tags=["admin-compliance"])
router.include_router(accounts_router, tags=["admin-accounts"])
