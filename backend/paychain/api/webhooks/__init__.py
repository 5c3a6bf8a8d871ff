"""
Webhook endpoints - settlement provider callbacks (HMAC-signed, no API key)
"""

from fastapi import APIRouter
from paychain.infrastructure.settings import get_settings
from paychain.api.webhooks.settlement import router as settlement_router

settings = get_settings()
router = APIRouter(prefix=settings.WEBHOOKS_V1_PREFIX, tags=["webhooks-v1"])

router.include_router(settlement_router)
