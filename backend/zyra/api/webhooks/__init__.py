"""
Webhook endpoints - WhatsApp platform and M-Pesa provider only
"""

from fastapi import APIRouter
from zyra.infrastructure.settings import get_settings
from zyra.api.webhooks.whatsapp import router as whatsapp_router
from zyra.api.webhooks.mpesa import router as mpesa_router

settings = get_settings()
router = APIRouter(prefix=settings.WEBHOOKS_V1_PREFIX, tags=["webhooks-v1"])

# Register webhook routers
router.include_router(whatsapp_router)
router.include_router(mpesa_router)
