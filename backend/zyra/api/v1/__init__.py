"""
API v1 routes - User-facing API
"""

from fastapi import APIRouter
from zyra.infrastructure.settings import get_settings
from zyra.api.v1.users import router as users_router
from zyra.api.v1.whatsapp import router as whatsapp_router
from zyra.api.v1.transactions import router as transactions_router
from zyra.api.v1.deposits import router as deposits_router

settings = get_settings()
router = APIRouter(prefix=settings.API_V1_PREFIX, tags=["api-v1"])

# Register sub-routers
router.include_router(users_router)
router.include_router(whatsapp_router)
router.include_router(transactions_router)
router.include_router(deposits_router)
