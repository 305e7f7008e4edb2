"""
Liveness and readiness probes
"""

from typing import Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from zyra.infrastructure.database import get_db
from zyra.infrastructure.redis_client import ping_redis
from zyra.infrastructure.settings import get_settings

router = APIRouter(tags=["health"])


def _database_status(db: Session) -> str:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return f"error: {e.__class__.__name__}"
    return "connected"


def _integration_status() -> Dict[str, bool]:
    """Which outbound integrations have credentials; informational only"""
    settings = get_settings()
    return {
        "whatsapp": settings.whatsapp_enabled,
        "mpesa": bool(settings.MPESA_CONSUMER_KEY and settings.MPESA_PASSKEY),
        "ledger": bool(settings.STELLAR_PAYMENTS_CONTRACT_ID),
    }


@router.get("/health")
async def health():
    """Process is up"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(db: Session = Depends(get_db)):
    """
    200 when the database and Redis answer, 503 otherwise.

    Missing integration credentials are reported but do not fail readiness:
    the messaging client logs instead of sending when unconfigured.
    """
    database = _database_status(db)
    redis_status = "connected" if ping_redis() else "disconnected"
    is_ready = database == "connected" and redis_status == "connected"

    return JSONResponse(
        status_code=200 if is_ready else 503,
        content={
            "status": "ok" if is_ready else "not_ready",
            "database": database,
            "redis": redis_status,
            "integrations": _integration_status(),
        },
    )
