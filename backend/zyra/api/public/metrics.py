"""
Prometheus scrape endpoint
"""

import hmac
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST

from zyra.api.exceptions import api_error
from zyra.infrastructure.settings import get_settings
from zyra.utils.metrics import get_metrics_output

logger = logging.getLogger(__name__)

router = APIRouter(tags=["metrics"])


def _presented_token(x_metrics_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    if x_metrics_token:
        return x_metrics_token
    # Prometheus scrape configs send the token as a bearer credential
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[len("bearer "):].strip()
    return None


async def require_metrics_access(
    x_metrics_token: Optional[str] = Header(None, alias="X-Metrics-Token"),
    authorization: Optional[str] = Header(None),
) -> None:
    """Open when METRICS_PUBLIC, otherwise METRICS_TOKEN must be presented"""
    settings = get_settings()
    if settings.METRICS_PUBLIC:
        return

    token = _presented_token(x_metrics_token, authorization)
    if settings.METRICS_TOKEN and token and hmac.compare_digest(
        token.encode("utf-8"), settings.METRICS_TOKEN.encode("utf-8")
    ):
        return

    logger.warning("Metrics scrape rejected")
    raise api_error(
        status.HTTP_403_FORBIDDEN,
        "METRICS_FORBIDDEN",
        "Metrics require METRICS_PUBLIC=true or a valid X-Metrics-Token / bearer token",
    )


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Metrics in Prometheus exposition format. Token-protected unless METRICS_PUBLIC=true.",
)
async def get_metrics(_: None = Depends(require_metrics_access)) -> Response:
    return Response(content=get_metrics_output(), media_type=CONTENT_TYPE_LATEST)
