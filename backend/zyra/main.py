"""
FastAPI application entry point
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from zyra.infrastructure.settings import get_settings
from zyra.infrastructure.logging_config import setup_logging
from zyra.infrastructure.redis_client import get_redis
from zyra.api.exceptions import (
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)
from zyra.api.public.health import router as health_router
from zyra.api.public.metrics import router as metrics_router
from zyra.api.v1 import router as api_v1_router
from zyra.api.webhooks import router as webhooks_router
from zyra.utils.trace_id import TraceIDMiddleware
from zyra.utils.request_logging import RequestLoggingMiddleware
from zyra.utils.security_headers import SecurityHeadersMiddleware
from zyra.utils.rate_limiter import RateLimitMiddleware

settings = get_settings()

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Zyra API",
    description="Send and receive money over WhatsApp, backed by a Stellar wallet and M-Pesa deposits",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

if settings.CORS_ENABLED:
    cors_origins = settings.cors_allow_origins_list
    if not cors_origins:
        logger.warning(
            "CORS_ENABLED=True but CORS_ALLOW_ORIGINS is empty. "
            "Set CORS_ALLOW_ORIGINS (comma-separated, e.g. 'http://localhost:3000')."
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Last added is outermost: TraceID must wrap request logging
app.add_middleware(RateLimitMiddleware, redis_client=get_redis())
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TraceIDMiddleware)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(api_v1_router)
app.include_router(webhooks_router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "Zyra API",
        "version": "1.0.0",
        "status": "running",
    }
