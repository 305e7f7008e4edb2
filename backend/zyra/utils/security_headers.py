"""
Security headers middleware
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from zyra.infrastructure.settings import get_settings

BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds BASE_HEADERS to every response. Balances, history and webhook
    acknowledgements (API_V1_PREFIX and WEBHOOKS_V1_PREFIX) are also marked
    Cache-Control: no-store. HSTS is sent when ENABLE_HSTS is set and always in production.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        settings = get_settings()

        for name, value in BASE_HEADERS.items():
            response.headers[name] = value

        path = request.url.path
        if path.startswith(settings.API_V1_PREFIX) or path.startswith(settings.WEBHOOKS_V1_PREFIX):
            response.headers["Cache-Control"] = "no-store"

        if settings.ENABLE_HSTS or settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
