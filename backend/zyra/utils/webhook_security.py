"""
Webhook security utilities - HMAC signature and shared secret verification
"""

import hmac
import hashlib
import logging
from typing import Optional, Tuple, Dict, Any

from zyra.infrastructure.settings import get_settings

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def verify_hmac_signature(
    payload_body: bytes,
    signature_header: Optional[str],
    secret: str,
) -> Tuple[bool, Optional[str], Optional[Dict[str, Any]]]:
    """
    Verify a Meta style "sha256=<hex>" HMAC-SHA256 signature using constant-time comparison.

    The signature is computed over the EXACT raw request body bytes.

    Returns:
        Tuple of (is_valid, error_code, error_details)
    """
    if not signature_header:
        return False, "WEBHOOK_MISSING_HEADER", {
            "missing_header": "X-Hub-Signature-256",
            "hint": "Include X-Hub-Signature-256 header with HMAC-SHA256 signature of request body",
        }

    if not signature_header.startswith(SIGNATURE_PREFIX):
        return False, "WEBHOOK_INVALID_SIGNATURE", {
            "hint": f"Signature must be prefixed with '{SIGNATURE_PREFIX}'",
        }

    received = signature_header[len(SIGNATURE_PREFIX):]
    expected = hmac.new(secret.encode("utf-8"), payload_body, hashlib.sha256).hexdigest()

    if not hmac.compare_digest(expected, received):
        return False, "WEBHOOK_INVALID_SIGNATURE", {
            "body_length_bytes": len(payload_body),
            "hint": "Signature mismatch. Ensure signature is computed over exact raw body bytes",
        }

    return True, None, None


def verify_whatsapp_webhook_security(
    payload_body: bytes,
    signature_header: Optional[str],
) -> Tuple[bool, Optional[str], Optional[Dict[str, Any]]]:
    """
    Verify a WhatsApp webhook delivery.

    Verification is skipped when WHATSAPP_APP_SECRET is not configured
    (local development against a tunnel), except in production where an
    unconfigured secret rejects every delivery.
    """
    settings = get_settings()
    if not settings.WHATSAPP_APP_SECRET:
        if settings.is_production:
            logger.error("WHATSAPP_APP_SECRET not configured in production - rejecting webhook")
            return False, "WEBHOOK_SECRET_NOT_CONFIGURED", None
        logger.debug("WHATSAPP_APP_SECRET not configured - skipping signature verification")
        return True, None, None

    return verify_hmac_signature(
        payload_body=payload_body,
        signature_header=signature_header,
        secret=settings.WHATSAPP_APP_SECRET,
    )


def verify_mpesa_callback_secret(
    provided_secret: Optional[str],
) -> Tuple[bool, Optional[str], Optional[Dict[str, Any]]]:
    """
    Verify the shared secret carried in the M-Pesa callback URL.

    Daraja does not sign callbacks, so the callback URL registered on every STK
    Push carries a secret query parameter. Verification is skipped when
    MPESA_CALLBACK_SECRET is not configured, outside production.
    """
    settings = get_settings()
    if not settings.MPESA_CALLBACK_SECRET:
        if settings.is_production:
            logger.error("MPESA_CALLBACK_SECRET not configured in production - rejecting callback")
            return False, "WEBHOOK_SECRET_NOT_CONFIGURED", None
        logger.debug("MPESA_CALLBACK_SECRET not configured - skipping callback secret verification")
        return True, None, None

    if not provided_secret:
        return False, "WEBHOOK_MISSING_SECRET", {
            "missing_parameter": "secret",
        }

    if not hmac.compare_digest(settings.MPESA_CALLBACK_SECRET.encode("utf-8"), provided_secret.encode("utf-8")):
        return False, "WEBHOOK_INVALID_SECRET", None

    return True, None, None
