"""
WhatsApp webhook endpoints
"""

import json
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, Query, Request, status
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from zyra.api.dependencies import get_account_store, get_command_router
from zyra.api.exceptions import api_error
from zyra.infrastructure.logging_config import trace_id_context
from zyra.infrastructure.settings import get_settings
from zyra.schemas.webhooks import WhatsAppWebhookResponse
from zyra.services.account_store import AccountLedgerStore
from zyra.services.command_router import CommandRouter
from zyra.services.commands import classify
from zyra.services.messaging.whatsapp_client import InboundChatMessage, parse_inbound_message
from zyra.services.outcomes import CommandOutcome, OutcomeKind
from zyra.utils.metrics import record_webhook_received, record_webhook_rejected
from zyra.utils.webhook_security import verify_whatsapp_webhook_security

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/whatsapp",
    response_class=PlainTextResponse,
    summary="WhatsApp subscription handshake",
    description="Echo hub.challenge when hub.verify_token matches WHATSAPP_VERIFY_TOKEN.",
)
async def whatsapp_verify_subscription(
    hub_mode: Optional[str] = Query(None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(None, alias="hub.challenge"),
) -> PlainTextResponse:
    settings = get_settings()
    if (
        hub_mode == "subscribe"
        and settings.WHATSAPP_VERIFY_TOKEN
        and hub_verify_token == settings.WHATSAPP_VERIFY_TOKEN
    ):
        logger.info("WhatsApp webhook subscription verified")
        return PlainTextResponse(hub_challenge or "")

    logger.warning(f"WhatsApp webhook subscription rejected: mode={hub_mode}")
    raise api_error(status.HTTP_403_FORBIDDEN, "VERIFICATION_FAILED", "Webhook verification failed")


def process_inbound_message(
    store: AccountLedgerStore,
    command_router: CommandRouter,
    inbound: InboundChatMessage,
) -> Optional[CommandOutcome]:
    """
    Run one inbound message through the command router at most once.

    Returns None when the message id was already processed. The delivery
    marker is dropped again only when the command failed before any local
    mutation, so that the platform's redelivery can retry it.
    """
    command_name = classify(inbound.text).name
    if not store.mark_message_received(inbound.message_id, inbound.sender, command_name):
        return None

    outcome = command_router.handle(inbound.sender, inbound.text)
    if outcome.kind == OutcomeKind.DEPENDENCY_FAILURE and outcome.retryable:
        store.forget_message(inbound.message_id)
    return outcome


@router.post(
    "/whatsapp",
    response_model=WhatsAppWebhookResponse,
    status_code=status.HTTP_200_OK,
    summary="WhatsApp inbound messages",
    description="Receive WhatsApp message events and execute chat commands. Verifies X-Hub-Signature-256 when WHATSAPP_APP_SECRET is set.",
)
async def whatsapp_webhook(
    request: Request,
    x_hub_signature_256: Optional[str] = Header(None, alias="X-Hub-Signature-256"),
    store: AccountLedgerStore = Depends(get_account_store),
    command_router: CommandRouter = Depends(get_command_router),
) -> WhatsAppWebhookResponse:
    trace_id = trace_id_context.get()
    body_bytes = await request.body()

    is_valid, error_code, error_details = verify_whatsapp_webhook_security(body_bytes, x_hub_signature_256)
    if not is_valid:
        logger.error(f"WhatsApp webhook signature rejected: trace_id={trace_id}, code={error_code}")
        record_webhook_rejected(source="whatsapp", reason="signature_invalid")
        raise api_error(
            status.HTTP_401_UNAUTHORIZED,
            error_code,
            "Webhook signature verification failed",
            **(error_details or {}),
        )

    try:
        payload = json.loads(body_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"Invalid WhatsApp payload: trace_id={trace_id}, error={e}")
        record_webhook_rejected(source="whatsapp", reason="malformed")
        raise api_error(status.HTTP_400_BAD_REQUEST, "INVALID_PAYLOAD", "Invalid payload format")

    record_webhook_received(source="whatsapp")

    inbound = parse_inbound_message(payload)
    if inbound is None:
        # Status updates and non-text messages
        return WhatsAppWebhookResponse(status="no_message")

    logger.info(
        f"WhatsApp message received: trace_id={trace_id}, message_id={inbound.message_id}, from={inbound.sender}"
    )

    outcome = await run_in_threadpool(process_inbound_message, store, command_router, inbound)
    if outcome is None:
        logger.info(f"Duplicate WhatsApp delivery ignored: trace_id={trace_id}, message_id={inbound.message_id}")
        record_webhook_rejected(source="whatsapp", reason="duplicate")
        return WhatsAppWebhookResponse(status="duplicate")

    if outcome.is_error:
        raise api_error(outcome.http_status, outcome.code, outcome.message)

    return WhatsAppWebhookResponse(
        status=outcome.kind.value,
        code=outcome.code,
        transaction_id=str(outcome.transaction_id) if outcome.transaction_id else None,
    )
