"""
M-Pesa (Daraja) callback endpoints
"""

import json
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from zyra.api.dependencies import get_deposit_completion_handler
from zyra.api.exceptions import api_error
from zyra.infrastructure.logging_config import trace_id_context
from zyra.schemas.webhooks import MpesaCallbackPayload, MpesaCallbackResponse
from zyra.services.deposit_completion import DepositCallback, DepositCompletionHandler
from zyra.services.outcomes import CallbackStatus
from zyra.utils.metrics import record_webhook_received, record_webhook_rejected
from zyra.utils.webhook_security import verify_mpesa_callback_secret

logger = logging.getLogger(__name__)

router = APIRouter()


def to_deposit_callback(payload: MpesaCallbackPayload) -> DepositCallback:
    stk = payload.Body.stkCallback
    metadata = stk.CallbackMetadata.Item if stk.CallbackMetadata else []
    return DepositCallback(
        merchant_request_id=stk.MerchantRequestID,
        checkout_request_id=stk.CheckoutRequestID,
        result_code=stk.ResultCode,
        result_desc=stk.ResultDesc,
        metadata=[(item.Name, item.Value) for item in metadata],
    )


@router.post(
    "/mpesa/callback",
    response_model=MpesaCallbackResponse,
    status_code=status.HTTP_200_OK,
    summary="M-Pesa STK Push callback",
    description="Receive STK Push results from Safaricom Daraja and complete the matching deposit exactly once.",
)
async def mpesa_callback(
    request: Request,
    secret: Optional[str] = Query(None, description="Callback secret registered with the STK Push"),
    handler: DepositCompletionHandler = Depends(get_deposit_completion_handler),
) -> MpesaCallbackResponse:
    trace_id = trace_id_context.get()

    is_valid, error_code, _ = verify_mpesa_callback_secret(secret)
    if not is_valid:
        logger.error(f"M-Pesa callback rejected: trace_id={trace_id}, code={error_code}")
        record_webhook_rejected(source="mpesa", reason="secret_invalid")
        raise api_error(status.HTTP_401_UNAUTHORIZED, error_code, "Callback secret verification failed")

    body_bytes = await request.body()
    try:
        payload = MpesaCallbackPayload(**json.loads(body_bytes.decode("utf-8")))
    except (UnicodeDecodeError, json.JSONDecodeError, TypeError, ValidationError) as e:
        logger.error(f"Invalid M-Pesa callback format: trace_id={trace_id}, error={e}")
        record_webhook_rejected(source="mpesa", reason="malformed")
        raise api_error(status.HTTP_400_BAD_REQUEST, "INVALID_CALLBACK", "Invalid callback format")

    record_webhook_received(source="mpesa")
    callback = to_deposit_callback(payload)
    logger.info(
        f"M-Pesa callback received: trace_id={trace_id}, merchant_request_id={callback.merchant_request_id}, "
        f"checkout_request_id={callback.checkout_request_id}, result_code={callback.result_code}"
    )

    outcome = await run_in_threadpool(handler.handle, callback)
    if outcome.status == CallbackStatus.ERROR:
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "CALLBACK_PROCESSING_FAILED", outcome.message)

    return MpesaCallbackResponse(
        ResultCode=0,
        ResultDesc=outcome.message,
        status=outcome.status.value,
        transaction_id=str(outcome.transaction_id) if outcome.transaction_id else None,
    )
