"""
Web-initiated M-Pesa deposits
"""

import logging
from uuid import UUID
from fastapi import APIRouter, Depends, status
from starlette.concurrency import run_in_threadpool

from zyra.api.dependencies import get_account_store, get_payment_provider
from zyra.api.exceptions import api_error
from zyra.schemas.deposits import StkPushRequest, StkPushResponse
from zyra.services.account_store import AccountLedgerStore
from zyra.services.payments.exceptions import PaymentProviderError
from zyra.services.payments.mpesa_client import MpesaClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mpesa", tags=["deposits"])


@router.post(
    "/stk-push",
    response_model=StkPushResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a deposit",
    description="Prompt the phone for an M-Pesa payment. The account is credited when the provider callback arrives.",
)
async def stk_push(
    request: StkPushRequest,
    store: AccountLedgerStore = Depends(get_account_store),
    payments: MpesaClient = Depends(get_payment_provider),
) -> StkPushResponse:
    if request.amount is None or not request.phone or not request.user_id:
        raise api_error(status.HTTP_400_BAD_REQUEST, "MISSING_FIELDS", "Amount, phone, and userId are required")
    if request.amount <= 0:
        raise api_error(status.HTTP_400_BAD_REQUEST, "INVALID_DEPOSIT_AMOUNT", "Amount must be a positive whole number")

    try:
        user_id = UUID(request.user_id)
    except ValueError:
        user_id = None
    user = store.get_user(user_id) if user_id else None
    if user is None:
        raise api_error(status.HTTP_404_NOT_FOUND, "USER_NOT_FOUND", "User not found")

    try:
        initiation = await run_in_threadpool(payments.initiate_deposit, request.amount, request.phone, user.public_key)
    except PaymentProviderError as e:
        logger.error(f"Web deposit initiation failed: user_id={user.id}, amount={request.amount}, error={e.message}")
        raise api_error(status.HTTP_502_BAD_GATEWAY, "PAYMENT_PROVIDER_FAILED", "Failed to initiate STK Push")

    transaction = store.create_pending_deposit(
        user,
        request.amount,
        merchant_request_id=initiation.merchant_request_id,
        checkout_request_id=initiation.checkout_request_id,
    )
    logger.info(f"Web deposit pending: user_id={user.id}, transaction_id={transaction.id}, amount={request.amount}")

    return StkPushResponse(
        transaction_id=str(transaction.id),
        checkout_request_id=initiation.checkout_request_id,
    )
