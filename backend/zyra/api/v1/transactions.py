"""
Transactions API endpoints - READ-ONLY
"""

from fastapi import APIRouter, Depends, Query, status

from zyra.api.dependencies import get_account_store
from zyra.api.exceptions import api_error
from zyra.schemas.users import TransactionItem, TransactionListResponse
from zyra.services.account_store import AccountLedgerStore

router = APIRouter(tags=["transactions"])


@router.get(
    "/transactions",
    response_model=TransactionListResponse,
    summary="Transaction history",
    description="Transactions owned by the account, newest first.",
)
def list_transactions(
    public_key: str = Query(..., alias="publicKey", min_length=1),
    store: AccountLedgerStore = Depends(get_account_store),
) -> TransactionListResponse:
    user = store.get_user_by_public_key(public_key)
    if user is None:
        raise api_error(status.HTTP_404_NOT_FOUND, "USER_NOT_FOUND", "User not found")

    return TransactionListResponse(
        public_key=public_key,
        transactions=[
            TransactionItem(
                id=str(tx.id),
                type=tx.type.value,
                status=tx.status.value,
                amount=f"{tx.amount:.2f}",
                counterparty_phone=tx.counterparty_phone,
                merchant_request_id=tx.merchant_request_id,
                checkout_request_id=tx.checkout_request_id,
                mpesa_receipt_number=tx.mpesa_receipt_number,
                ledger_tx_hash=tx.ledger_tx_hash,
                result_code=tx.result_code,
                result_desc=tx.result_desc,
                created_at=tx.created_at,
            )
            for tx in store.list_transactions(user)
        ],
    )
