"""
WhatsApp verification endpoint (web side)
"""

from fastapi import APIRouter, Depends, status

from zyra.api.dependencies import get_account_store
from zyra.api.exceptions import api_error
from zyra.schemas.users import VerifyWhatsAppRequest, VerifyWhatsAppResponse
from zyra.services.account_store import AccountLedgerStore
from zyra.services.phone import normalize_phone

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


@router.post(
    "/verify",
    response_model=VerifyWhatsAppResponse,
    summary="Verify WhatsApp code",
    description="Mark a phone number verified with the code issued at registration.",
)
def verify_whatsapp(
    request: VerifyWhatsAppRequest,
    store: AccountLedgerStore = Depends(get_account_store),
) -> VerifyWhatsAppResponse:
    if not request.phone or not request.code:
        raise api_error(status.HTTP_400_BAD_REQUEST, "MISSING_FIELDS", "Phone number and code are required")

    phone = normalize_phone(request.phone)
    user = store.get_user_by_verification_code(request.code.strip(), phone)
    if user is None:
        raise api_error(status.HTTP_400_BAD_REQUEST, "INVALID_VERIFICATION_CODE", "Invalid verification code")

    store.mark_whatsapp_verified(user, actor="WEB")
    return VerifyWhatsAppResponse(phone=phone)
