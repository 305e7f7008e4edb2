"""
User endpoints - registration, login and ledger balance
"""

import logging
from fastapi import APIRouter, Depends, Query, status
from starlette.concurrency import run_in_threadpool

from zyra.api.dependencies import get_account_store, get_ledger_client
from zyra.api.exceptions import api_error
from zyra.infrastructure.settings import get_settings
from zyra.schemas.users import BalanceResponse, LoginRequest, LoginResponse, RegisterRequest, RegisterResponse
from zyra.services.account_store import AccountLedgerStore
from zyra.services.ledger.exceptions import LedgerError
from zyra.services.ledger.stellar_client import StellarLedgerClient
from zyra.services.registration import AuthenticationError, RegistrationError, authenticate_user, register_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user",
    description="Create an account with a ledger wallet. The returned code must be sent to the WhatsApp bot.",
)
async def register(
    request: RegisterRequest,
    store: AccountLedgerStore = Depends(get_account_store),
    ledger: StellarLedgerClient = Depends(get_ledger_client),
) -> RegisterResponse:
    try:
        user, code = await run_in_threadpool(
            register_user,
            store,
            ledger,
            email=request.email,
            phone=request.phone,
            password=request.password,
        )
    except RegistrationError as e:
        raise api_error(status.HTTP_400_BAD_REQUEST, e.code, e.message)

    return RegisterResponse(
        user_id=str(user.id),
        email=user.email,
        phone=user.phone,
        public_key=user.public_key,
        verification_code=code,
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="User login",
    description="Check an email or phone number and password and return the account profile. No session is created.",
)
async def login(
    request: LoginRequest,
    store: AccountLedgerStore = Depends(get_account_store),
) -> LoginResponse:
    if not request.identifier or not request.password:
        raise api_error(status.HTTP_400_BAD_REQUEST, "MISSING_FIELDS", "Email/Phone and password required")

    try:
        user = await run_in_threadpool(
            authenticate_user,
            store,
            identifier=request.identifier,
            password=request.password,
        )
    except AuthenticationError as e:
        raise api_error(status.HTTP_401_UNAUTHORIZED, "INVALID_CREDENTIALS", str(e))

    return LoginResponse(
        user_id=str(user.id),
        email=user.email,
        phone=user.phone,
        public_key=user.public_key,
        whatsapp_verified=user.whatsapp_verified,
    )


@router.get(
    "/balance",
    response_model=BalanceResponse,
    summary="Ledger balance",
    description="Authoritative balance read from the payments contract (not the locally cached balance).",
)
async def get_balance(
    public_key: str = Query(..., alias="publicKey", min_length=1),
    store: AccountLedgerStore = Depends(get_account_store),
    ledger: StellarLedgerClient = Depends(get_ledger_client),
) -> BalanceResponse:
    user = store.get_user_by_public_key(public_key)
    if user is None:
        raise api_error(status.HTTP_404_NOT_FOUND, "USER_NOT_FOUND", "User not found")

    try:
        balance = await run_in_threadpool(ledger.get_balance, public_key)
    except LedgerError as e:
        logger.error(f"Ledger balance lookup failed: user_id={user.id}, error={e.message}")
        raise api_error(status.HTTP_502_BAD_GATEWAY, "LEDGER_UNAVAILABLE", "Failed to fetch balance from the ledger")

    return BalanceResponse(
        public_key=public_key,
        balance=f"{balance:.2f}",
        unit=get_settings().BALANCE_UNIT,
    )
