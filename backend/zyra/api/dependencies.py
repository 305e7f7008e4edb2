"""
FastAPI dependencies - collaborator wiring

Every collaborator is built here and injected; tests replace them through
app.dependency_overrides.
"""

from functools import lru_cache

from cryptography.fernet import Fernet
from fastapi import Depends
from sqlalchemy.orm import Session

from zyra.infrastructure.database import get_db
from zyra.infrastructure.settings import get_settings
from zyra.services.account_store import AccountLedgerStore, build_secret_box
from zyra.services.command_router import CommandRouter
from zyra.services.deposit_completion import DepositCompletionHandler
from zyra.services.ledger.stellar_client import StellarLedgerClient
from zyra.services.messaging.whatsapp_client import WhatsAppClient
from zyra.services.payments.mpesa_client import MpesaClient


@lru_cache()
def get_secret_box() -> Fernet:
    return build_secret_box(get_settings())


@lru_cache()
def get_ledger_client() -> StellarLedgerClient:
    return StellarLedgerClient(get_settings())


@lru_cache()
def get_payment_provider() -> MpesaClient:
    return MpesaClient(get_settings())


@lru_cache()
def get_messaging_gateway() -> WhatsAppClient:
    return WhatsAppClient(get_settings())


def get_account_store(
    db: Session = Depends(get_db),
    secret_box: Fernet = Depends(get_secret_box),
) -> AccountLedgerStore:
    return AccountLedgerStore(db, secret_box)


def get_command_router(
    store: AccountLedgerStore = Depends(get_account_store),
    ledger: StellarLedgerClient = Depends(get_ledger_client),
    payments: MpesaClient = Depends(get_payment_provider),
    messenger: WhatsAppClient = Depends(get_messaging_gateway),
) -> CommandRouter:
    return CommandRouter(store, ledger, payments, messenger, get_settings())


def get_deposit_completion_handler(
    store: AccountLedgerStore = Depends(get_account_store),
    ledger: StellarLedgerClient = Depends(get_ledger_client),
    messenger: WhatsAppClient = Depends(get_messaging_gateway),
) -> DepositCompletionHandler:
    return DepositCompletionHandler(store, ledger, messenger, get_settings())
