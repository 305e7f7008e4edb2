"""
Pytest configuration and fixtures
"""

import os
from decimal import Decimal
from typing import Callable, Optional
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from stellar_sdk import Keypair

# Set test environment variables before importing the app
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["SECRET_KEY"] = "test-secret-key-min-32-chars-for-testing-only"
os.environ["LEDGER_SECRET_ENCRYPTION_KEY"] = ""
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["WHATSAPP_ACCESS_TOKEN"] = ""
os.environ["WHATSAPP_PHONE_NUMBER_ID"] = ""
os.environ["WHATSAPP_VERIFY_TOKEN"] = "test-verify-token"
os.environ["WHATSAPP_APP_SECRET"] = ""
os.environ["MPESA_CALLBACK_SECRET"] = "test-callback-secret"
os.environ["METRICS_PUBLIC"] = "false"
os.environ["METRICS_TOKEN"] = "test-metrics-token"

from zyra.infrastructure.database import get_db  # noqa: E402
from zyra.infrastructure.settings import get_settings  # noqa: E402
from zyra.models import Base, User, WhatsAppVerificationStatus  # noqa: E402
from zyra.main import app  # noqa: E402
from zyra.api.dependencies import (  # noqa: E402
    get_ledger_client,
    get_messaging_gateway,
    get_payment_provider,
)
from zyra.services.account_store import AccountLedgerStore, build_secret_box  # noqa: E402
from zyra.services.ledger.stellar_client import StellarLedgerClient  # noqa: E402
from zyra.services.messaging.whatsapp_client import WhatsAppClient  # noqa: E402
from zyra.services.payments.mpesa_client import MpesaClient  # noqa: E402


# In-memory SQLite shared across threads (endpoints run in the threadpool)
test_engine = create_engine(
    "sqlite://",
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Create a fresh database session for each test.
    Creates all tables before and drops them after each test.
    """
    Base.metadata.create_all(bind=test_engine)

    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def store(db_session: Session) -> AccountLedgerStore:
    """Account ledger store using the same secret key as the app"""
    return AccountLedgerStore(db_session, build_secret_box(get_settings()))


@pytest.fixture
def ledger() -> Mock:
    """Ledger client double; transfers succeed unless a test says otherwise"""
    from zyra.services.ledger.stellar_client import LedgerReceipt
    double = Mock(spec=StellarLedgerClient)
    double.transfer.return_value = LedgerReceipt(tx_hash="a" * 64)
    double.get_balance.return_value = Decimal("0")
    double.create_keypair.side_effect = lambda: _random_ledger_keypair()
    return double


@pytest.fixture
def payments() -> Mock:
    """Payment provider double; STK Push initiation succeeds unless a test says otherwise"""
    from zyra.services.payments.mpesa_client import DepositInitiation
    double = Mock(spec=MpesaClient)
    double.initiate_deposit.return_value = DepositInitiation(
        merchant_request_id="29115-34620561-1",
        checkout_request_id="ws_CO_191220191020363925",
    )
    return double


@pytest.fixture
def messenger() -> Mock:
    """Messaging gateway double recording every outbound message"""
    return Mock(spec=WhatsAppClient)


@pytest.fixture(scope="function")
def client(db_session: Session, ledger: Mock, payments: Mock, messenger: Mock):
    """
    Create FastAPI test client with dependency overrides.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ledger_client] = lambda: ledger
    app.dependency_overrides[get_payment_provider] = lambda: payments
    app.dependency_overrides[get_messaging_gateway] = lambda: messenger

    yield TestClient(app)

    app.dependency_overrides.clear()


def _random_ledger_keypair():
    from zyra.services.ledger.stellar_client import LedgerKeypair
    keypair = Keypair.random()
    return LedgerKeypair(public_key=keypair.public_key, secret=keypair.secret)


@pytest.fixture
def make_user(store: AccountLedgerStore) -> Callable[..., User]:
    """Factory creating users straight in the database"""
    counter = {"n": 0}

    def _make_user(
        phone: str,
        balance: Decimal = Decimal("0"),
        status: WhatsAppVerificationStatus = WhatsAppVerificationStatus.VERIFIED,
        verification_code: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        counter["n"] += 1
        keypair = _random_ledger_keypair()
        user = User(
            email=email or f"user{counter['n']}@example.com",
            phone=phone,
            password_hash="not-a-real-hash",
            public_key=keypair.public_key,
            encrypted_secret=store.encrypt_secret(keypair.secret),
            balance=Decimal(balance),
            whatsapp_status=status,
            whatsapp_verification_code=verification_code,
        )
        store.db.add(user)
        store.db.commit()
        store.db.refresh(user)
        return user

    return _make_user
