"""
Account registration and password login
"""

import logging
import secrets
from typing import Optional, Tuple

import bcrypt
from sqlalchemy.exc import IntegrityError

from zyra.core.users.models import User
from zyra.services.account_store import AccountLedgerStore
from zyra.services.ledger.stellar_client import StellarLedgerClient
from zyra.services.phone import normalize_phone

logger = logging.getLogger(__name__)

VERIFICATION_CODE_DIGITS = 6


class RegistrationError(Exception):
    """Raised when an account cannot be registered"""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(self.message)


class AuthenticationError(Exception):
    """Raised when login credentials do not match an account"""
    pass


def hash_password(password: str) -> str:
    """Hash password using bcrypt directly (72 byte limit)"""
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def generate_verification_code() -> str:
    return f"{secrets.randbelow(10 ** VERIFICATION_CODE_DIGITS):0{VERIFICATION_CODE_DIGITS}d}"


def register_user(
    store: AccountLedgerStore,
    ledger: StellarLedgerClient,
    *,
    email: str,
    phone: str,
    password: str,
) -> Tuple[User, str]:
    """
    Create an account and return it with the code the user must send over WhatsApp.

    Raises:
        RegistrationError: email or phone already registered
    """
    email = email.strip().lower()
    phone = normalize_phone(phone)

    if store.get_user_by_email(email):
        raise RegistrationError("EMAIL_ALREADY_REGISTERED", "User with this email already exists")
    if store.get_user_by_phone(phone):
        raise RegistrationError("PHONE_ALREADY_REGISTERED", "User with this phone number already exists")

    keypair = ledger.create_keypair()
    code = generate_verification_code()
    try:
        user = store.create_user(
            email=email,
            phone=phone,
            password_hash=hash_password(password),
            public_key=keypair.public_key,
            secret=keypair.secret,
            verification_code=code,
        )
    except IntegrityError as e:
        store.rollback()
        raise RegistrationError("ACCOUNT_ALREADY_REGISTERED", "User with this email or phone number already exists") from e
    logger.info(f"User registered: user_id={user.id}, phone={phone}, public_key={user.public_key}")
    return user, code


def authenticate_user(store: AccountLedgerStore, *, identifier: str, password: str) -> User:
    """
    Account for an email or phone number and a matching password.

    Unknown identifiers and wrong passwords raise the same AuthenticationError.
    """
    identifier = identifier.strip()
    if "@" in identifier:
        user = store.get_user_by_email(identifier.lower())
    else:
        user = store.get_user_by_phone(normalize_phone(identifier))

    if user is None or not verify_password(password, user.password_hash):
        logger.info("Login rejected")
        raise AuthenticationError("Invalid email, phone or password")

    logger.info(f"User logged in: user_id={user.id}")
    return user
