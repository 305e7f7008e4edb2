"""
Account ledger store - persistence of accounts, transactions and delivery markers
"""

import base64
import hashlib
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zyra.core.compliance.models import AuditLog
from zyra.core.messages.models import InboundMessage
from zyra.core.transactions.models import Transaction, TransactionStatus, TransactionType
from zyra.core.users.models import User, WhatsAppVerificationStatus
from zyra.infrastructure.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class SecretDecryptionError(Exception):
    """Raised when a stored ledger secret cannot be decrypted with the configured key"""
    pass


def build_secret_box(settings: Optional[Settings] = None) -> Fernet:
    """
    Fernet cipher for ledger secrets at rest.

    Uses LEDGER_SECRET_ENCRYPTION_KEY when set, otherwise a key derived from
    SECRET_KEY (sha256, urlsafe base64).
    """
    settings = settings or get_settings()
    if settings.LEDGER_SECRET_ENCRYPTION_KEY:
        return Fernet(settings.LEDGER_SECRET_ENCRYPTION_KEY.encode("utf-8"))
    digest = hashlib.sha256(settings.SECRET_KEY.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def _audit_value(value: Any) -> Any:
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    return value


class AccountLedgerStore:
    """
    Persistence collaborator for the command router and the deposit completion
    handler.

    Methods that only stage changes (claim_pending_deposit, credit_balance,
    add_audit) leave committing to the caller; the other mutating methods
    commit their own unit of work.
    """

    def __init__(self, db: Session, secret_box: Optional[Fernet] = None):
        self.db = db
        self.secret_box = secret_box or build_secret_box()

    # ---------------------------------------------------------------- accounts

    def get_user(self, user_id: UUID) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_user_by_phone(self, phone: str) -> Optional[User]:
        return self.db.query(User).filter(User.phone == phone).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def get_user_by_public_key(self, public_key: str) -> Optional[User]:
        return self.db.query(User).filter(User.public_key == public_key).first()

    def get_user_by_verification_code(self, code: str, phone: str) -> Optional[User]:
        return self.db.query(User).filter(
            User.whatsapp_verification_code == code,
            User.phone == phone,
        ).first()

    def create_user(
        self,
        *,
        email: str,
        phone: str,
        password_hash: str,
        public_key: str,
        secret: str,
        verification_code: str,
    ) -> User:
        """Insert a new account with its encrypted ledger secret and a pending verification code"""
        user = User(
            email=email,
            phone=phone,
            password_hash=password_hash,
            public_key=public_key,
            encrypted_secret=self.encrypt_secret(secret),
            balance=Decimal("0.00"),
            whatsapp_status=WhatsAppVerificationStatus.CODE_ISSUED,
            whatsapp_verification_code=verification_code,
        )
        self.db.add(user)
        self.db.flush()
        self.add_audit(
            actor="WEB",
            actor_user_id=user.id,
            action="USER_REGISTERED",
            entity_type="User",
            entity_id=user.id,
            after={"phone": phone, "public_key": public_key},
        )
        self.db.commit()
        self.db.refresh(user)
        return user

    def mark_whatsapp_verified(self, user: User, actor: str = "WHATSAPP") -> User:
        """Mark the account verified and clear the single-use code"""
        before = user.whatsapp_status.value if user.whatsapp_status else None
        user.whatsapp_status = WhatsAppVerificationStatus.VERIFIED
        user.whatsapp_verification_code = None
        self.add_audit(
            actor=actor,
            actor_user_id=user.id,
            action="WHATSAPP_VERIFIED",
            entity_type="User",
            entity_id=user.id,
            before={"whatsapp_status": before},
            after={"whatsapp_status": WhatsAppVerificationStatus.VERIFIED.value},
        )
        self.db.commit()
        self.db.refresh(user)
        return user

    # ------------------------------------------------------------- credentials

    def encrypt_secret(self, secret: str) -> str:
        return self.secret_box.encrypt(secret.encode("utf-8")).decode("ascii")

    def decrypt_secret(self, user: User) -> str:
        """Ledger secret of `user` in plaintext, for signing a ledger transfer only"""
        try:
            return self.secret_box.decrypt(user.encrypted_secret.encode("ascii")).decode("utf-8")
        except InvalidToken as e:
            raise SecretDecryptionError(f"Cannot decrypt ledger secret for user {user.id}") from e

    # ---------------------------------------------------------------- deposits

    def create_pending_deposit(
        self,
        user: User,
        amount: Decimal,
        merchant_request_id: str,
        checkout_request_id: str,
    ) -> Transaction:
        transaction = Transaction(
            user_id=user.id,
            type=TransactionType.DEPOSIT,
            status=TransactionStatus.PENDING,
            amount=Decimal(amount),
            merchant_request_id=merchant_request_id,
            checkout_request_id=checkout_request_id,
        )
        self.db.add(transaction)
        self.db.commit()
        self.db.refresh(transaction)
        return transaction

    def find_deposit_by_correlation(
        self,
        merchant_request_id: Optional[str],
        checkout_request_id: Optional[str],
    ) -> Optional[Transaction]:
        """Deposit transaction matching either provider correlation id"""
        conditions = []
        if merchant_request_id:
            conditions.append(Transaction.merchant_request_id == merchant_request_id)
        if checkout_request_id:
            conditions.append(Transaction.checkout_request_id == checkout_request_id)
        if not conditions:
            return None

        return self.db.query(Transaction).filter(
            Transaction.type == TransactionType.DEPOSIT,
            or_(*conditions),
        ).order_by(Transaction.created_at.desc()).first()

    def claim_pending_deposit(
        self,
        transaction_id: UUID,
        status: TransactionStatus,
        result_code: Optional[int],
        result_desc: Optional[str],
        receipt_number: Optional[str] = None,
    ) -> bool:
        """
        Move a PENDING deposit to `status`. Not committed.

        The UPDATE is conditional on the row still being PENDING, so of two
        concurrent callbacks only one gets True.
        """
        result = self.db.execute(
            update(Transaction)
            .where(
                Transaction.id == transaction_id,
                Transaction.status == TransactionStatus.PENDING,
            )
            .values(
                status=status,
                result_code=result_code,
                result_desc=result_desc,
                mpesa_receipt_number=receipt_number,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def credit_balance(self, user_id: UUID, amount: Decimal) -> None:
        """Increment the stored balance in SQL. Not committed."""
        self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(balance=User.balance + Decimal(amount))
            .execution_options(synchronize_session=False)
        )

    # ------------------------------------------------------------------- sends

    def record_send(
        self,
        sender: User,
        recipient: User,
        amount: Decimal,
        ledger_tx_hash: str,
    ) -> Transaction:
        """
        Apply a ledger-confirmed transfer locally in one database transaction:
        sender decrement, recipient increment, SUCCESS SEND row and audit row.
        Nothing is persisted if any statement fails.
        """
        amount = Decimal(amount)
        try:
            self.db.execute(
                update(User)
                .where(User.id == sender.id)
                .values(balance=User.balance - amount)
                .execution_options(synchronize_session=False)
            )
            self.db.execute(
                update(User)
                .where(User.id == recipient.id)
                .values(balance=User.balance + amount)
                .execution_options(synchronize_session=False)
            )
            transaction = Transaction(
                user_id=sender.id,
                type=TransactionType.SEND,
                status=TransactionStatus.SUCCESS,
                amount=amount,
                counterparty_phone=recipient.phone,
                recipient_address=recipient.public_key,
                ledger_tx_hash=ledger_tx_hash,
            )
            self.db.add(transaction)
            self.db.flush()
            self.add_audit(
                actor="WHATSAPP",
                actor_user_id=sender.id,
                action="SEND_COMPLETED",
                entity_type="Transaction",
                entity_id=transaction.id,
                after={
                    "amount": amount,
                    "recipient_phone": recipient.phone,
                    "ledger_tx_hash": ledger_tx_hash,
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(transaction)
        return transaction

    def list_transactions(self, user: User) -> List[Transaction]:
        """Transactions owned by `user`, newest first"""
        return self.db.query(Transaction).filter(
            Transaction.user_id == user.id,
        ).order_by(Transaction.created_at.desc()).all()

    # --------------------------------------------------------- inbound markers

    def mark_message_received(self, message_id: str, sender_phone: str, command: Optional[str] = None) -> bool:
        """
        Record an inbound WhatsApp message id. Committed immediately.

        Returns False when the id was already recorded (redelivery).
        """
        if self.db.query(InboundMessage).filter(InboundMessage.message_id == message_id).first():
            return False

        self.db.add(InboundMessage(message_id=message_id, sender_phone=sender_phone, command=command))
        try:
            self.db.commit()
        except IntegrityError:
            # Concurrent delivery of the same message id won the insert
            self.db.rollback()
            return False
        return True

    def forget_message(self, message_id: str) -> None:
        """Drop a delivery marker so that a redelivery is processed again"""
        self.db.query(InboundMessage).filter(InboundMessage.message_id == message_id).delete(
            synchronize_session=False
        )
        self.db.commit()

    # ------------------------------------------------------------------- audit

    def add_audit(
        self,
        *,
        actor: str,
        action: str,
        entity_type: str,
        entity_id: Optional[UUID] = None,
        actor_user_id: Optional[UUID] = None,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> AuditLog:
        """Stage an audit row. Not committed."""
        audit = AuditLog(
            actor=actor,
            actor_user_id=actor_user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            before={k: _audit_value(v) for k, v in before.items()} if before else None,
            after={k: _audit_value(v) for k, v in after.items()} if after else None,
            reason=reason,
        )
        self.db.add(audit)
        return audit

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
