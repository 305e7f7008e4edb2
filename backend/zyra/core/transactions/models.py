"""
Transaction model - record of an attempted money movement
"""

from sqlalchemy import CheckConstraint, Column, String, Integer, Numeric, Text, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum
from zyra.core.common.base_model import BaseModel


class TransactionType(str, enum.Enum):
    """Transaction type enum"""
    DEPOSIT = "DEPOSIT"  # M-Pesa STK Push top-up
    SEND = "SEND"  # P2P transfer initiated over WhatsApp


class TransactionStatus(str, enum.Enum):
    """Transaction status enum"""
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({TransactionStatus.SUCCESS, TransactionStatus.FAILED})


class Transaction(BaseModel):
    """
    Transaction model

    Lifecycle:
    - DEPOSIT: created PENDING when the STK Push is accepted by the provider,
      moved to SUCCESS or FAILED exactly once by the matching provider callback
      (matched on merchant_request_id OR checkout_request_id).
    - SEND: created already terminal (SUCCESS) in the same database transaction
      that moves the balances, and only after the ledger confirmed the transfer.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="check_transactions_amount_positive"),
    )

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", name="fk_transactions_user_id"), nullable=False, index=True)
    type = Column(SQLEnum(TransactionType, name="transaction_type", create_constraint=True), nullable=False, index=True)
    status = Column(SQLEnum(TransactionStatus, name="transaction_status", create_constraint=True), nullable=False, default=TransactionStatus.PENDING, index=True)
    amount = Column(Numeric(24, 2), nullable=False)

    # Counterparty (SEND only)
    counterparty_phone = Column(String(32), nullable=True)
    recipient_address = Column(String(56), nullable=True)

    # External correlation identifiers
    merchant_request_id = Column(String(100), nullable=True, index=True)
    checkout_request_id = Column(String(100), nullable=True, index=True)
    ledger_tx_hash = Column(String(64), nullable=True)
    mpesa_receipt_number = Column(String(50), nullable=True)

    # Provider result
    result_code = Column(Integer, nullable=True)
    result_desc = Column(Text, nullable=True)

    # Relationships
    user = relationship("User", back_populates="transactions")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
