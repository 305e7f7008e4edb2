"""
User model - a Zyra account (phone identity + ledger wallet)
"""

from sqlalchemy import Column, String, Numeric, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from decimal import Decimal
import enum
from zyra.core.common.base_model import BaseModel


class WhatsAppVerificationStatus(str, enum.Enum):
    """WhatsApp verification state"""
    UNVERIFIED = "UNVERIFIED"
    CODE_ISSUED = "CODE_ISSUED"
    VERIFIED = "VERIFIED"


class User(BaseModel):
    """
    User model

    The phone number is stored in canonical form (+<countrycode><digits>) and is
    unique. The ledger secret is stored encrypted and is only decrypted by the
    account ledger store right before signing a ledger transfer.

    balance is the locally cached balance, mutated only by completed transfers
    and completed deposits. The authoritative balance lives on the ledger.
    """

    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(32), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    # Ledger wallet
    public_key = Column(String(56), unique=True, nullable=False, index=True)
    encrypted_secret = Column(Text, nullable=False)
    balance = Column(Numeric(24, 2), nullable=False, default=Decimal("0.00"))

    # WhatsApp verification
    whatsapp_status = Column(
        SQLEnum(WhatsAppVerificationStatus, name="whatsapp_verification_status", create_constraint=True),
        nullable=False,
        default=WhatsAppVerificationStatus.UNVERIFIED,
    )
    whatsapp_verification_code = Column(String(6), nullable=True, index=True)

    # Relationships
    transactions = relationship(
        "Transaction",
        back_populates="user",
        lazy="select",
        order_by="desc(Transaction.created_at)",
    )

    @property
    def whatsapp_verified(self) -> bool:
        return self.whatsapp_status == WhatsAppVerificationStatus.VERIFIED
