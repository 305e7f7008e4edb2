"""
Models registry for Alembic - Import all models here to ensure Base.metadata is complete

Import order matters to avoid circular dependencies:
1. Base first
2. Models without foreign keys
3. Models with foreign keys (in dependency order)
"""

from zyra.infrastructure.database import Base

# 1. User model (no foreign keys)
from zyra.core.users.models import User, WhatsAppVerificationStatus

# 2. Transaction model (depends on User)
from zyra.core.transactions.models import Transaction, TransactionType, TransactionStatus

# 3. Inbound message de-duplication (no foreign keys)
from zyra.core.messages.models import InboundMessage

# 4. AuditLog model (depends on User)
from zyra.core.compliance.models import AuditLog

__all__ = [
    "Base",
    "User",
    "WhatsAppVerificationStatus",
    "Transaction",
    "TransactionType",
    "TransactionStatus",
    "InboundMessage",
    "AuditLog",
]
