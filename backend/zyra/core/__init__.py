"""
Core domain models - Export all models for Alembic
"""

from zyra.core.users.models import User
from zyra.core.transactions.models import Transaction
from zyra.core.messages.models import InboundMessage
from zyra.core.compliance.models import AuditLog

__all__ = ["User", "Transaction", "InboundMessage", "AuditLog"]
