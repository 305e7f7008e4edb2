"""
AuditLog model - Transversal audit trail
"""

from sqlalchemy import Column, String, JSON, Text, Uuid, ForeignKey
from sqlalchemy.orm import relationship
from zyra.core.common.base_model import BaseModel


class AuditLog(BaseModel):
    """
    AuditLog model - Audit trail for balance-moving and identity actions

    actor is the channel that triggered the action (WHATSAPP, MPESA, WEB, SYSTEM).
    """

    __tablename__ = "audit_logs"

    actor = Column(String(20), nullable=False, index=True)
    actor_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", name="fk_audit_logs_actor_user_id"), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)

    # Relationships
    actor_user = relationship("User", foreign_keys=[actor_user_id])
