"""
Inbound message model - WhatsApp delivery de-duplication
"""

from sqlalchemy import Column, String
from zyra.core.common.base_model import BaseModel


class InboundMessage(BaseModel):
    """
    One row per WhatsApp message id that entered the command router.

    The platform delivers webhooks at least once; the unique constraint on
    message_id is what keeps a redelivered "send" from moving money twice.
    """

    __tablename__ = "inbound_messages"

    message_id = Column(String(255), unique=True, nullable=False, index=True)
    sender_phone = Column(String(32), nullable=False, index=True)
    command = Column(String(32), nullable=True)
