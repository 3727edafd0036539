import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from whatsapp_crm.database import Base, JSONType, utcnow


class Message(Base):
    __tablename__ = "whatsapp_messages"
    __table_args__ = (CheckConstraint("direction IN ('in', 'out')", name="ck_whatsapp_messages_direction"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, nullable=False, index=True)
    conversation_id = Column(Uuid, ForeignKey("whatsapp_conversations.id"), nullable=False, index=True)
    direction = Column(Text, nullable=False)  # in, out
    wa_message_id = Column(Text, unique=True)
    text = Column(Text)
    type = Column(Text, nullable=False, default="text")
    status = Column(Text)  # sent, delivered, read, failed
    error = Column(Text)
    raw = Column(JSONType)
    sent_at = Column(DateTime(timezone=True))
    received_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")
