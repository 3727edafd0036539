import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from whatsapp_crm.database import Base, utcnow


class Handoff(Base):
    """Append-only audit row, one per change of Conversation.ai_enabled."""

    __tablename__ = "whatsapp_handoffs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, nullable=False, index=True)
    conversation_id = Column(Uuid, ForeignKey("whatsapp_conversations.id"), nullable=False, index=True)
    from_state = Column(Text)  # ai, human
    to_state = Column(Text, nullable=False)
    reason = Column(Text, nullable=False)  # keyword, human_reply, manual_toggle
    by_user_id = Column(Uuid)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    conversation = relationship("Conversation", back_populates="handoffs")
