import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from whatsapp_crm.database import Base, utcnow


class Conversation(Base):
    __tablename__ = "whatsapp_conversations"
    __table_args__ = (
        UniqueConstraint("organization_id", "phone_number", name="uq_whatsapp_conversations_org_phone"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, nullable=False, index=True)
    account_id = Column(Uuid, ForeignKey("whatsapp_accounts.id"))
    contact_id = Column(Uuid, ForeignKey("contacts.id"))
    lead_id = Column(Uuid, ForeignKey("leads.id"))
    phone_number = Column(Text, nullable=False)
    # Written only by handoff_service.apply_handoff
    ai_enabled = Column(Boolean, nullable=False, default=True)
    status = Column(Text, nullable=False, default="open")
    last_message_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    account = relationship("WhatsAppAccount")
    contact = relationship("Contact", back_populates="conversations")
    lead = relationship("Lead")
    messages = relationship("Message", back_populates="conversation", order_by="Message.created_at")
    handoffs = relationship("Handoff", back_populates="conversation", order_by="Handoff.created_at")
