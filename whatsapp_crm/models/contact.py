import uuid

from sqlalchemy import Column, DateTime, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from whatsapp_crm.database import Base, utcnow


class Contact(Base):
    __tablename__ = "contacts"
    __table_args__ = (UniqueConstraint("organization_id", "phone", name="uq_contacts_org_phone"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, nullable=False, index=True)
    name = Column(Text, nullable=False)
    phone = Column(Text, index=True)
    source = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    conversations = relationship("Conversation", back_populates="contact")
    deals = relationship("Deal", back_populates="contact")
