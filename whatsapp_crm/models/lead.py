import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from whatsapp_crm.database import Base, JSONType, utcnow


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, nullable=False, index=True)
    name = Column(Text, nullable=False)
    source = Column(Text)
    converted_to_contact_id = Column(Uuid, ForeignKey("contacts.id"))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Deal(Base):
    __tablename__ = "deals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, nullable=False, index=True)
    title = Column(Text, nullable=False)
    contact_id = Column(Uuid, ForeignKey("contacts.id"))
    tags = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    contact = relationship("Contact", back_populates="deals")
