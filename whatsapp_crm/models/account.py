import uuid

from sqlalchemy import Boolean, Column, DateTime, Text, UniqueConstraint, Uuid

from whatsapp_crm.database import Base, utcnow


class WhatsAppAccount(Base):
    __tablename__ = "whatsapp_accounts"
    __table_args__ = (UniqueConstraint("organization_id", "phone_number", name="uq_whatsapp_accounts_org_phone"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, nullable=False, index=True)
    phone_number = Column(Text, nullable=False)
    phone_id = Column(Text, nullable=False, index=True)  # Cloud API phone_number_id
    waba_business_account_id = Column(Text)
    access_token = Column(Text)
    verify_token = Column(Text, index=True)
    status = Column(Text, nullable=False, default="active")  # active, inactive
    ai_enabled = Column(Boolean)  # default for new conversations, NULL means settings default
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
