import uuid

from sqlalchemy import Column, DateTime, Integer, Numeric, Text, UniqueConstraint, Uuid

from whatsapp_crm.database import Base, JSONType, utcnow


class ConversionEvent(Base):
    """One row per logical conversion (payload hash) per platform; retries update it."""

    __tablename__ = "conversion_events"
    __table_args__ = (
        UniqueConstraint("organization_id", "platform", "payload_hash", name="uq_conversion_events_hash"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, nullable=False, index=True)
    project_id = Column(Uuid, nullable=False)
    lead_id = Column(Uuid)
    event_type = Column(Text, nullable=False)  # lead, mql, opportunity, sale
    platform = Column(Text, nullable=False)  # meta, google
    payload_hash = Column(Text, nullable=False)
    status = Column(Text, nullable=False)  # sent, skipped, pending, error
    reason = Column(Text)
    external_response = Column(JSONType)
    attempts = Column(Integer, nullable=False, default=1)
    attempted_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class FunnelEvent(Base):
    __tablename__ = "funnel_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, nullable=False, index=True)
    project_id = Column(Uuid, nullable=False)
    lead_id = Column(Uuid)
    event_type = Column(Text, nullable=False)
    platform = Column(Text)
    click_id = Column(Text)
    gclid = Column(Text)
    fbclid = Column(Text)
    amount = Column(Numeric(14, 2))
    currency = Column(Text)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
