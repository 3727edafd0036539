"""Ad platform entity graph: account -> campaign -> ad set -> creative, plus daily metrics.

Every table is keyed by its owning account and the platform's external id so
that re-ingesting a batch only refreshes rows.
"""

import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, Text, UniqueConstraint, Uuid

from whatsapp_crm.database import Base, JSONType, utcnow


class AdAccount(Base):
    __tablename__ = "ad_accounts"
    __table_args__ = (UniqueConstraint("organization_id", "platform", "external_id", name="uq_ad_accounts_key"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, nullable=False)
    project_id = Column(Uuid, nullable=False)
    platform = Column(Text, nullable=False)  # meta, google
    external_id = Column(Text, nullable=False)
    name = Column(Text)
    status = Column(Text)
    currency = Column(Text)
    timezone = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class AdCampaign(Base):
    __tablename__ = "ad_campaigns"
    __table_args__ = (UniqueConstraint("account_id", "external_id", name="uq_ad_campaigns_key"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, ForeignKey("ad_accounts.id"), nullable=False)
    organization_id = Column(Uuid, nullable=False)
    project_id = Column(Uuid, nullable=False)
    platform = Column(Text, nullable=False)
    external_id = Column(Text, nullable=False)
    name = Column(Text)
    status = Column(Text)
    objective = Column(Text)
    start_date = Column(Date)
    end_date = Column(Date)
    budget = Column(Numeric(14, 2))
    budget_type = Column(Text)
    metadata_json = Column("metadata", JSONType)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class AdSet(Base):
    __tablename__ = "ad_sets"
    __table_args__ = (UniqueConstraint("account_id", "external_id", name="uq_ad_sets_key"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, ForeignKey("ad_accounts.id"), nullable=False)
    campaign_id = Column(Uuid, ForeignKey("ad_campaigns.id"))
    organization_id = Column(Uuid, nullable=False)
    project_id = Column(Uuid, nullable=False)
    platform = Column(Text, nullable=False)
    external_id = Column(Text, nullable=False)
    name = Column(Text)
    status = Column(Text)
    optimization_goal = Column(Text)
    bid_strategy = Column(Text)
    daily_budget = Column(Numeric(14, 2))
    start_date = Column(Date)
    end_date = Column(Date)
    targeting = Column(JSONType)
    metadata_json = Column("metadata", JSONType)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class AdCreative(Base):
    __tablename__ = "ad_creatives"
    __table_args__ = (UniqueConstraint("account_id", "external_id", name="uq_ad_creatives_key"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, ForeignKey("ad_accounts.id"), nullable=False)
    campaign_id = Column(Uuid, ForeignKey("ad_campaigns.id"))
    ad_set_id = Column(Uuid, ForeignKey("ad_sets.id"))
    organization_id = Column(Uuid, nullable=False)
    project_id = Column(Uuid, nullable=False)
    platform = Column(Text, nullable=False)
    external_id = Column(Text, nullable=False)
    name = Column(Text)
    status = Column(Text)
    creative_type = Column(Text)
    thumbnail_url = Column(Text)
    headline = Column(Text)
    description = Column(Text)
    destination = Column(Text)
    metadata_json = Column("metadata", JSONType)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class AdMetricDaily(Base):
    __tablename__ = "ad_metrics_daily"
    __table_args__ = (
        UniqueConstraint(
            "organization_id", "platform", "account_id", "date", "dimension_key", name="uq_ad_metrics_daily_key"
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, nullable=False)
    project_id = Column(Uuid, nullable=False)
    platform = Column(Text, nullable=False)
    account_id = Column(Uuid, ForeignKey("ad_accounts.id"), nullable=False)
    campaign_id = Column(Uuid, ForeignKey("ad_campaigns.id"))
    ad_set_id = Column(Uuid, ForeignKey("ad_sets.id"))
    ad_id = Column(Uuid, ForeignKey("ad_creatives.id"))
    # "<campaign_id>|<ad_set_id>|<ad_id>", empty segment for a missing parent
    dimension_key = Column(Text, nullable=False)
    date = Column(Date, nullable=False)
    impressions = Column(Integer, nullable=False, default=0)
    clicks = Column(Integer, nullable=False, default=0)
    spend = Column(Numeric(14, 2), nullable=False, default=0)
    leads = Column(Integer, nullable=False, default=0)
    conversions_mql = Column(Integer, nullable=False, default=0)
    conversions_opportunity = Column(Integer, nullable=False, default=0)
    conversions_sale = Column(Integer, nullable=False, default=0)
    revenue = Column(Numeric(14, 2), nullable=False, default=0)
    ctr = Column(Numeric(12, 6))
    cpc = Column(Numeric(14, 4))
    cpm = Column(Numeric(14, 4))
    cpl = Column(Numeric(14, 4))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
