"""Idempotent ingestion of an ad platform batch into the ad entity graph.

Entities arrive linked by platform external ids. They are upserted strictly
in dependency order (accounts, campaigns, ad sets, creatives, metrics), each
one resolving its parents from the ids produced earlier in the same batch.
A reference that does not resolve aborts the whole batch.

Account resolution for ad sets and creatives follows a fixed precedence:
1. the entity's own account_external_id, when given;
2. otherwise the account of its campaign_external_id, when given;
3. otherwise the batch's first account.
An explicit account wins even when the campaign belongs to another account.
"""

from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from whatsapp_crm.database import dialect_insert, utcnow
from whatsapp_crm.logging_config import get_logger
from whatsapp_crm.models import AdAccount, AdCampaign, AdCreative, AdMetricDaily, AdSet
from whatsapp_crm.schemas.ads import (
    AccountInput,
    AdSetInput,
    CampaignInput,
    CreativeInput,
    IngestCounts,
    IngestRequest,
    MetricInput,
)

logger = get_logger("ads_ingest_service")


class IngestError(Exception):
    def __init__(self, message: str, external_id: Optional[str] = None):
        self.message = message
        self.external_id = external_id
        super().__init__(message)


@dataclass
class IdMap:
    accounts: dict[str, UUID] = field(default_factory=dict)
    campaigns: dict[str, UUID] = field(default_factory=dict)
    campaign_accounts: dict[str, UUID] = field(default_factory=dict)
    ad_sets: dict[str, UUID] = field(default_factory=dict)
    creatives: dict[str, UUID] = field(default_factory=dict)


def _upsert(db: Session, model, values: dict, key: list[str]) -> UUID:
    """INSERT ... ON CONFLICT (key) DO UPDATE, returning the row id."""
    stmt = dialect_insert(db, model).values(**values)
    updates = {name: stmt.excluded[name] for name in values if name not in key and name != "created_at"}
    stmt = stmt.on_conflict_do_update(index_elements=key, set_=updates).returning(model.__table__.c.id)
    return db.execute(stmt).scalar_one()


def _lookup(ids: dict[str, UUID], external_id: str, kind: str, owner: str) -> UUID:
    resolved = ids.get(external_id)
    if resolved is None:
        raise IngestError(f"{kind} {external_id} not resolved for {owner}", external_id=external_id)
    return resolved


def _optional_lookup(ids: dict[str, UUID], external_id: Optional[str], kind: str, owner: str) -> Optional[UUID]:
    if not external_id:
        return None
    return _lookup(ids, external_id, kind, owner)


def resolve_account(
    id_map: IdMap,
    owner: str,
    default_account: str,
    account_external_id: Optional[str] = None,
    campaign_external_id: Optional[str] = None,
) -> UUID:
    """Explicit account, then the campaign's account, then the batch default."""
    if account_external_id:
        return _lookup(id_map.accounts, account_external_id, "account", owner)
    if campaign_external_id:
        return _lookup(id_map.campaign_accounts, campaign_external_id, "campaign", owner)
    return _lookup(id_map.accounts, default_account, "account", owner)


class AdsIngestor:
    def __init__(self, db: Session, request: IngestRequest):
        self.db = db
        self.request = request
        self.id_map = IdMap()
        self.now = utcnow()
        self.default_account = request.accounts[0].external_id

    def _scope(self) -> dict:
        return {
            "organization_id": self.request.organization_id,
            "project_id": self.request.project_id,
            "platform": self.request.platform,
            "created_at": self.now,
            "updated_at": self.now,
        }

    def ingest_account(self, account: AccountInput) -> None:
        values = {
            **self._scope(),
            "external_id": account.external_id,
            "name": account.name,
            "status": account.status,
            "currency": account.currency,
            "timezone": account.timezone,
        }
        self.id_map.accounts[account.external_id] = _upsert(
            self.db, AdAccount, values, ["organization_id", "platform", "external_id"]
        )

    def ingest_campaign(self, campaign: CampaignInput) -> None:
        owner = f"campaign {campaign.external_id}"
        account_id = _lookup(
            self.id_map.accounts, campaign.account_external_id or self.default_account, "account", owner
        )
        values = {
            **self._scope(),
            "account_id": account_id,
            "external_id": campaign.external_id,
            "name": campaign.name,
            "status": campaign.status,
            "objective": campaign.objective,
            "start_date": campaign.start_date,
            "end_date": campaign.end_date,
            "budget": campaign.budget,
            "budget_type": campaign.budget_type,
            "metadata": campaign.metadata,
        }
        campaign_id = _upsert(self.db, AdCampaign, values, ["account_id", "external_id"])
        self.id_map.campaigns[campaign.external_id] = campaign_id
        self.id_map.campaign_accounts[campaign.external_id] = account_id

    def ingest_ad_set(self, ad_set: AdSetInput) -> None:
        owner = f"ad set {ad_set.external_id}"
        account_id = resolve_account(
            self.id_map, owner, self.default_account, ad_set.account_external_id, ad_set.campaign_external_id
        )
        values = {
            **self._scope(),
            "account_id": account_id,
            "campaign_id": _optional_lookup(self.id_map.campaigns, ad_set.campaign_external_id, "campaign", owner),
            "external_id": ad_set.external_id,
            "name": ad_set.name,
            "status": ad_set.status,
            "optimization_goal": ad_set.optimization_goal,
            "bid_strategy": ad_set.bid_strategy,
            "daily_budget": ad_set.daily_budget,
            "start_date": ad_set.start_date,
            "end_date": ad_set.end_date,
            "targeting": ad_set.targeting,
            "metadata": ad_set.metadata,
        }
        self.id_map.ad_sets[ad_set.external_id] = _upsert(self.db, AdSet, values, ["account_id", "external_id"])

    def ingest_creative(self, creative: CreativeInput) -> None:
        owner = f"creative {creative.external_id}"
        account_id = resolve_account(
            self.id_map, owner, self.default_account, creative.account_external_id, creative.campaign_external_id
        )
        values = {
            **self._scope(),
            "account_id": account_id,
            "campaign_id": _optional_lookup(
                self.id_map.campaigns, creative.campaign_external_id, "campaign", owner
            ),
            "ad_set_id": _optional_lookup(self.id_map.ad_sets, creative.ad_set_external_id, "ad set", owner),
            "external_id": creative.external_id,
            "name": creative.name,
            "status": creative.status,
            "creative_type": creative.creative_type,
            "thumbnail_url": creative.thumbnail_url,
            "headline": creative.headline,
            "description": creative.description,
            "destination": creative.destination,
            "metadata": creative.metadata,
        }
        self.id_map.creatives[creative.external_id] = _upsert(
            self.db, AdCreative, values, ["account_id", "external_id"]
        )

    def ingest_metric(self, metric: MetricInput) -> None:
        owner = f"metric {metric.account_external_id}/{metric.date.isoformat()}"
        account_id = _lookup(self.id_map.accounts, metric.account_external_id, "account", owner)
        campaign_id = _optional_lookup(self.id_map.campaigns, metric.campaign_external_id, "campaign", owner)
        ad_set_id = _optional_lookup(self.id_map.ad_sets, metric.ad_set_external_id, "ad set", owner)
        ad_id = _optional_lookup(self.id_map.creatives, metric.ad_external_id, "creative", owner)

        values = {
            **self._scope(),
            "account_id": account_id,
            "campaign_id": campaign_id,
            "ad_set_id": ad_set_id,
            "ad_id": ad_id,
            "dimension_key": dimension_key(campaign_id, ad_set_id, ad_id),
            "date": metric.date,
            "impressions": metric.impressions or 0,
            "clicks": metric.clicks or 0,
            "spend": metric.spend or 0,
            "leads": metric.leads or 0,
            "conversions_mql": metric.conversions_mql or 0,
            "conversions_opportunity": metric.conversions_opportunity or 0,
            "conversions_sale": metric.conversions_sale or 0,
            "revenue": metric.revenue or 0,
            # Rates are stored as sent; recomputing them belongs to analytics.
            "ctr": metric.ctr,
            "cpc": metric.cpc,
            "cpm": metric.cpm,
            "cpl": metric.cpl,
        }
        _upsert(
            self.db,
            AdMetricDaily,
            values,
            ["organization_id", "platform", "account_id", "date", "dimension_key"],
        )

    def run(self) -> IngestCounts:
        for account in self.request.accounts:
            self.ingest_account(account)
        for campaign in self.request.campaigns:
            self.ingest_campaign(campaign)
        for ad_set in self.request.ad_sets:
            self.ingest_ad_set(ad_set)
        for creative in self.request.creatives:
            self.ingest_creative(creative)
        for metric in self.request.metrics:
            self.ingest_metric(metric)

        return IngestCounts(
            accounts=len(self.request.accounts),
            campaigns=len(self.request.campaigns),
            ad_sets=len(self.request.ad_sets),
            creatives=len(self.request.creatives),
            metrics=len(self.request.metrics),
        )


def dimension_key(campaign_id: Optional[UUID], ad_set_id: Optional[UUID], ad_id: Optional[UUID]) -> str:
    return "|".join(str(part) if part else "" for part in (campaign_id, ad_set_id, ad_id))


def ingest_ads_payload(db: Session, request: IngestRequest) -> IngestCounts:
    """Ingest one batch in a single transaction: committed on success, rolled back on any error."""
    try:
        counts = AdsIngestor(db, request).run()
        db.commit()
    except IngestError as e:
        db.rollback()
        logger.warning(
            f"Ads ingest rejected: {e.message}",
            extra={"context": {"organization_id": str(request.organization_id), "external_id": e.external_id}},
        )
        raise
    except Exception as e:
        db.rollback()
        logger.error(
            f"Ads ingest failed: {e}",
            extra={"context": {"organization_id": str(request.organization_id), "platform": request.platform}},
        )
        raise IngestError(f"ingest failed: {e}") from e

    logger.info(
        "Ads batch ingested",
        extra={"context": {"organization_id": str(request.organization_id), **counts.model_dump()}},
    )
    return counts
