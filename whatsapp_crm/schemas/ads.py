from datetime import date
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

AdPlatform = Literal["meta", "google"]


class AccountInput(BaseModel):
    external_id: str = Field(min_length=1)
    name: Optional[str] = None
    status: Optional[str] = None
    currency: Optional[str] = None
    timezone: Optional[str] = None


class CampaignInput(BaseModel):
    external_id: str = Field(min_length=1)
    account_external_id: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None
    objective: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Optional[float] = None
    budget_type: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class AdSetInput(BaseModel):
    external_id: str = Field(min_length=1)
    account_external_id: Optional[str] = None
    campaign_external_id: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None
    optimization_goal: Optional[str] = None
    bid_strategy: Optional[str] = None
    daily_budget: Optional[float] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    targeting: Optional[dict[str, Any]] = None
    metadata: Optional[dict[str, Any]] = None


class CreativeInput(BaseModel):
    external_id: str = Field(min_length=1)
    account_external_id: Optional[str] = None
    campaign_external_id: Optional[str] = None
    ad_set_external_id: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None
    creative_type: Optional[str] = None
    thumbnail_url: Optional[str] = None
    headline: Optional[str] = None
    description: Optional[str] = None
    destination: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class MetricInput(BaseModel):
    date: date
    account_external_id: str = Field(min_length=1)
    campaign_external_id: Optional[str] = None
    ad_set_external_id: Optional[str] = None
    ad_external_id: Optional[str] = None
    impressions: Optional[int] = None
    clicks: Optional[int] = None
    spend: Optional[float] = None
    leads: Optional[int] = None
    conversions_mql: Optional[int] = None
    conversions_opportunity: Optional[int] = None
    conversions_sale: Optional[int] = None
    revenue: Optional[float] = None
    ctr: Optional[float] = None
    cpc: Optional[float] = None
    cpm: Optional[float] = None
    cpl: Optional[float] = None


class IngestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    organization_id: UUID = Field(alias="organizationId")
    project_id: UUID = Field(alias="projectId")
    platform: AdPlatform
    accounts: list[AccountInput] = Field(min_length=1)
    campaigns: list[CampaignInput] = Field(default_factory=list)
    ad_sets: list[AdSetInput] = Field(default_factory=list, alias="adSets")
    creatives: list[CreativeInput] = Field(default_factory=list)
    metrics: list[MetricInput] = Field(min_length=1)


class IngestCounts(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    accounts: int
    campaigns: int
    ad_sets: int = Field(alias="adSets")
    creatives: int
    metrics: int


class IngestResponse(IngestCounts):
    ok: bool = True
