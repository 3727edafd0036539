from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

ConversionEventType = Literal["lead", "mql", "opportunity", "sale"]
ConversionStatus = Literal["sent", "skipped", "pending", "error"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BaseConversionRequest(_CamelModel):
    organization_id: UUID
    project_id: UUID
    lead_id: Optional[UUID] = None
    event_type: ConversionEventType
    event_time: Optional[datetime] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    click_id: Optional[str] = None
    gclid: Optional[str] = None
    fbclid: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class MetaConversionRequest(BaseConversionRequest):
    pixel_id: Optional[str] = None
    access_token: Optional[str] = None


class GoogleConversionRequest(BaseConversionRequest):
    customer_id: Optional[str] = None
    conversion_action_id: Optional[str] = None
    developer_token: Optional[str] = None
    login_customer_id: Optional[str] = None
    access_token: Optional[str] = None


class ConversionResponse(_CamelModel):
    ok: bool
    status: ConversionStatus
    reason: Optional[str] = None
    payload_hash: str
    response: Optional[Any] = None


class ConversionItem(BaseModel):
    id: UUID
    project_id: UUID
    lead_id: Optional[UUID] = None
    event_type: str
    platform: str
    status: str
    reason: Optional[str] = None
    attempts: int
    payload_hash: str
    attempted_at: datetime
    created_at: datetime


class ConversionListResponse(BaseModel):
    conversions: list[ConversionItem]
