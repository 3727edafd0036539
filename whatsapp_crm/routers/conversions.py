from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from whatsapp_crm.database import get_db, utcnow
from whatsapp_crm.dependencies import get_organization_id
from whatsapp_crm.models import ConversionEvent
from whatsapp_crm.schemas.conversion import (
    ConversionItem,
    ConversionListResponse,
    ConversionResponse,
    GoogleConversionRequest,
    MetaConversionRequest,
)
from whatsapp_crm.services.conversion_service import (
    ConversionResult,
    handle_google_conversion,
    handle_meta_conversion,
)

router = APIRouter(prefix="/conversions", tags=["conversions"])

CONVERSION_LIST_LIMIT = 200
DEFAULT_WINDOW_DAYS = 6


def _to_response(result: ConversionResult) -> ConversionResponse:
    return ConversionResponse(
        ok=True,
        status=result.status,
        reason=result.reason,
        payload_hash=result.payload_hash,
        response=result.external_response,
    )


def _response_reason(event: ConversionEvent) -> Optional[str]:
    if event.reason:
        return event.reason
    response: Any = event.external_response
    if isinstance(response, dict):
        for key in ("error", "message", "details"):
            if response.get(key):
                return str(response[key])
    return None


@router.post("/meta", response_model=ConversionResponse)
def meta_conversion(request: MetaConversionRequest, db: Session = Depends(get_db)):
    return _to_response(handle_meta_conversion(db, request))


@router.post("/google", response_model=ConversionResponse)
def google_conversion(request: GoogleConversionRequest, db: Session = Depends(get_db)):
    return _to_response(handle_google_conversion(db, request))


@router.get("", response_model=ConversionListResponse)
def list_conversions(
    date_from: Optional[datetime] = Query(default=None, alias="from"),
    date_to: Optional[datetime] = Query(default=None, alias="to"),
    project_id: Optional[UUID] = Query(default=None, alias="projectId"),
    organization_id: UUID = Depends(get_organization_id),
    db: Session = Depends(get_db),
):
    date_to = date_to or utcnow()
    date_from = date_from or date_to - timedelta(days=DEFAULT_WINDOW_DAYS)

    query = db.query(ConversionEvent).filter(
        ConversionEvent.organization_id == organization_id,
        ConversionEvent.attempted_at >= date_from,
        ConversionEvent.attempted_at <= date_to,
    )
    if project_id:
        query = query.filter(ConversionEvent.project_id == project_id)

    events = query.order_by(ConversionEvent.attempted_at.desc()).limit(CONVERSION_LIST_LIMIT).all()

    return ConversionListResponse(
        conversions=[
            ConversionItem(
                id=event.id,
                project_id=event.project_id,
                lead_id=event.lead_id,
                event_type=event.event_type,
                platform=event.platform,
                status=event.status,
                reason=_response_reason(event),
                attempts=event.attempts,
                payload_hash=event.payload_hash,
                attempted_at=event.attempted_at,
                created_at=event.created_at,
            )
            for event in events
        ]
    )
