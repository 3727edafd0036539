from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from whatsapp_crm.database import get_db
from whatsapp_crm.schemas.ads import IngestRequest, IngestResponse
from whatsapp_crm.services.ads_ingest_service import IngestError, ingest_ads_payload

router = APIRouter(prefix="/ads", tags=["ads"])


@router.post("/{platform}/ingest", response_model=IngestResponse, status_code=201)
def ingest(platform: str, request: IngestRequest, db: Session = Depends(get_db)):
    """Ingest one batch of ad structure and daily metrics for a platform."""
    if request.platform != platform:
        raise HTTPException(status_code=400, detail=f"Payload platform '{request.platform}' does not match '{platform}'")

    try:
        counts = ingest_ads_payload(db, request)
    except IngestError as e:
        if e.external_id is not None:
            raise HTTPException(status_code=400, detail={"error": e.message, "external_id": e.external_id})
        raise HTTPException(status_code=500, detail={"error": e.message})

    return IngestResponse(**counts.model_dump())
