from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from whatsapp_crm.database import get_db
from whatsapp_crm.logging_config import get_logger
from whatsapp_crm.models import WhatsAppAccount
from whatsapp_crm.schemas.webhook import WebhookEnvelope, WebhookResult
from whatsapp_crm.services.webhook_service import handle_whatsapp_webhook

logger = get_logger("webhook")

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


@router.get("/webhook", response_class=PlainTextResponse)
def verify_webhook(
    mode: str | None = Query(default=None, alias="hub.mode"),
    token: str | None = Query(default=None, alias="hub.verify_token"),
    challenge: str | None = Query(default=None, alias="hub.challenge"),
    db: Session = Depends(get_db),
):
    """Subscription handshake: echo the challenge when the token belongs to a connected account."""
    if mode != "subscribe" or not token or not challenge:
        raise HTTPException(status_code=400, detail="invalid verification payload")

    account = db.query(WhatsAppAccount.id).filter(WhatsAppAccount.verify_token == token).first()
    if not account:
        raise HTTPException(status_code=403, detail="verify token not found")

    return PlainTextResponse(challenge)


@router.post("/webhook", response_model=WebhookResult)
async def receive_webhook(request: Request, db: Session = Depends(get_db)):
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid payload")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="invalid payload")

    try:
        envelope = WebhookEnvelope.model_validate(payload)
    except ValidationError as e:
        logger.warning("Malformed webhook payload", extra={"context": {"errors": e.errors(include_url=False)}})
        raise HTTPException(status_code=400, detail=e.errors(include_url=False))

    return handle_whatsapp_webhook(db, envelope)
