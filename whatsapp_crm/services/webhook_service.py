"""Inbound WhatsApp webhook processing.

Messages are handled one at a time, each in its own transaction: a message
that fails is rolled back and logged, and the loop moves on to the next one.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from whatsapp_crm.config import settings
from whatsapp_crm.logging_config import ContextLogger, get_logger
from whatsapp_crm.models import WhatsAppAccount
from whatsapp_crm.schemas.webhook import WebhookEnvelope, WebhookResult, WhatsAppInboundMessage
from whatsapp_crm.services.handoff_service import handle_inbound_text
from whatsapp_crm.services.identity_service import (
    get_account_by_phone_id,
    get_or_create_contact,
    get_or_create_conversation,
    normalize_phone,
)
from whatsapp_crm.services.lead_service import ensure_lead_and_deal
from whatsapp_crm.services.message_service import DIRECTION_IN, save_message

logger = get_logger("webhook_service")


def _message_time(message: WhatsAppInboundMessage) -> Optional[datetime]:
    if message.timestamp is None:
        return None
    return datetime.fromtimestamp(message.timestamp, tz=timezone.utc)


def process_inbound_message(
    db: Session,
    account: WhatsAppAccount,
    message: WhatsAppInboundMessage,
    profile_name: Optional[str] = None,
) -> bool:
    """Resolve identity and store the message, then apply lead linkage and the handoff policy.

    Returns False when the message was a redelivery of one already stored; a
    redelivery is treated as already applied and triggers no policy step.
    """
    phone = normalize_phone(message.sender)
    contact = get_or_create_contact(db, account.organization_id, phone, profile_name)

    ai_default = account.ai_enabled if account.ai_enabled is not None else settings.default_ai_enabled
    conversation = get_or_create_conversation(
        db,
        organization_id=account.organization_id,
        account_id=account.id,
        phone=phone,
        contact_id=contact.id,
        ai_enabled=ai_default,
    )

    inserted = save_message(
        db,
        organization_id=account.organization_id,
        conversation_id=conversation.id,
        direction=DIRECTION_IN,
        text=message.body,
        wa_message_id=message.id,
        message_type=message.type,
        raw=message.raw(),
        timestamp=_message_time(message),
    )
    if not inserted:
        return False

    ensure_lead_and_deal(db, conversation, contact)
    handle_inbound_text(db, conversation, message.body)
    return True


def _message_id(item: Any) -> Optional[str]:
    return item.get("id") if isinstance(item, dict) else None


def handle_whatsapp_webhook(db: Session, envelope: WebhookEnvelope) -> WebhookResult:
    if not envelope.entry:
        return WebhookResult(handled=False, reason="no_entry")

    result = WebhookResult(handled=True)

    for entry in envelope.entry:
        for change in entry.changes:
            value = change.value
            phone_id = value.phone_number_id if value else None
            if not phone_id:
                continue

            account = get_account_by_phone_id(db, phone_id)
            if not account:
                logger.warning("No active account for phone_number_id", extra={"context": {"phone_id": phone_id}})
                continue

            log = ContextLogger(
                logger, {"organization_id": str(account.organization_id), "account_id": str(account.id)}
            )
            names = value.profile_names()

            for item in value.messages:
                try:
                    message = WhatsAppInboundMessage.model_validate(item)
                except ValidationError as e:
                    result.failed += 1
                    log.warning(
                        "Malformed inbound message skipped",
                        context={"wa_message_id": _message_id(item), "errors": e.errors(include_url=False)},
                    )
                    continue

                try:
                    inserted = process_inbound_message(db, account, message, names.get(message.sender))
                    db.commit()
                except Exception as e:
                    db.rollback()
                    result.failed += 1
                    log.error(
                        f"Failed to process inbound message: {e}",
                        context={"wa_message_id": message.id},
                    )
                    continue

                if inserted:
                    result.processed += 1
                else:
                    result.duplicates += 1
                    log.info("Duplicate inbound message ignored", context={"wa_message_id": message.id})

    return result
