from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from whatsapp_crm.database import dialect_insert, utcnow
from whatsapp_crm.models import Conversation, Message

DIRECTION_IN = "in"
DIRECTION_OUT = "out"


def save_message(
    db: Session,
    organization_id: UUID,
    conversation_id: UUID,
    direction: str,
    text: Optional[str] = None,
    wa_message_id: Optional[str] = None,
    message_type: Optional[str] = None,
    raw: Optional[dict] = None,
    timestamp: Optional[datetime] = None,
    status: Optional[str] = None,
) -> bool:
    """Append a message and refresh the conversation's last_message_at.

    A message whose wa_message_id already exists is a provider redelivery: the
    insert is dropped by ON CONFLICT DO NOTHING and False is returned. Any other
    database error propagates. The freshness update happens either way.
    """
    if direction not in (DIRECTION_IN, DIRECTION_OUT):
        raise ValueError(f"Unknown message direction: {direction}")

    at = timestamp or utcnow()
    stmt = dialect_insert(db, Message).values(
        organization_id=organization_id,
        conversation_id=conversation_id,
        direction=direction,
        wa_message_id=wa_message_id,
        text=text,
        type=message_type or "text",
        status=status,
        raw=raw,
        received_at=at if direction == DIRECTION_IN else None,
        sent_at=at if direction == DIRECTION_OUT else None,
        created_at=utcnow(),
    )
    if wa_message_id:
        stmt = stmt.on_conflict_do_nothing(index_elements=["wa_message_id"])

    inserted = db.execute(stmt).rowcount > 0

    db.execute(
        update(Conversation)
        .where(Conversation.id == conversation_id, Conversation.organization_id == organization_id)
        .values(last_message_at=at)
    )
    return inserted
