import re
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from whatsapp_crm.database import dialect_insert, utcnow
from whatsapp_crm.models import Contact, Conversation, WhatsAppAccount


class IdentityError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def normalize_phone(raw: str) -> str:
    """Keep digits only and prefix with '+', e.g. '55 (11) 99999-0000' -> '+5511999990000'."""
    digits = re.sub(r"\D", "", raw or "")
    return f"+{digits}"


def get_account_by_phone_id(db: Session, phone_id: str) -> Optional[WhatsAppAccount]:
    """Active account for a Cloud API phone_number_id, if any."""
    return (
        db.query(WhatsAppAccount)
        .filter(WhatsAppAccount.phone_id == phone_id, WhatsAppAccount.status == "active")
        .first()
    )


def _find_contact(db: Session, organization_id: UUID, phone: str) -> Optional[Contact]:
    return (
        db.query(Contact)
        .filter(Contact.organization_id == organization_id, Contact.phone == phone)
        .first()
    )


def get_or_create_contact(db: Session, organization_id: UUID, phone: str, name: Optional[str] = None) -> Contact:
    """Find contact by (organization, phone) or create one named after the sender.

    Creation races are settled by ON CONFLICT DO NOTHING and a re-read, as for conversations.
    """
    contact = _find_contact(db, organization_id, phone)
    if contact:
        return contact

    db.execute(
        dialect_insert(db, Contact)
        .values(
            organization_id=organization_id,
            name=(name or "").strip() or f"WhatsApp {phone}",
            phone=phone,
            source="whatsapp",
            created_at=utcnow(),
        )
        .on_conflict_do_nothing(index_elements=["organization_id", "phone"])
    )

    contact = _find_contact(db, organization_id, phone)
    if not contact:
        raise IdentityError(f"Failed to create contact for {phone}")
    return contact


def _find_conversation(db: Session, organization_id: UUID, phone: str) -> Optional[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.organization_id == organization_id, Conversation.phone_number == phone)
        .first()
    )


def get_or_create_conversation(
    db: Session,
    organization_id: UUID,
    account_id: UUID,
    phone: str,
    contact_id: UUID,
    ai_enabled: bool,
) -> Conversation:
    """Find the conversation for (organization, phone) or create it.

    Creation is INSERT ... ON CONFLICT DO NOTHING followed by a re-read, so two
    deliveries racing on the same phone end up sharing one row. Creating a
    conversation is not a handoff and writes no log entry.
    """
    conversation = _find_conversation(db, organization_id, phone)
    if conversation:
        return conversation

    db.execute(
        dialect_insert(db, Conversation)
        .values(
            organization_id=organization_id,
            account_id=account_id,
            contact_id=contact_id,
            phone_number=phone,
            ai_enabled=ai_enabled,
            status="open",
            created_at=utcnow(),
        )
        .on_conflict_do_nothing(index_elements=["organization_id", "phone_number"])
    )

    conversation = _find_conversation(db, organization_id, phone)
    if not conversation:
        raise IdentityError(f"Failed to create conversation for {phone}")
    return conversation
