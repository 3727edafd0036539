from typing import Optional

from sqlalchemy.orm import Session

from whatsapp_crm.database import utcnow
from whatsapp_crm.models import Contact, Conversation, Deal, Lead


def ensure_lead_and_deal(db: Session, conversation: Conversation, contact: Contact) -> Optional[Lead]:
    """Link the conversation to a CRM lead on first sight, and give the contact a deal if it has none.

    Returns the lead created by this call, or None if the conversation already had one.
    """
    title = f"Lead WhatsApp {conversation.phone_number}"
    now = utcnow()
    lead = None

    if conversation.lead_id is None:
        lead = Lead(
            organization_id=conversation.organization_id,
            name=title,
            source="whatsapp",
            converted_to_contact_id=contact.id,
            created_at=now,
        )
        db.add(lead)
        db.flush()
        conversation.lead_id = lead.id

    has_deal = (
        db.query(Deal.id)
        .filter(Deal.organization_id == conversation.organization_id, Deal.contact_id == contact.id)
        .first()
    )
    if not has_deal:
        db.add(
            Deal(
                organization_id=conversation.organization_id,
                title=title,
                contact_id=contact.id,
                tags=["whatsapp"],
                created_at=now,
            )
        )

    db.flush()
    return lead
