"""Ownership of Conversation.ai_enabled.

Every change to the flag goes through apply_handoff, which performs a
compare-and-set update and appends one Handoff row per real transition.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from whatsapp_crm.database import utcnow
from whatsapp_crm.logging_config import get_logger
from whatsapp_crm.models import Conversation, Handoff
from whatsapp_crm.services.state_machine import (
    ConversationMode,
    HandoffReason,
    is_ai_mode,
    mode_of,
    next_mode,
    should_handoff_to_human,
)

logger = get_logger("handoff_service")


class ConversationNotFoundError(Exception):
    def __init__(self, conversation_id: UUID):
        self.conversation_id = conversation_id
        self.message = f"Conversation {conversation_id} not found"
        super().__init__(self.message)


def get_conversation(db: Session, conversation_id: UUID, organization_id: UUID) -> Optional[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.organization_id == organization_id)
        .first()
    )


def apply_handoff(
    db: Session,
    conversation: Conversation,
    reason: HandoffReason,
    requested: Optional[ConversationMode] = None,
    by_user_id: Optional[UUID] = None,
) -> Optional[Handoff]:
    """Apply a trigger to the conversation. Returns the log entry, or None for a no-op."""
    current = mode_of(conversation.ai_enabled)
    target = next_mode(current, reason, requested)
    if target is None:
        return None

    result = db.execute(
        update(Conversation)
        .where(Conversation.id == conversation.id, Conversation.ai_enabled == is_ai_mode(current))
        .values(ai_enabled=is_ai_mode(target))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # A concurrent request already moved the flag; it owns the log entry.
        db.refresh(conversation)
        logger.info(
            "Handoff skipped, state changed concurrently",
            extra={"context": {"conversation_id": str(conversation.id), "reason": reason.value}},
        )
        return None

    set_committed_value(conversation, "ai_enabled", is_ai_mode(target))

    handoff = Handoff(
        organization_id=conversation.organization_id,
        conversation_id=conversation.id,
        from_state=current.value,
        to_state=target.value,
        reason=reason.value,
        by_user_id=by_user_id,
        created_at=utcnow(),
    )
    db.add(handoff)
    db.flush()

    logger.info(
        "Conversation handoff",
        extra={
            "context": {
                "conversation_id": str(conversation.id),
                "from": current.value,
                "to": target.value,
                "reason": reason.value,
                "by_user_id": str(by_user_id) if by_user_id else None,
            }
        },
    )
    return handoff


def handle_inbound_text(db: Session, conversation: Conversation, text: Optional[str]) -> Optional[Handoff]:
    """Hand an AI conversation to a human when the customer asks for one."""
    if not should_handoff_to_human(text):
        return None
    return apply_handoff(db, conversation, HandoffReason.KEYWORD)


def register_human_reply(
    db: Session,
    conversation: Conversation,
    by_user_id: Optional[UUID] = None,
) -> Optional[Handoff]:
    """A human is about to answer: take the conversation away from the AI."""
    return apply_handoff(db, conversation, HandoffReason.HUMAN_REPLY, by_user_id=by_user_id)


def toggle_conversation_ai(
    db: Session,
    conversation_id: UUID,
    organization_id: UUID,
    enabled: bool,
    by_user_id: Optional[UUID] = None,
) -> Optional[Handoff]:
    conversation = get_conversation(db, conversation_id, organization_id)
    if not conversation:
        raise ConversationNotFoundError(conversation_id)

    return apply_handoff(
        db,
        conversation,
        HandoffReason.MANUAL_TOGGLE,
        requested=mode_of(enabled),
        by_user_id=by_user_id,
    )
