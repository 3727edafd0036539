from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from whatsapp_crm.database import get_db
from whatsapp_crm.dependencies import get_actor_id, get_organization_id
from whatsapp_crm.logging_config import get_logger
from whatsapp_crm.models import Conversation, Handoff, Message, WhatsAppAccount
from whatsapp_crm.schemas.conversation import (
    ContactRef,
    ConversationDetail,
    ConversationListResponse,
    ConversationMessagesResponse,
    ConversationRef,
    ConversationSummary,
    HandoffLogItem,
    HandoffLogResponse,
    LastMessage,
    LeadRef,
    MessageItem,
    MessageLogItem,
    MessageLogResponse,
    SendMessageRequest,
    SendMessageResponse,
    ToggleAIRequest,
    ToggleAIResponse,
)
from whatsapp_crm.services.handoff_service import (
    ConversationNotFoundError,
    get_conversation,
    register_human_reply,
    toggle_conversation_ai,
)
from whatsapp_crm.services.message_service import DIRECTION_OUT, save_message
from whatsapp_crm.services.whatsapp_service import WhatsAppService

logger = get_logger("conversations")

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])

CONVERSATION_LIST_LIMIT = 50
HANDOFF_LOG_LIMIT = 100
MESSAGE_LOG_LIMIT = 200


def _contact_ref(conversation: Conversation) -> Optional[ContactRef]:
    contact = conversation.contact
    return ContactRef(id=contact.id, name=contact.name) if contact else None


def _conversation_ref(conversation: Optional[Conversation]) -> Optional[ConversationRef]:
    if not conversation:
        return None
    return ConversationRef(
        id=conversation.id,
        phone_number=conversation.phone_number,
        contact_name=conversation.contact.name if conversation.contact else None,
    )


@router.get("/conversations", response_model=ConversationListResponse)
def list_conversations(
    organization_id: UUID = Depends(get_organization_id),
    db: Session = Depends(get_db),
):
    conversations = (
        db.query(Conversation)
        .options(joinedload(Conversation.contact))
        .filter(Conversation.organization_id == organization_id)
        .order_by(Conversation.last_message_at.desc().nulls_last())
        .limit(CONVERSATION_LIST_LIMIT)
        .all()
    )

    items = []
    for conversation in conversations:
        last = (
            db.query(Message)
            .filter(Message.conversation_id == conversation.id)
            .order_by(Message.created_at.desc())
            .first()
        )
        items.append(
            ConversationSummary(
                id=conversation.id,
                phone_number=conversation.phone_number,
                ai_enabled=conversation.ai_enabled,
                status=conversation.status,
                last_message_at=conversation.last_message_at,
                contact=_contact_ref(conversation),
                last_message=(
                    LastMessage(text=last.text, direction=last.direction, created_at=last.created_at)
                    if last
                    else None
                ),
            )
        )
    return ConversationListResponse(conversations=items)


@router.get("/conversations/{conversation_id}/messages", response_model=ConversationMessagesResponse)
def get_conversation_messages(
    conversation_id: UUID,
    organization_id: UUID = Depends(get_organization_id),
    db: Session = Depends(get_db),
):
    conversation = get_conversation(db, conversation_id, organization_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Not found")

    messages = (
        db.query(Message)
        .filter(Message.conversation_id == conversation.id)
        .order_by(Message.created_at.asc())
        .all()
    )
    lead = conversation.lead

    return ConversationMessagesResponse(
        conversation=ConversationDetail(
            id=conversation.id,
            phone_number=conversation.phone_number,
            ai_enabled=conversation.ai_enabled,
            status=conversation.status,
            contact=_contact_ref(conversation),
            lead=LeadRef(id=lead.id, name=lead.name) if lead else None,
        ),
        messages=[MessageItem.model_validate(message) for message in messages],
    )


@router.patch("/conversations/{conversation_id}/ai", response_model=ToggleAIResponse)
def toggle_ai(
    conversation_id: UUID,
    request: ToggleAIRequest,
    organization_id: UUID = Depends(get_organization_id),
    actor_id: Optional[UUID] = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Hand the conversation to the AI or to a human. Re-sending the current state is a no-op."""
    try:
        handoff = toggle_conversation_ai(db, conversation_id, organization_id, request.enabled, actor_id)
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    db.commit()
    return ToggleAIResponse(ok=True, ai_enabled=request.enabled, changed=handoff is not None)


@router.post("/send", response_model=SendMessageResponse)
def send_message(
    request: SendMessageRequest,
    organization_id: UUID = Depends(get_organization_id),
    actor_id: Optional[UUID] = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Send a human-authored reply.

    The human_reply handoff is committed before the provider call, so the AI
    is already off while the message is in flight.
    """
    conversation = get_conversation(db, request.conversation_id, organization_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    if not conversation.account_id:
        raise HTTPException(status_code=400, detail="Conversation has no linked WhatsApp account")

    account = db.query(WhatsAppAccount).filter(WhatsAppAccount.id == conversation.account_id).first()
    if not account:
        raise HTTPException(status_code=404, detail="WhatsApp account not found")

    register_human_reply(db, conversation, actor_id)
    db.commit()

    service = WhatsAppService(account.phone_id, account.access_token or "")
    result = service.send_text(conversation.phone_number, request.text)
    if not result.ok:
        logger.error(
            "WhatsApp send failed",
            extra={"context": {"conversation_id": str(conversation.id), "error_code": result.error_code}},
        )
        raise HTTPException(
            status_code=502,
            detail={"error": "Failed to send message", "details": result.details},
        )

    save_message(
        db,
        organization_id=organization_id,
        conversation_id=conversation.id,
        direction=DIRECTION_OUT,
        text=request.text,
        wa_message_id=result.value,
        raw=result.details if isinstance(result.details, dict) else None,
        status="sent",
    )
    db.commit()

    return SendMessageResponse(ok=True, wa_message_id=result.value)


@router.get("/handoffs", response_model=HandoffLogResponse)
def list_handoffs(
    organization_id: UUID = Depends(get_organization_id),
    db: Session = Depends(get_db),
):
    handoffs = (
        db.query(Handoff)
        .options(joinedload(Handoff.conversation).joinedload(Conversation.contact))
        .filter(Handoff.organization_id == organization_id)
        .order_by(Handoff.created_at.desc())
        .limit(HANDOFF_LOG_LIMIT)
        .all()
    )

    logs = []
    for handoff in handoffs:
        logs.append(
            HandoffLogItem(
                id=handoff.id,
                from_state=handoff.from_state,
                to_state=handoff.to_state,
                reason=handoff.reason,
                by_user_id=handoff.by_user_id,
                created_at=handoff.created_at,
                conversation=_conversation_ref(handoff.conversation),
            )
        )
    return HandoffLogResponse(logs=logs)


@router.get("/messages/logs", response_model=MessageLogResponse)
def list_message_logs(
    organization_id: UUID = Depends(get_organization_id),
    db: Session = Depends(get_db),
):
    messages = (
        db.query(Message)
        .options(joinedload(Message.conversation).joinedload(Conversation.contact))
        .filter(Message.organization_id == organization_id)
        .order_by(Message.created_at.desc())
        .limit(MESSAGE_LOG_LIMIT)
        .all()
    )

    return MessageLogResponse(
        logs=[
            MessageLogItem(
                id=message.id,
                direction=message.direction,
                status=message.status,
                error=message.error,
                text=message.text,
                occurred_at=message.sent_at or message.received_at or message.created_at,
                conversation=_conversation_ref(message.conversation),
            )
            for message in messages
        ]
    )
