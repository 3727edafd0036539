from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictBool


class ToggleAIRequest(BaseModel):
    enabled: StrictBool


class ToggleAIResponse(BaseModel):
    ok: bool
    ai_enabled: bool
    changed: bool


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: UUID = Field(alias="conversationId")
    text: str = Field(min_length=1)


class SendMessageResponse(BaseModel):
    ok: bool
    wa_message_id: Optional[str] = None


class ContactRef(BaseModel):
    id: UUID
    name: str


class LeadRef(BaseModel):
    id: UUID
    name: str


class LastMessage(BaseModel):
    text: Optional[str] = None
    direction: str
    created_at: datetime


class ConversationSummary(BaseModel):
    id: UUID
    phone_number: str
    ai_enabled: bool
    status: str
    last_message_at: Optional[datetime] = None
    contact: Optional[ContactRef] = None
    last_message: Optional[LastMessage] = None


class ConversationListResponse(BaseModel):
    conversations: list[ConversationSummary]


class ConversationDetail(BaseModel):
    id: UUID
    phone_number: str
    ai_enabled: bool
    status: str
    contact: Optional[ContactRef] = None
    lead: Optional[LeadRef] = None


class MessageItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    direction: str
    text: Optional[str] = None
    type: str
    status: Optional[str] = None
    error: Optional[str] = None
    wa_message_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    created_at: datetime


class ConversationMessagesResponse(BaseModel):
    conversation: ConversationDetail
    messages: list[MessageItem]


class ConversationRef(BaseModel):
    id: UUID
    phone_number: str
    contact_name: Optional[str] = None


class HandoffLogItem(BaseModel):
    id: UUID
    from_state: Optional[str] = None
    to_state: str
    reason: str
    by_user_id: Optional[UUID] = None
    created_at: datetime
    conversation: Optional[ConversationRef] = None


class HandoffLogResponse(BaseModel):
    logs: list[HandoffLogItem]


class MessageLogItem(BaseModel):
    id: UUID
    direction: str
    status: Optional[str] = None
    error: Optional[str] = None
    text: Optional[str] = None
    occurred_at: datetime
    conversation: Optional[ConversationRef] = None


class MessageLogResponse(BaseModel):
    logs: list[MessageLogItem]
