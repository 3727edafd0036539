"""Typed view of the WhatsApp Cloud API webhook envelope.

Only the parts needed to ingest inbound messages are modelled; unknown keys
are kept on messages so the raw payload can be stored for audit.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class WhatsAppText(BaseModel):
    body: Optional[str] = None


class WhatsAppInboundMessage(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    sender: str = Field(alias="from", min_length=1)
    id: str = Field(min_length=1)
    timestamp: Optional[int] = None  # epoch seconds, sent as a string by the provider
    type: Optional[str] = "text"
    text: Optional[WhatsAppText] = None

    @property
    def body(self) -> Optional[str]:
        return self.text.body if self.text else None

    def raw(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class WhatsAppProfile(BaseModel):
    name: Optional[str] = None


class WhatsAppContact(BaseModel):
    wa_id: Optional[str] = None
    profile: Optional[WhatsAppProfile] = None


class ChangeMetadata(BaseModel):
    phone_number_id: Optional[str] = None
    display_phone_number: Optional[str] = None


class ChangeValue(BaseModel):
    messaging_product: Optional[str] = None
    metadata: Optional[ChangeMetadata] = None
    contacts: list[WhatsAppContact] = Field(default_factory=list)
    # Parsed one by one so a malformed message only fails itself.
    messages: list[Any] = Field(default_factory=list)

    @property
    def phone_number_id(self) -> Optional[str]:
        return self.metadata.phone_number_id if self.metadata else None

    def profile_names(self) -> dict[str, str]:
        """Map sender wa_id -> profile name, for contacts that carry one."""
        names = {}
        for contact in self.contacts:
            if contact.wa_id and contact.profile and contact.profile.name:
                names[contact.wa_id] = contact.profile.name
        return names


class WebhookChange(BaseModel):
    field: Optional[str] = None
    value: Optional[ChangeValue] = None


class WebhookEntry(BaseModel):
    id: Optional[str] = None
    changes: list[WebhookChange] = Field(default_factory=list)


class WebhookEnvelope(BaseModel):
    object: Optional[str] = None
    entry: list[WebhookEntry] = Field(default_factory=list)


class WebhookResult(BaseModel):
    handled: bool
    reason: Optional[str] = None
    processed: int = 0
    duplicates: int = 0
    failed: int = 0
