from whatsapp_crm.models.account import WhatsAppAccount
from whatsapp_crm.models.ads import AdAccount, AdCampaign, AdCreative, AdMetricDaily, AdSet
from whatsapp_crm.models.contact import Contact
from whatsapp_crm.models.conversation import Conversation
from whatsapp_crm.models.conversion import ConversionEvent, FunnelEvent
from whatsapp_crm.models.handoff import Handoff
from whatsapp_crm.models.lead import Deal, Lead
from whatsapp_crm.models.message import Message

__all__ = [
    "WhatsAppAccount",
    "Contact",
    "Conversation",
    "Message",
    "Handoff",
    "Lead",
    "Deal",
    "AdAccount",
    "AdCampaign",
    "AdSet",
    "AdCreative",
    "AdMetricDaily",
    "ConversionEvent",
    "FunnelEvent",
]
