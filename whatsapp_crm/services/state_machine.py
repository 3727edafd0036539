from enum import Enum
from typing import Optional


class ConversationMode(str, Enum):
    AI = "ai"
    HUMAN = "human"


class HandoffReason(str, Enum):
    KEYWORD = "keyword"
    HUMAN_REPLY = "human_reply"
    MANUAL_TOGGLE = "manual_toggle"


HANDOFF_KEYWORDS = ("humano", "atendente", "pessoa", "suporte", "falar com")

# Automatic triggers only ever move a conversation from AI to human.
AUTOMATIC_TRANSITIONS = {
    HandoffReason.KEYWORD: {ConversationMode.AI: ConversationMode.HUMAN},
    HandoffReason.HUMAN_REPLY: {ConversationMode.AI: ConversationMode.HUMAN},
}


class InvalidTransitionError(Exception):
    def __init__(self, reason: HandoffReason, message: str):
        self.reason = reason
        self.message = message
        super().__init__(message)


def mode_of(ai_enabled: bool) -> ConversationMode:
    return ConversationMode.AI if ai_enabled else ConversationMode.HUMAN


def is_ai_mode(mode: ConversationMode) -> bool:
    return mode == ConversationMode.AI


def should_handoff_to_human(text: Optional[str]) -> bool:
    """Case-insensitive substring match against HANDOFF_KEYWORDS (no word boundaries)."""
    if not text:
        return False
    lowered = text.lower()
    return any(keyword in lowered for keyword in HANDOFF_KEYWORDS)


def next_mode(
    current: ConversationMode,
    reason: HandoffReason,
    requested: Optional[ConversationMode] = None,
) -> Optional[ConversationMode]:
    """Return the mode a trigger leads to, or None when nothing should change."""
    if reason == HandoffReason.MANUAL_TOGGLE:
        if requested is None:
            raise InvalidTransitionError(reason, "manual toggle requires a target mode")
        return requested if requested != current else None

    if requested is not None:
        raise InvalidTransitionError(reason, f"{reason.value} does not accept a target mode")
    return AUTOMATIC_TRANSITIONS[reason].get(current)
