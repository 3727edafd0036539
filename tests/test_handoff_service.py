import uuid

import pytest
from sqlalchemy import update

from whatsapp_crm.models import Conversation, Handoff
from whatsapp_crm.services.handoff_service import (
    ConversationNotFoundError,
    apply_handoff,
    handle_inbound_text,
    register_human_reply,
    toggle_conversation_ai,
)
from whatsapp_crm.services.state_machine import ConversationMode, HandoffReason


def _handoffs(db_session, conversation):
    return db_session.query(Handoff).filter(Handoff.conversation_id == conversation.id).all()


class TestInboundKeyword:
    def test_keyword_hands_ai_conversation_to_human(self, db_session, make_conversation):
        conversation = make_conversation(ai_enabled=True)

        handoff = handle_inbound_text(db_session, conversation, "quero falar com humano")
        db_session.commit()

        assert handoff is not None
        assert conversation.ai_enabled is False
        logs = _handoffs(db_session, conversation)
        assert len(logs) == 1
        assert (logs[0].from_state, logs[0].to_state, logs[0].reason) == ("ai", "human", "keyword")
        assert logs[0].by_user_id is None

    def test_keyword_on_human_conversation_is_noop(self, db_session, make_conversation):
        conversation = make_conversation(ai_enabled=False)

        assert handle_inbound_text(db_session, conversation, "atendente!") is None
        assert _handoffs(db_session, conversation) == []

    def test_text_without_keyword_is_ignored(self, db_session, make_conversation):
        conversation = make_conversation(ai_enabled=True)

        assert handle_inbound_text(db_session, conversation, "qual o horário?") is None
        assert conversation.ai_enabled is True
        assert _handoffs(db_session, conversation) == []


class TestHumanReply:
    def test_human_reply_logs_once(self, db_session, make_conversation):
        conversation = make_conversation(ai_enabled=True)
        actor = uuid.uuid4()

        first = register_human_reply(db_session, conversation, actor)
        second = register_human_reply(db_session, conversation, actor)
        db_session.commit()

        assert first is not None
        assert second is None
        logs = _handoffs(db_session, conversation)
        assert len(logs) == 1
        assert logs[0].reason == HandoffReason.HUMAN_REPLY.value
        assert logs[0].by_user_id == actor

    def test_state_is_persisted(self, db_session, make_conversation):
        conversation = make_conversation(ai_enabled=True)

        register_human_reply(db_session, conversation)
        db_session.commit()
        db_session.expire_all()

        stored = db_session.get(Conversation, conversation.id)
        assert stored.ai_enabled is False


class TestToggle:
    def test_toggle_back_to_ai_records_actor(self, db_session, make_conversation, organization_id):
        conversation = make_conversation(ai_enabled=False)
        actor = uuid.uuid4()

        handoff = toggle_conversation_ai(db_session, conversation.id, organization_id, True, actor)
        db_session.commit()

        assert handoff.from_state == "human"
        assert handoff.to_state == "ai"
        assert handoff.reason == "manual_toggle"
        assert handoff.by_user_id == actor
        assert conversation.ai_enabled is True

    def test_toggle_to_current_state_writes_nothing(self, db_session, make_conversation, organization_id):
        conversation = make_conversation(ai_enabled=True)

        assert toggle_conversation_ai(db_session, conversation.id, organization_id, True) is None
        assert toggle_conversation_ai(db_session, conversation.id, organization_id, True) is None
        assert _handoffs(db_session, conversation) == []

    def test_toggle_unknown_conversation_raises(self, db_session, organization_id):
        with pytest.raises(ConversationNotFoundError):
            toggle_conversation_ai(db_session, uuid.uuid4(), organization_id, False)

    def test_toggle_is_scoped_to_organization(self, db_session, make_conversation):
        conversation = make_conversation(ai_enabled=True)

        with pytest.raises(ConversationNotFoundError):
            toggle_conversation_ai(db_session, conversation.id, uuid.uuid4(), False)


class TestConcurrentChange:
    def test_stale_object_does_not_double_log(self, db_session, make_conversation):
        conversation = make_conversation(ai_enabled=True)
        assert conversation.ai_enabled is True

        # Another request flips the flag; the loaded object still says AI.
        db_session.execute(
            update(Conversation)
            .where(Conversation.id == conversation.id)
            .values(ai_enabled=False)
            .execution_options(synchronize_session=False)
        )

        handoff = apply_handoff(db_session, conversation, HandoffReason.KEYWORD)

        assert handoff is None
        assert conversation.ai_enabled is False
        assert _handoffs(db_session, conversation) == []

    def test_manual_toggle_uses_requested_mode(self, db_session, make_conversation):
        conversation = make_conversation(ai_enabled=True)

        handoff = apply_handoff(
            db_session, conversation, HandoffReason.MANUAL_TOGGLE, requested=ConversationMode.HUMAN
        )

        assert handoff.to_state == "human"
        assert conversation.ai_enabled is False
