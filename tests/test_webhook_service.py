from unittest.mock import patch

from whatsapp_crm.models import Contact, Conversation, Deal, Handoff, Lead, Message
from whatsapp_crm.schemas.webhook import WebhookEnvelope
from whatsapp_crm.services import webhook_service
from whatsapp_crm.services.handoff_service import toggle_conversation_ai
from whatsapp_crm.services.webhook_service import handle_whatsapp_webhook


def _message(wa_id="wamid.1", sender="5511988887777", body="oi", timestamp="1700000000"):
    return {"from": sender, "id": wa_id, "timestamp": timestamp, "type": "text", "text": {"body": body}}


def _envelope(messages, phone_id="PHONE-1", contacts=None):
    return WebhookEnvelope.model_validate(
        {
            "object": "whatsapp_business_account",
            "entry": [
                {
                    "id": "WABA-1",
                    "changes": [
                        {
                            "field": "messages",
                            "value": {
                                "messaging_product": "whatsapp",
                                "metadata": {"phone_number_id": phone_id},
                                "contacts": contacts or [],
                                "messages": messages,
                            },
                        }
                    ],
                }
            ],
        }
    )


class TestHandleWhatsAppWebhook:
    def test_no_entry(self, db_session):
        result = handle_whatsapp_webhook(db_session, WebhookEnvelope.model_validate({"entry": []}))

        assert result.handled is False
        assert result.reason == "no_entry"

    def test_keyword_hands_new_conversation_to_human(self, db_session, make_account):
        make_account()

        result = handle_whatsapp_webhook(db_session, _envelope([_message(body="quero falar com humano")]))

        assert result.handled is True
        assert result.processed == 1

        conversation = db_session.query(Conversation).one()
        assert conversation.phone_number == "+5511988887777"
        assert conversation.ai_enabled is False

        handoffs = db_session.query(Handoff).all()
        assert len(handoffs) == 1
        assert handoffs[0].reason == "keyword"
        assert handoffs[0].from_state == "ai"
        assert handoffs[0].to_state == "human"

        message = db_session.query(Message).one()
        assert message.direction == "in"
        assert message.text == "quero falar com humano"
        assert message.raw["id"] == "wamid.1"

    def test_plain_message_keeps_ai(self, db_session, make_account):
        make_account()

        handle_whatsapp_webhook(db_session, _envelope([_message(body="bom dia")]))

        assert db_session.query(Conversation).one().ai_enabled is True
        assert db_session.query(Handoff).count() == 0

    def test_account_default_ai_off(self, db_session, make_account):
        make_account(ai_enabled=False)

        handle_whatsapp_webhook(db_session, _envelope([_message(body="quero falar com humano")]))

        assert db_session.query(Conversation).one().ai_enabled is False
        assert db_session.query(Handoff).count() == 0

    def test_unknown_phone_id_is_skipped(self, db_session, make_account):
        make_account(phone_id="PHONE-1")

        result = handle_whatsapp_webhook(db_session, _envelope([_message()], phone_id="OTHER"))

        assert result.handled is True
        assert result.processed == 0
        assert db_session.query(Message).count() == 0

    def test_inactive_account_is_skipped(self, db_session, make_account):
        make_account(status="inactive")

        result = handle_whatsapp_webhook(db_session, _envelope([_message()]))

        assert result.processed == 0
        assert db_session.query(Conversation).count() == 0

    def test_redelivery_is_counted_as_duplicate(self, db_session, make_account):
        make_account()
        envelope = _envelope([_message(wa_id="wamid.dup")])

        first = handle_whatsapp_webhook(db_session, envelope)
        second = handle_whatsapp_webhook(db_session, envelope)

        assert first.processed == 1
        assert second.processed == 0
        assert second.duplicates == 1
        assert db_session.query(Message).count() == 1

    def test_profile_name_names_the_contact(self, db_session, make_account):
        make_account()
        contacts = [{"wa_id": "5511988887777", "profile": {"name": "Maria"}}]

        handle_whatsapp_webhook(db_session, _envelope([_message()], contacts=contacts))

        assert db_session.query(Contact).one().name == "Maria"

    def test_first_message_links_lead_and_deal(self, db_session, make_account):
        make_account()

        handle_whatsapp_webhook(db_session, _envelope([_message(wa_id="wamid.a"), _message(wa_id="wamid.b")]))

        conversation = db_session.query(Conversation).one()
        lead = db_session.query(Lead).one()
        deal = db_session.query(Deal).one()
        assert conversation.lead_id == lead.id
        assert lead.name == "Lead WhatsApp +5511988887777"
        assert deal.tags == ["whatsapp"]

    def test_failed_message_does_not_stop_the_batch(self, db_session, make_account):
        make_account()
        original = webhook_service.process_inbound_message

        def _fail_on_bad(db, account, message, profile_name=None):
            if message.id == "wamid.bad":
                raise RuntimeError("boom")
            return original(db, account, message, profile_name)

        envelope = _envelope(
            [
                _message(wa_id="wamid.bad", sender="5511900000001"),
                _message(wa_id="wamid.good", sender="5511900000002"),
            ]
        )
        with patch("whatsapp_crm.services.webhook_service.process_inbound_message", side_effect=_fail_on_bad):
            result = handle_whatsapp_webhook(db_session, envelope)

        assert result.failed == 1
        assert result.processed == 1
        assert [m.wa_message_id for m in db_session.query(Message).all()] == ["wamid.good"]

    def test_redelivery_after_toggle_does_not_reapply_keyword(self, db_session, make_account):
        make_account()
        envelope = _envelope([_message(wa_id="wamid.kw", body="quero falar com humano")])

        handle_whatsapp_webhook(db_session, envelope)
        conversation = db_session.query(Conversation).one()
        toggle_conversation_ai(db_session, conversation.id, conversation.organization_id, True)
        db_session.commit()

        result = handle_whatsapp_webhook(db_session, envelope)

        assert result.duplicates == 1
        db_session.expire_all()
        assert db_session.query(Conversation).one().ai_enabled is True
        reasons = [h.reason for h in db_session.query(Handoff).order_by(Handoff.created_at).all()]
        assert reasons == ["keyword", "manual_toggle"]

    def test_malformed_message_does_not_drop_the_batch(self, db_session, make_account):
        make_account()
        missing_sender = {"id": "wamid.nofrom", "type": "text", "text": {"body": "oi"}}
        bad_timestamp = _message(wa_id="wamid.badts", sender="5511900000003", timestamp="yesterday")
        envelope = _envelope(
            [missing_sender, bad_timestamp, _message(wa_id="wamid.ok", sender="5511900000004")]
        )

        result = handle_whatsapp_webhook(db_session, envelope)

        assert result.handled is True
        assert result.failed == 2
        assert result.processed == 1
        assert [m.wa_message_id for m in db_session.query(Message).all()] == ["wamid.ok"]
