import uuid
from unittest.mock import patch

from whatsapp_crm.models import Contact, Conversation, Handoff
from whatsapp_crm.services.identity_service import (
    get_account_by_phone_id,
    get_or_create_contact,
    get_or_create_conversation,
    normalize_phone,
)


class TestNormalizePhone:
    def test_strips_formatting_and_prefixes_plus(self):
        assert normalize_phone("55 (11) 99999-0000") == "+5511999990000"

    def test_existing_plus_is_not_doubled(self):
        assert normalize_phone("+5511999990000") == "+5511999990000"


class TestGetAccountByPhoneId:
    def test_finds_active_account(self, db_session, make_account):
        account = make_account(phone_id="PHONE-9")
        assert get_account_by_phone_id(db_session, "PHONE-9").id == account.id

    def test_ignores_inactive_account(self, db_session, make_account):
        make_account(phone_id="PHONE-8", status="inactive")
        assert get_account_by_phone_id(db_session, "PHONE-8") is None

    def test_unknown_phone_id(self, db_session):
        assert get_account_by_phone_id(db_session, "missing") is None


class TestGetOrCreateContact:
    def test_creates_with_synthesized_name(self, db_session, organization_id):
        contact = get_or_create_contact(db_session, organization_id, "+5511988887777")

        assert contact.name == "WhatsApp +5511988887777"
        assert contact.source == "whatsapp"

    def test_uses_supplied_name(self, db_session, organization_id):
        contact = get_or_create_contact(db_session, organization_id, "+5511988887777", "  Maria  ")
        assert contact.name == "Maria"

    def test_returns_existing_contact(self, db_session, organization_id):
        first = get_or_create_contact(db_session, organization_id, "+5511988887777")
        second = get_or_create_contact(db_session, organization_id, "+5511988887777", "Other Name")

        assert first.id == second.id
        assert second.name == "WhatsApp +5511988887777"
        assert db_session.query(Contact).count() == 1

    def test_same_phone_in_other_organization_is_a_new_contact(self, db_session, organization_id):
        get_or_create_contact(db_session, organization_id, "+5511988887777")
        get_or_create_contact(db_session, uuid.uuid4(), "+5511988887777")

        assert db_session.query(Contact).count() == 2


class TestGetOrCreateConversation:
    def test_creates_once_per_phone(self, db_session, organization_id, make_account):
        account = make_account()
        contact = get_or_create_contact(db_session, organization_id, "+5511988887777")

        first = get_or_create_conversation(db_session, organization_id, account.id, "+5511988887777", contact.id, False)
        second = get_or_create_conversation(db_session, organization_id, account.id, "+5511988887777", contact.id, True)

        assert first.id == second.id
        assert first.ai_enabled is False
        assert db_session.query(Conversation).count() == 1

    def test_creation_writes_no_handoff(self, db_session, organization_id, make_account):
        account = make_account()
        contact = get_or_create_contact(db_session, organization_id, "+5511988887777")

        get_or_create_conversation(db_session, organization_id, account.id, "+5511988887777", contact.id, True)

        assert db_session.query(Handoff).count() == 0

    def test_conflicting_insert_resolves_to_existing_row(self, db_session, organization_id, make_conversation):
        existing = make_conversation(phone="+5511977776666", ai_enabled=False)

        # A racing request that missed the initial lookup still lands on the stored row.
        with patch(
            "whatsapp_crm.services.identity_service._find_conversation",
            side_effect=[None, existing],
        ):
            conversation = get_or_create_conversation(
                db_session, organization_id, existing.account_id, "+5511977776666", existing.contact_id, True
            )

        assert conversation.id == existing.id
        assert conversation.ai_enabled is False
        assert db_session.query(Conversation).count() == 1


class TestContactCreationRace:
    def test_conflicting_insert_resolves_to_existing_contact(self, db_session, organization_id):
        existing = get_or_create_contact(db_session, organization_id, "+5511966665555", "Maria")

        with patch(
            "whatsapp_crm.services.identity_service._find_contact",
            side_effect=[None, existing],
        ):
            contact = get_or_create_contact(db_session, organization_id, "+5511966665555", "Other")

        assert contact.id == existing.id
        assert db_session.query(Contact).count() == 1
