import os
import uuid
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")

from whatsapp_crm.database import Base, get_db  # noqa: E402
from whatsapp_crm.main import app  # noqa: E402
from whatsapp_crm.models import Contact, Conversation, WhatsAppAccount  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Real session on an in-memory SQLite database."""
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def mock_db():
    """Mock database session."""
    return Mock()


@pytest.fixture
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def organization_id():
    return uuid.uuid4()


@pytest.fixture
def make_account(db_session, organization_id):
    def _make(phone_id="PHONE-1", status="active", ai_enabled=None, verify_token="verify-123", org_id=None):
        account = WhatsAppAccount(
            organization_id=org_id or organization_id,
            phone_number=f"+5511{uuid.uuid4().int % 10**8:08d}",
            phone_id=phone_id,
            access_token="wa-token",
            verify_token=verify_token,
            status=status,
            ai_enabled=ai_enabled,
        )
        db_session.add(account)
        db_session.commit()
        return account

    return _make


@pytest.fixture
def make_conversation(db_session, organization_id, make_account):
    def _make(phone="+5511999990000", ai_enabled=True, account=None):
        account = account or make_account()
        contact = Contact(organization_id=organization_id, name=f"WhatsApp {phone}", phone=phone, source="whatsapp")
        db_session.add(contact)
        db_session.flush()
        conversation = Conversation(
            organization_id=organization_id,
            account_id=account.id,
            contact_id=contact.id,
            phone_number=phone,
            ai_enabled=ai_enabled,
        )
        db_session.add(conversation)
        db_session.commit()
        return conversation

    return _make
