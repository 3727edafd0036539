import secrets
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from whatsapp_crm.database import dialect_insert, utcnow
from whatsapp_crm.logging_config import get_logger
from whatsapp_crm.models import WhatsAppAccount
from whatsapp_crm.schemas.account import AccountConnectRequest

logger = get_logger("account_service")


def generate_verify_token() -> str:
    return secrets.token_hex(12)


def connect_account(db: Session, organization_id: UUID, request: AccountConnectRequest) -> WhatsAppAccount:
    """Register or refresh a connected number, keyed by (organization, phone number).

    The account is (re)activated; an existing verify token is kept so the
    webhook subscription stays valid.
    """
    now = utcnow()
    stmt = dialect_insert(db, WhatsAppAccount).values(
        organization_id=organization_id,
        phone_number=request.phone_number,
        phone_id=request.phone_id,
        waba_business_account_id=request.waba_business_account_id,
        access_token=request.access_token,
        verify_token=generate_verify_token(),
        status="active",
        ai_enabled=request.ai_enabled,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["organization_id", "phone_number"],
        set_={
            "phone_id": stmt.excluded.phone_id,
            "waba_business_account_id": stmt.excluded.waba_business_account_id,
            "access_token": stmt.excluded.access_token,
            "status": "active",
            # A reconnect without ai_enabled keeps the stored default.
            "ai_enabled": func.coalesce(
                stmt.excluded.ai_enabled, WhatsAppAccount.__table__.c.ai_enabled
            ),
            "updated_at": now,
        },
    )
    db.execute(stmt)

    account = (
        db.query(WhatsAppAccount)
        .filter(
            WhatsAppAccount.organization_id == organization_id,
            WhatsAppAccount.phone_number == request.phone_number,
        )
        .populate_existing()
        .one()
    )
    if not account.verify_token:
        account.verify_token = generate_verify_token()
        db.flush()

    logger.info(
        "WhatsApp account connected",
        extra={"context": {"organization_id": str(organization_id), "phone_id": request.phone_id}},
    )
    return account


def list_accounts(db: Session, organization_id: UUID) -> list[WhatsAppAccount]:
    return (
        db.query(WhatsAppAccount)
        .filter(WhatsAppAccount.organization_id == organization_id)
        .order_by(WhatsAppAccount.updated_at.desc())
        .all()
    )


def disconnect_accounts(db: Session, organization_id: UUID) -> int:
    """Mark every account of the organization inactive. Rows are never deleted."""
    result = db.execute(
        update(WhatsAppAccount)
        .where(WhatsAppAccount.organization_id == organization_id)
        .values(status="inactive", updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    logger.info(
        "WhatsApp accounts disconnected",
        extra={"context": {"organization_id": str(organization_id), "count": result.rowcount}},
    )
    return result.rowcount
