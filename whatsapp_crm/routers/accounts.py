from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from whatsapp_crm.database import get_db
from whatsapp_crm.dependencies import get_organization_id
from whatsapp_crm.schemas.account import (
    AccountConnectRequest,
    AccountConnectResponse,
    AccountItem,
    AccountListResponse,
)
from whatsapp_crm.services.account_service import connect_account, disconnect_accounts, list_accounts

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


@router.post("/accounts", response_model=AccountConnectResponse)
def connect(
    request: AccountConnectRequest,
    organization_id: UUID = Depends(get_organization_id),
    db: Session = Depends(get_db),
):
    account = connect_account(db, organization_id, request)
    db.commit()
    return AccountConnectResponse.model_validate(account)


@router.get("/accounts", response_model=AccountListResponse)
def get_accounts(
    organization_id: UUID = Depends(get_organization_id),
    db: Session = Depends(get_db),
):
    accounts = list_accounts(db, organization_id)
    return AccountListResponse(accounts=[AccountItem.model_validate(account) for account in accounts])


@router.delete("/accounts")
def disconnect(
    organization_id: UUID = Depends(get_organization_id),
    db: Session = Depends(get_db),
):
    disconnect_accounts(db, organization_id)
    db.commit()
    return {"ok": True}
