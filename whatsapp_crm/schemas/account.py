from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AccountConnectRequest(BaseModel):
    """Credentials obtained from the OAuth exchange with the provider."""

    phone_number: str = Field(min_length=1)
    phone_id: str = Field(min_length=1)
    waba_business_account_id: Optional[str] = None
    access_token: str = Field(min_length=1)
    ai_enabled: Optional[bool] = None


class AccountItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    phone_number: str
    phone_id: str
    waba_business_account_id: Optional[str] = None
    status: str
    ai_enabled: Optional[bool] = None
    created_at: datetime


class AccountConnectResponse(AccountItem):
    verify_token: str


class AccountListResponse(BaseModel):
    accounts: list[AccountItem]
