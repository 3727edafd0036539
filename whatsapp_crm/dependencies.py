"""Request scoping headers.

Authentication happens upstream; it forwards the caller's organization and
user as headers. Every query below is filtered by the organization id.
"""

from typing import Optional
from uuid import UUID

from fastapi import Header


def get_organization_id(x_organization_id: UUID = Header(alias="X-Organization-Id")) -> UUID:
    return x_organization_id


def get_actor_id(x_user_id: Optional[UUID] = Header(default=None, alias="X-User-Id")) -> Optional[UUID]:
    return x_user_id
