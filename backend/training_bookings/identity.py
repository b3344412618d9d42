"""Caller identity, as resolved upstream and forwarded in request headers."""
from __future__ import annotations

import enum
from typing import Optional

from fastapi import Header, HTTPException, status
from pydantic import BaseModel


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    COMPANY = "COMPANY"
    MANAGER = "MANAGER"
    STAFF = "STAFF"


PRIVILEGED_ROLES = frozenset({Role.ADMIN, Role.COMPANY, Role.MANAGER})


class Actor(BaseModel):
    user_id: str
    role: Role
    company_id: Optional[str] = None
    scope_home_ids: list[str] = []

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_company_id: Optional[str] = Header(None),
    x_home_ids: Optional[str] = Header(None),
) -> Actor:
    """Build the Actor for this request; 401 when identity is missing or malformed."""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing caller identity")
    try:
        role = Role(x_user_role.strip().upper())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Unknown role: {x_user_role}")
    homes = [h.strip() for h in (x_home_ids or "").split(",") if h.strip()]
    return Actor(user_id=x_user_id, role=role, company_id=x_company_id or None, scope_home_ids=homes)
