"""Authentication schemas for the development login and claims echo."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from .common import CamelModel

VALID_USER_ROLES = ("User", "Admin")


class LoginRequest(CamelModel):
    user_id: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    role: str = "User"


class LoginResponse(CamelModel):
    token: str
    expires_at: datetime
    user_id: str
    email: str
    role: str


class ClaimItem(CamelModel):
    type: str
    value: str


class ClaimsResponse(CamelModel):
    user_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    all_claims: List[ClaimItem] = []
