"""Member management schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import CamelModel


class MemberRoleUpdateRequest(CamelModel):
    role: str = Field(..., description="Owner, Admin or Member (case-insensitive)")


class MemberLicenseInfo(CamelModel):
    id: uuid.UUID
    expires_at: datetime
    is_expired: bool
    auto_renewal: bool


class MemberResponse(CamelModel):
    user_id: uuid.UUID
    email: str
    role: str
    joined_at: datetime
    license: Optional[MemberLicenseInfo] = None
