"""Invitation schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from .common import CamelModel


class InvitationCreateRequest(CamelModel):
    email: EmailStr = Field(..., max_length=256)
    role: str = Field("Member", description="Owner, Admin or Member (case-insensitive)")


class InvitationAcceptRequest(CamelModel):
    token: str = Field(..., min_length=10, max_length=100)


class InvitationResponse(CamelModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    organization_name: str
    email: str
    role: str
    expires_at: datetime
    token: str
    invited_by_user_id: Optional[uuid.UUID] = None
    created_at: datetime
