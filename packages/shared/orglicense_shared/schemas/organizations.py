"""
Organization and membership schemas shared between the server and clients.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import CamelModel


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrganizationCreateRequest(CamelModel):
    name: str = Field(..., min_length=2, max_length=200, description="Organization display name")
    description: Optional[str] = Field(None, max_length=1000)


class OrganizationUpdateRequest(CamelModel):
    name: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrganizationResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    member_count: int


class UserOrganizationResponse(CamelModel):
    """An organization as seen by one of its members."""

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    role: str  # the requesting user's role in this org
    joined_at: datetime
