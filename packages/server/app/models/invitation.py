"""Pending invitation to join an organization."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class Invitation(UUIDMixin, SQLModel, table=True):
    __tablename__ = "invitations"
    __table_args__ = (
        sa.UniqueConstraint("organization_id", "email", name="uq_invitation_org_email"),
    )

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    email: str = Field(nullable=False, max_length=256)  # trimmed, lower-case
    token: str = Field(unique=True, index=True, nullable=False, max_length=100)
    role: str = Field(default="Member", nullable=False)
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime())
    invited_by_user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=sa.DateTime())
