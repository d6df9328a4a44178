"""License model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class License(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "licenses"
    __table_args__ = (
        sa.Index("ix_licenses_org_assignee", "organization_id", "assigned_to_user_id"),
    )

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False)
    assigned_to_user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime())
    auto_renewal: bool = Field(default=False, nullable=False)
    is_active: bool = Field(default=True, nullable=False)
