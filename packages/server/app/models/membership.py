"""Organization membership (one row per user per organization)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class OrganizationMembership(UUIDMixin, SQLModel, table=True):
    __tablename__ = "organization_memberships"
    __table_args__ = (
        sa.UniqueConstraint("organization_id", "user_id", name="uq_membership_org_user"),
        sa.CheckConstraint("role IN ('Owner', 'Admin', 'Member')", name="ck_membership_role"),
    )

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    role: str = Field(default="Member", nullable=False)  # Owner | Admin | Member
    joined_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=sa.DateTime())
    # Mirrors License.assigned_to_user_id; both sides are written together
    assigned_license_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="licenses.id", unique=True, nullable=True
    )
