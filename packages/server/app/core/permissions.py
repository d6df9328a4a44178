"""
Role-based authorization rules for organization-scoped operations.

Roles form a total order ``Member < Admin < Owner``; every gate compares
ranks rather than names.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import CurrentUser, get_current_user
from app.core.errors import BadRequestError, ForbiddenError
from app.models.membership import OrganizationMembership
from orglicense_shared.schemas.common import OrganizationRole


def parse_role(value: Optional[str]) -> OrganizationRole:
    """Case-insensitive parse of ``Owner``/``Admin``/``Member``."""
    if value:
        normalized = value.strip().lower()
        for role in OrganizationRole:
            if role.value.lower() == normalized:
                return role
    raise BadRequestError("Invalid role", "Role must be Owner, Admin, or Member")


def role_of(membership: OrganizationMembership) -> OrganizationRole:
    return parse_role(membership.role)


async def get_membership(
    org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> Optional[OrganizationMembership]:
    result = await session.execute(
        select(OrganizationMembership).where(
            OrganizationMembership.organization_id == org_id,
            OrganizationMembership.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


def require_role(
    membership: Optional[OrganizationMembership],
    minimum: OrganizationRole,
) -> OrganizationMembership:
    """Return the membership if it meets ``minimum``; raise Forbidden otherwise."""
    if membership is None:
        raise ForbiddenError("Not a member", "You are not a member of this organization")
    if role_of(membership).rank < minimum.rank:
        raise ForbiddenError(
            "Insufficient permissions",
            f"This action requires the {minimum.value} role or higher",
        )
    return membership


def require_can_grant(membership: OrganizationMembership, target: OrganizationRole) -> None:
    """Only an Owner may hand out the Owner role; Admins may grant up to Admin."""
    if target == OrganizationRole.OWNER and role_of(membership) != OrganizationRole.OWNER:
        raise ForbiddenError(
            "Insufficient permissions", "Only owners can grant the Owner role"
        )


async def require_global_admin(
    current: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Gate for the ``/api/admin`` surface: the token's role claim must be Admin."""
    if not current.is_global_admin:
        raise ForbiddenError("Forbidden", "Administrator access required")
    return current
