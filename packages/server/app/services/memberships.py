"""
Self-service membership operations for the authenticated user.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import BadRequestError, NotFoundError
from app.core.permissions import role_of
from app.models.membership import OrganizationMembership
from app.models.organization import Organization
from app.models.user import User
from app.services.organizations import count_owners, release_license
from orglicense_shared.schemas.common import OrganizationRole

log = structlog.get_logger()


async def list_my_memberships(
    user: User, session: AsyncSession
) -> list[tuple[Organization, OrganizationMembership]]:
    """(organization, membership) pairs for the user, most recently joined first."""
    result = await session.execute(
        select(Organization, OrganizationMembership)
        .join(OrganizationMembership, OrganizationMembership.organization_id == Organization.id)
        .where(OrganizationMembership.user_id == user.id)
        .order_by(OrganizationMembership.joined_at.desc(), OrganizationMembership.id.desc())
    )
    return list(result.all())


async def get_my_membership(
    org_id: uuid.UUID, user: User, session: AsyncSession
) -> tuple[Organization, OrganizationMembership]:
    result = await session.execute(
        select(Organization, OrganizationMembership)
        .join(OrganizationMembership, OrganizationMembership.organization_id == Organization.id)
        .where(
            OrganizationMembership.organization_id == org_id,
            OrganizationMembership.user_id == user.id,
        )
    )
    row = result.first()
    if row is None:
        raise NotFoundError("Membership not found", "You are not a member of this organization")
    return row[0], row[1]


async def leave_organization(
    org_id: uuid.UUID, user: User, session: AsyncSession
) -> None:
    """Leave an organization; the last Owner must hand over ownership first."""
    _, membership = await get_my_membership(org_id, user, session)

    if role_of(membership) == OrganizationRole.OWNER and await count_owners(session, org_id) <= 1:
        raise BadRequestError(
            "Cannot leave", "You are the only owner. Transfer ownership before leaving."
        )

    await release_license(session, membership)
    await session.delete(membership)
    await session.flush()
    log.info("member.left", org_id=str(org_id), user_id=str(user.id))
