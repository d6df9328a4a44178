"""
Organization service: organization lifecycle and member management.
"""

from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
import structlog
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import BadRequestError, NotFoundError
from app.core.pagination import Page, paginate, search_pattern
from app.core.permissions import (
    get_membership,
    parse_role,
    require_can_grant,
    require_role,
    role_of,
)
from app.models.base import utcnow
from app.models.invitation import Invitation
from app.models.license import License
from app.models.membership import OrganizationMembership
from app.models.organization import Organization
from app.models.user import User
from orglicense_shared.schemas.common import OrganizationRole, PaginationRequest
from orglicense_shared.schemas.members import MemberLicenseInfo, MemberResponse
from orglicense_shared.schemas.organizations import (
    OrganizationResponse,
    UserOrganizationResponse,
)

log = structlog.get_logger()

MEMBER_SORT_FIELDS = {
    "email": User.email,
    "role": sa.case(
        (OrganizationMembership.role == OrganizationRole.OWNER.value, 2),
        (OrganizationMembership.role == OrganizationRole.ADMIN.value, 1),
        else_=0,
    ),
    "joinedat": OrganizationMembership.joined_at,
}


def _clean_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise BadRequestError("Invalid name", "Organization name is required")
    return name.strip()


def _clean_description(description: Optional[str]) -> Optional[str]:
    return description.strip() if description is not None else None


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_organization_or_404(
    session: AsyncSession, org_id: uuid.UUID
) -> Organization:
    org = await session.get(Organization, org_id)
    if org is None:
        raise NotFoundError(
            "Organization not found", f"Organization with ID {org_id} does not exist"
        )
    return org


async def count_members(session: AsyncSession, org_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(OrganizationMembership)
        .where(OrganizationMembership.organization_id == org_id)
    )
    return result.scalar_one()


async def count_owners(session: AsyncSession, org_id: uuid.UUID) -> int:
    """Count Owner memberships, locking them so concurrent demotions serialize."""
    result = await session.execute(
        select(OrganizationMembership.id)
        .where(
            OrganizationMembership.organization_id == org_id,
            OrganizationMembership.role == OrganizationRole.OWNER.value,
        )
        .with_for_update()
    )
    return len(result.all())


async def require_admin_of(
    session: AsyncSession, org_id: uuid.UUID, user: User
) -> Organization:
    """Organization must exist and ``user`` must be Owner or Admin in it."""
    org = await get_organization_or_404(session, org_id)
    membership = await get_membership(org_id, user.id, session)
    require_role(membership, OrganizationRole.ADMIN)
    return org


async def organization_response(
    session: AsyncSession, org: Organization
) -> OrganizationResponse:
    return OrganizationResponse(
        id=org.id,
        name=org.name,
        description=org.description,
        created_at=org.created_at,
        updated_at=org.updated_at,
        member_count=await count_members(session, org.id),
    )


# ---------------------------------------------------------------------------
# Organization lifecycle
# ---------------------------------------------------------------------------

async def create_organization(
    name: str,
    description: Optional[str],
    creator: User,
    session: AsyncSession,
) -> Organization:
    """Create an organization with ``creator`` as its sole Owner."""
    org = Organization(name=_clean_name(name), description=_clean_description(description))
    session.add(org)
    session.add(
        OrganizationMembership(
            organization_id=org.id,
            user_id=creator.id,
            role=OrganizationRole.OWNER.value,
        )
    )
    await session.flush()
    log.info("org.created", org_id=str(org.id), owner_id=str(creator.id))
    return org


async def update_organization(
    org_id: uuid.UUID,
    name: str,
    description: Optional[str],
    caller: User,
    session: AsyncSession,
) -> Organization:
    org = await require_admin_of(session, org_id, caller)
    org.name = _clean_name(name)
    org.description = _clean_description(description)
    org.updated_at = utcnow()
    session.add(org)
    await session.flush()
    log.info("org.updated", org_id=str(org_id), user_id=str(caller.id))
    return org


async def delete_organization(
    org_id: uuid.UUID, caller: User, session: AsyncSession
) -> None:
    """Delete an organization along with its memberships, licenses and invitations."""
    org = await require_admin_of(session, org_id, caller)

    # Memberships reference licenses, so they go first
    await session.execute(
        delete(OrganizationMembership).where(OrganizationMembership.organization_id == org_id)
    )
    await session.execute(delete(License).where(License.organization_id == org_id))
    await session.execute(delete(Invitation).where(Invitation.organization_id == org_id))
    await session.delete(org)
    await session.flush()
    log.info("org.deleted", org_id=str(org_id), user_id=str(caller.id))


async def get_organization_for_member(
    org_id: uuid.UUID, caller: User, session: AsyncSession
) -> Organization:
    org = await get_organization_or_404(session, org_id)
    membership = await get_membership(org_id, caller.id, session)
    require_role(membership, OrganizationRole.MEMBER)
    return org


async def list_user_organizations(
    user: User, session: AsyncSession
) -> list[OrganizationResponse]:
    """Organizations the user belongs to, most recently joined first."""
    member_count = (
        select(func.count())
        .select_from(OrganizationMembership)
        .where(OrganizationMembership.organization_id == Organization.id)
        .correlate(Organization)
        .scalar_subquery()
    )
    result = await session.execute(
        select(Organization, member_count)
        .join(OrganizationMembership, OrganizationMembership.organization_id == Organization.id)
        .where(OrganizationMembership.user_id == user.id)
        .order_by(OrganizationMembership.joined_at.desc(), OrganizationMembership.id.desc())
    )
    return [
        OrganizationResponse(
            id=org.id,
            name=org.name,
            description=org.description,
            created_at=org.created_at,
            updated_at=org.updated_at,
            member_count=count,
        )
        for org, count in result.all()
    ]


def user_organization_response(
    org: Organization, membership: OrganizationMembership
) -> UserOrganizationResponse:
    return UserOrganizationResponse(
        id=org.id,
        name=org.name,
        description=org.description,
        role=membership.role,
        joined_at=membership.joined_at,
    )


# ---------------------------------------------------------------------------
# Member management
# ---------------------------------------------------------------------------

def _member_response(
    membership: OrganizationMembership, user: User, license: Optional[License]
) -> MemberResponse:
    license_info = None
    if license is not None:
        license_info = MemberLicenseInfo(
            id=license.id,
            expires_at=license.expires_at,
            is_expired=license.expires_at <= utcnow(),
            auto_renewal=license.auto_renewal,
        )
    return MemberResponse(
        user_id=user.id,
        email=user.email,
        role=membership.role,
        joined_at=membership.joined_at,
        license=license_info,
    )


def _member_query():
    return (
        select(OrganizationMembership, User, License)
        .join(User, User.id == OrganizationMembership.user_id)
        .outerjoin(License, License.id == OrganizationMembership.assigned_license_id)
    )


async def list_members(
    org_id: uuid.UUID,
    caller: User,
    pagination: PaginationRequest,
    session: AsyncSession,
) -> Page:
    """Page of ``MemberResponse`` for the organization (Owner/Admin only)."""
    await require_admin_of(session, org_id, caller)

    stmt = _member_query().where(OrganizationMembership.organization_id == org_id)
    pattern = search_pattern(pagination)
    if pattern:
        stmt = stmt.where(func.lower(User.email).like(pattern))

    page = await paginate(
        session,
        stmt,
        pagination,
        sort_fields=MEMBER_SORT_FIELDS,
        default_sort="joinedAt",
        tiebreaker=OrganizationMembership.id,
    )
    page.items = [_member_response(m, u, lic) for m, u, lic in page.items]
    return page


async def get_member(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    caller: User,
    session: AsyncSession,
) -> MemberResponse:
    await require_admin_of(session, org_id, caller)
    result = await session.execute(
        _member_query().where(
            OrganizationMembership.organization_id == org_id,
            OrganizationMembership.user_id == user_id,
        )
    )
    row = result.first()
    if row is None:
        raise NotFoundError("Member not found", "The specified user is not a member of this organization")
    return _member_response(*row)


async def get_member_or_404(
    session: AsyncSession, org_id: uuid.UUID, user_id: uuid.UUID
) -> OrganizationMembership:
    membership = await get_membership(org_id, user_id, session)
    if membership is None:
        raise NotFoundError("Member not found", "The specified user is not a member of this organization")
    return membership


async def update_member_role(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    new_role: str,
    caller: User,
    session: AsyncSession,
) -> OrganizationMembership:
    role = parse_role(new_role)
    await get_organization_or_404(session, org_id)
    caller_membership = require_role(
        await get_membership(org_id, caller.id, session), OrganizationRole.ADMIN
    )
    require_can_grant(caller_membership, role)

    target = await get_member_or_404(session, org_id, user_id)
    if role_of(target) == OrganizationRole.OWNER and role != OrganizationRole.OWNER:
        if await count_owners(session, org_id) <= 1:
            raise BadRequestError("Cannot demote owner", "Organization must have at least one owner")

    target.role = role.value
    session.add(target)
    await session.flush()
    log.info(
        "member.role_updated",
        org_id=str(org_id),
        user_id=str(user_id),
        role=role.value,
        by=str(caller.id),
    )
    return target


async def release_license(
    session: AsyncSession, membership: OrganizationMembership
) -> None:
    """Clear both sides of the member's license assignment, if any."""
    if membership.assigned_license_id is None:
        return
    license = await session.get(License, membership.assigned_license_id)
    if license is not None and license.assigned_to_user_id == membership.user_id:
        license.assigned_to_user_id = None
        license.updated_at = utcnow()
        session.add(license)
    membership.assigned_license_id = None
    session.add(membership)
    await session.flush()


async def remove_member(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    caller: User,
    session: AsyncSession,
) -> None:
    await require_admin_of(session, org_id, caller)
    target = await get_member_or_404(session, org_id, user_id)

    if role_of(target) == OrganizationRole.OWNER and await count_owners(session, org_id) <= 1:
        raise BadRequestError(
            "Cannot remove owner",
            "Organization must have at least one owner. Transfer ownership first.",
        )

    await release_license(session, target)
    await session.delete(target)
    await session.flush()
    log.info("member.removed", org_id=str(org_id), user_id=str(user_id), by=str(caller.id))
