"""
License service: creation, assignment, expiry and auto-renewal.

State machine::

    Active (valid) --expires--> Active (expired) --renew--> Active (valid)
    Active (any)   --cancel-->  Cancelled (terminal)

Assignment is two-sided: ``License.assigned_to_user_id`` and
``OrganizationMembership.assigned_license_id`` are always written together.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import BadRequestError, NotFoundError
from app.core.pagination import Page, paginate, search_pattern
from app.models.base import as_naive_utc, utcnow
from app.models.license import License
from app.models.organization import Organization
from app.models.user import User
from app.services.organizations import (
    get_member_or_404,
    get_organization_or_404,
    release_license,
    require_admin_of,
)
from orglicense_shared.schemas.common import PaginationRequest
from orglicense_shared.schemas.licenses import LicenseResponse

log = structlog.get_logger()

ORG_LICENSE_SORT_FIELDS = {
    "createdat": License.created_at,
    "expiresat": License.expires_at,
    "isactive": License.is_active,
    "autorenewal": License.auto_renewal,
}

ALL_LICENSE_SORT_FIELDS = {
    **ORG_LICENSE_SORT_FIELDS,
    "organizationid": License.organization_id,
}


def license_response(license: License, assignee_email: Optional[str]) -> LicenseResponse:
    return LicenseResponse(
        id=license.id,
        organization_id=license.organization_id,
        assigned_to_user_id=license.assigned_to_user_id,
        assigned_to_email=assignee_email,
        expires_at=license.expires_at,
        auto_renewal=license.auto_renewal,
        is_active=license.is_active,
        is_expired=license.expires_at <= utcnow(),
        created_at=license.created_at,
        updated_at=license.updated_at,
    )


def _with_assignee():
    return select(License, User.email).outerjoin(User, User.id == License.assigned_to_user_id)


async def get_license_or_404(
    session: AsyncSession, license_id: uuid.UUID, *, for_update: bool = False
) -> License:
    stmt = select(License).where(License.id == license_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(stmt)
    license = result.scalar_one_or_none()
    if license is None:
        raise NotFoundError("License not found", f"License with ID {license_id} does not exist")
    return license


async def get_license(license_id: uuid.UUID, session: AsyncSession) -> LicenseResponse:
    result = await session.execute(_with_assignee().where(License.id == license_id))
    row = result.first()
    if row is None:
        raise NotFoundError("License not found", f"License with ID {license_id} does not exist")
    return license_response(*row)


async def _assignee_email(session: AsyncSession, license: License) -> Optional[str]:
    if license.assigned_to_user_id is None:
        return None
    user = await session.get(User, license.assigned_to_user_id)
    return user.email if user else None


async def describe_license(session: AsyncSession, license: License) -> LicenseResponse:
    return license_response(license, await _assignee_email(session, license))


# ---------------------------------------------------------------------------
# Lifecycle (global admin surface)
# ---------------------------------------------------------------------------

async def create_license(
    org_id: uuid.UUID,
    auto_renewal: bool,
    expiration_minutes: int,
    session: AsyncSession,
) -> License:
    await get_organization_or_404(session, org_id)
    now = utcnow()
    license = License(
        organization_id=org_id,
        expires_at=now + timedelta(minutes=expiration_minutes),
        auto_renewal=auto_renewal,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    session.add(license)
    await session.flush()
    log.info("license.created", license_id=str(license.id), org_id=str(org_id))
    return license


async def update_license(
    license_id: uuid.UUID,
    expires_at: Optional[datetime],
    auto_renewal: Optional[bool],
    session: AsyncSession,
) -> License:
    """Apply whichever of ``expires_at``/``auto_renewal`` is given. Never touches ``is_active``."""
    license = await get_license_or_404(session, license_id)
    now = utcnow()

    if expires_at is not None:
        expires_at = as_naive_utc(expires_at)
        if expires_at <= now:
            raise BadRequestError("Invalid expiration date", "Expiration date must be in the future")
        license.expires_at = expires_at
    if auto_renewal is not None:
        license.auto_renewal = auto_renewal

    license.updated_at = now
    session.add(license)
    await session.flush()
    log.info("license.updated", license_id=str(license_id))
    return license


async def cancel_license(license_id: uuid.UUID, session: AsyncSession) -> License:
    """Deactivate a license permanently. Safe to repeat."""
    license = await get_license_or_404(session, license_id)
    license.is_active = False
    license.auto_renewal = False
    license.updated_at = utcnow()
    session.add(license)
    await session.flush()
    log.info("license.cancelled", license_id=str(license_id))
    return license


async def renew_expired_licenses(expiration_minutes: int, session: AsyncSession) -> int:
    """Extend every active, auto-renewing license whose expiry has passed.

    Each row is committed on its own; a row that fails to write is rolled
    back, logged and skipped. Returns the number of licenses renewed.
    """
    now = utcnow()
    result = await session.execute(
        select(License.id).where(
            License.is_active.is_(True),
            License.auto_renewal.is_(True),
            License.expires_at <= now,
        )
    )
    renewed = 0
    for license_id in result.scalars().all():
        license = await session.get(License, license_id, populate_existing=True)
        # Cancelled or renewed since the scan
        if license is None or not (license.is_active and license.auto_renewal and license.expires_at <= now):
            continue
        license.expires_at = now + timedelta(minutes=expiration_minutes)
        license.updated_at = now
        session.add(license)
        try:
            await session.commit()
        except Exception:
            await session.rollback()
            log.exception("license.renew_failed", license_id=str(license_id))
            continue
        renewed += 1
        log.info(
            "license.renewed",
            license_id=str(license_id),
            org_id=str(license.organization_id),
            expires_at=license.expires_at.isoformat(),
        )

    if renewed:
        log.info("license.renewal_batch", count=renewed)
    return renewed


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

async def list_all_licenses(pagination: PaginationRequest, session: AsyncSession) -> Page:
    """Every license across organizations; search matches assignee email or org name."""
    stmt = _with_assignee().join(Organization, Organization.id == License.organization_id)
    pattern = search_pattern(pagination)
    if pattern:
        stmt = stmt.where(
            or_(
                func.lower(User.email).like(pattern),
                func.lower(Organization.name).like(pattern),
            )
        )
    page = await paginate(
        session,
        stmt,
        pagination,
        sort_fields=ALL_LICENSE_SORT_FIELDS,
        default_sort="createdAt",
        tiebreaker=License.id,
    )
    page.items = [license_response(lic, email) for lic, email in page.items]
    return page


async def list_organization_licenses(
    org_id: uuid.UUID,
    caller: User,
    pagination: PaginationRequest,
    session: AsyncSession,
) -> Page:
    await require_admin_of(session, org_id, caller)
    stmt = _with_assignee().where(License.organization_id == org_id)
    pattern = search_pattern(pagination)
    if pattern:
        stmt = stmt.where(func.lower(User.email).like(pattern))
    page = await paginate(
        session,
        stmt,
        pagination,
        sort_fields=ORG_LICENSE_SORT_FIELDS,
        default_sort="createdAt",
        tiebreaker=License.id,
    )
    page.items = [license_response(lic, email) for lic, email in page.items]
    return page


# ---------------------------------------------------------------------------
# Assignment (organization Owner/Admin)
# ---------------------------------------------------------------------------

async def assign_license(
    org_id: uuid.UUID,
    target_user_id: uuid.UUID,
    license_id: uuid.UUID,
    caller: User,
    session: AsyncSession,
) -> License:
    """Give ``license_id`` to a member. Re-assigning to the same member is a no-op."""
    await require_admin_of(session, org_id, caller)
    membership = await get_member_or_404(session, org_id, target_user_id)

    # Locked read: the assignee check below must see committed state
    license = await get_license_or_404(session, license_id, for_update=True)
    if license.organization_id != org_id:
        raise NotFoundError(
            "License not found", "The specified license does not belong to this organization"
        )
    if not license.is_active:
        raise BadRequestError("License inactive", "Cannot assign an inactive license")
    if license.assigned_to_user_id is not None and license.assigned_to_user_id != target_user_id:
        raise BadRequestError(
            "License already assigned", "This license is already assigned to another user"
        )

    if membership.assigned_license_id is not None and membership.assigned_license_id != license.id:
        await release_license(session, membership)

    license.assigned_to_user_id = target_user_id
    license.updated_at = utcnow()
    membership.assigned_license_id = license.id
    session.add(license)
    session.add(membership)
    await session.flush()
    log.info(
        "license.assigned",
        license_id=str(license_id),
        org_id=str(org_id),
        user_id=str(target_user_id),
        by=str(caller.id),
    )
    return license


async def unassign_license(
    org_id: uuid.UUID,
    target_user_id: uuid.UUID,
    caller: User,
    session: AsyncSession,
) -> None:
    await require_admin_of(session, org_id, caller)
    membership = await get_member_or_404(session, org_id, target_user_id)
    if membership.assigned_license_id is None:
        return
    license_id = membership.assigned_license_id
    await release_license(session, membership)
    log.info(
        "license.unassigned",
        license_id=str(license_id),
        org_id=str(org_id),
        user_id=str(target_user_id),
        by=str(caller.id),
    )
