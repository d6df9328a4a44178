"""
Service tests for the license lifecycle.

Tests cover:
- Creation/update/cancel and the one-way cancel transition
- Two-sided assignment, idempotent re-assign and conflicts
- Release on unassign, member removal and leave
- Auto-renewal sweeps
- Listings with search and sort
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import event, func
from sqlmodel import select

from app.core.errors import BadRequestError, ForbiddenError, NotFoundError
from app.models.base import utcnow
from app.models.license import License
from app.models.membership import OrganizationMembership
from app.services import licenses as license_service
from app.services import memberships as membership_service
from app.services import organizations as org_service
from orglicense_shared.schemas.common import PaginationRequest


@pytest.fixture
async def owner(make_user):
    return await make_user("owner@example.com")


@pytest.fixture
async def org(session, owner):
    return await org_service.create_organization("Acme", None, owner, session)


@pytest.fixture
async def member(session, org, make_user):
    user = await make_user("member@example.com")
    session.add(OrganizationMembership(organization_id=org.id, user_id=user.id, role="Member"))
    await session.flush()
    return user


async def _membership(session, org, user) -> OrganizationMembership:
    return await org_service.get_member_or_404(session, org.id, user.id)


async def _holders(session, license_id) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(OrganizationMembership)
        .where(OrganizationMembership.assigned_license_id == license_id)
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestCreateLicense:
    async def test_defaults(self, session, org):
        before = utcnow()
        license = await license_service.create_license(org.id, True, 10, session)
        assert license.is_active
        assert license.auto_renewal
        assert license.assigned_to_user_id is None
        assert before + timedelta(minutes=10) <= license.expires_at <= utcnow() + timedelta(minutes=10)

    async def test_unknown_org(self, session):
        with pytest.raises(NotFoundError) as exc:
            await license_service.create_license(uuid.uuid4(), False, 10, session)
        assert exc.value.title == "Organization not found"


class TestUpdateLicense:
    async def test_fields_independent(self, session, org):
        license = await license_service.create_license(org.id, False, 10, session)
        original_expiry = license.expires_at
        updated = await license_service.update_license(license.id, None, True, session)
        assert updated.auto_renewal is True
        assert updated.expires_at == original_expiry

    async def test_past_expiry_rejected(self, session, org):
        license = await license_service.create_license(org.id, False, 10, session)
        with pytest.raises(BadRequestError) as exc:
            await license_service.update_license(
                license.id, utcnow() - timedelta(minutes=1), None, session
            )
        assert exc.value.title == "Invalid expiration date"

    async def test_aware_expiry_normalized(self, session, org):
        license = await license_service.create_license(org.id, False, 10, session)
        target = datetime.now(timezone.utc) + timedelta(days=2)
        updated = await license_service.update_license(license.id, target, None, session)
        assert updated.expires_at.tzinfo is None
        assert updated.expires_at == target.replace(tzinfo=None)

    async def test_unknown_license(self, session):
        with pytest.raises(NotFoundError):
            await license_service.update_license(uuid.uuid4(), None, True, session)


class TestCancelLicense:
    async def test_idempotent(self, session, org):
        license = await license_service.create_license(org.id, True, 10, session)
        await license_service.cancel_license(license.id, session)
        again = await license_service.cancel_license(license.id, session)
        assert again.is_active is False
        assert again.auto_renewal is False

    async def test_update_never_reactivates(self, session, org):
        license = await license_service.create_license(org.id, True, 10, session)
        await license_service.cancel_license(license.id, session)
        updated = await license_service.update_license(
            license.id, utcnow() + timedelta(days=1), True, session
        )
        assert updated.is_active is False

    async def test_get_license_reports_expiry(self, session, org):
        license = await license_service.create_license(org.id, False, 10, session)
        license.expires_at = utcnow() - timedelta(seconds=1)
        await session.flush()
        response = await license_service.get_license(license.id, session)
        assert response.is_expired is True


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------

class TestAssignLicense:
    async def test_assign_writes_both_sides(self, session, owner, org, member):
        license = await license_service.create_license(org.id, False, 10, session)
        await license_service.assign_license(org.id, member.id, license.id, owner, session)
        assert license.assigned_to_user_id == member.id
        assert (await _membership(session, org, member)).assigned_license_id == license.id
        assert await _holders(session, license.id) == 1

    async def test_reassign_same_member_is_idempotent(self, session, owner, org, member):
        license = await license_service.create_license(org.id, False, 10, session)
        await license_service.assign_license(org.id, member.id, license.id, owner, session)
        await license_service.assign_license(org.id, member.id, license.id, owner, session)
        assert license.assigned_to_user_id == member.id
        assert await _holders(session, license.id) == 1

    async def test_assigned_to_other_rejected(self, session, owner, org, member):
        license = await license_service.create_license(org.id, False, 10, session)
        await license_service.assign_license(org.id, member.id, license.id, owner, session)
        with pytest.raises(BadRequestError) as exc:
            await license_service.assign_license(org.id, owner.id, license.id, owner, session)
        assert exc.value.title == "License already assigned"

    async def test_inactive_rejected(self, session, owner, org, member):
        license = await license_service.create_license(org.id, False, 10, session)
        await license_service.cancel_license(license.id, session)
        with pytest.raises(BadRequestError) as exc:
            await license_service.assign_license(org.id, member.id, license.id, owner, session)
        assert exc.value.title == "License inactive"

    async def test_license_from_other_org(self, session, owner, org, member):
        other = await org_service.create_organization("Globex", None, owner, session)
        foreign = await license_service.create_license(other.id, False, 10, session)
        with pytest.raises(NotFoundError):
            await license_service.assign_license(org.id, member.id, foreign.id, owner, session)

    async def test_target_not_member(self, session, owner, org, make_user):
        outsider = await make_user()
        license = await license_service.create_license(org.id, False, 10, session)
        with pytest.raises(NotFoundError) as exc:
            await license_service.assign_license(org.id, outsider.id, license.id, owner, session)
        assert exc.value.title == "Member not found"

    async def test_member_cannot_assign(self, session, org, member):
        license = await license_service.create_license(org.id, False, 10, session)
        with pytest.raises(ForbiddenError):
            await license_service.assign_license(org.id, member.id, license.id, member, session)

    async def test_switching_licenses_releases_previous(self, session, owner, org, member):
        first = await license_service.create_license(org.id, False, 10, session)
        second = await license_service.create_license(org.id, False, 10, session)
        await license_service.assign_license(org.id, member.id, first.id, owner, session)
        await license_service.assign_license(org.id, member.id, second.id, owner, session)

        assert first.assigned_to_user_id is None
        assert second.assigned_to_user_id == member.id
        assert (await _membership(session, org, member)).assigned_license_id == second.id


class TestReleaseLicense:
    async def test_unassign_clears_both_sides(self, session, owner, org, member):
        license = await license_service.create_license(org.id, False, 10, session)
        await license_service.assign_license(org.id, member.id, license.id, owner, session)
        await license_service.unassign_license(org.id, member.id, owner, session)
        assert license.assigned_to_user_id is None
        assert (await _membership(session, org, member)).assigned_license_id is None

    async def test_unassign_without_license_is_noop(self, session, owner, org, member):
        await license_service.unassign_license(org.id, member.id, owner, session)
        assert (await _membership(session, org, member)).assigned_license_id is None

    async def test_remove_member_releases(self, session, owner, org, member):
        license = await license_service.create_license(org.id, False, 10, session)
        await license_service.assign_license(org.id, member.id, license.id, owner, session)
        await org_service.remove_member(org.id, member.id, owner, session)
        assert license.assigned_to_user_id is None

    async def test_leave_releases(self, session, owner, org, member):
        license = await license_service.create_license(org.id, False, 10, session)
        await license_service.assign_license(org.id, member.id, license.id, owner, session)
        await membership_service.leave_organization(org.id, member, session)
        assert license.assigned_to_user_id is None
        assert await _holders(session, license.id) == 0


# ---------------------------------------------------------------------------
# Renewal
# ---------------------------------------------------------------------------

class TestRenewal:
    async def test_renews_expired_auto_renewing(self, session, org):
        license = await license_service.create_license(org.id, True, 10, session)
        license.expires_at = utcnow() - timedelta(minutes=1)
        await session.flush()

        renewed = await license_service.renew_expired_licenses(10, session)

        assert renewed == 1
        assert license.is_active
        remaining = license.expires_at - utcnow()
        assert timedelta(minutes=9) < remaining <= timedelta(minutes=10)

    async def test_second_sweep_is_noop(self, session, org):
        license = await license_service.create_license(org.id, True, 10, session)
        license.expires_at = utcnow() - timedelta(minutes=1)
        await session.flush()

        assert await license_service.renew_expired_licenses(10, session) == 1
        renewed_expiry = license.expires_at
        assert await license_service.renew_expired_licenses(10, session) == 0
        assert license.expires_at == renewed_expiry

    async def test_skips_cancelled_and_manual(self, session, org):
        manual = await license_service.create_license(org.id, False, 10, session)
        cancelled = await license_service.create_license(org.id, True, 10, session)
        await license_service.cancel_license(cancelled.id, session)
        past = utcnow() - timedelta(minutes=1)
        manual.expires_at = past
        cancelled.expires_at = past
        await session.flush()

        assert await license_service.renew_expired_licenses(10, session) == 0
        assert manual.expires_at == past

    async def test_failing_row_is_skipped(self, session, org):
        healthy = await license_service.create_license(org.id, True, 10, session)
        broken = await license_service.create_license(org.id, True, 10, session)
        past = utcnow() - timedelta(minutes=1)
        healthy.expires_at = past
        broken.expires_at = past
        await session.commit()
        broken_id = broken.id

        def reject(mapper, connection, target):
            if target.id == broken_id:
                raise RuntimeError("row update failed")

        event.listen(License, "before_update", reject)
        try:
            renewed = await license_service.renew_expired_licenses(10, session)
        finally:
            event.remove(License, "before_update", reject)

        assert renewed == 1
        await session.refresh(healthy)
        await session.refresh(broken)
        assert healthy.expires_at > utcnow()
        assert broken.expires_at == past

    async def test_not_yet_expired_untouched(self, session, org):
        license = await license_service.create_license(org.id, True, 10, session)
        original = license.expires_at
        assert await license_service.renew_expired_licenses(30, session) == 0
        assert license.expires_at == original


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

class TestListings:
    async def test_org_listing_search_by_assignee(self, session, owner, org, member):
        assigned = await license_service.create_license(org.id, False, 10, session)
        await license_service.create_license(org.id, False, 10, session)
        await license_service.assign_license(org.id, member.id, assigned.id, owner, session)

        page = await license_service.list_organization_licenses(
            org.id, owner, PaginationRequest(search="member@"), session
        )
        assert page.total_count == 1
        assert page.items[0].assigned_to_email == "member@example.com"

    async def test_org_listing_requires_admin(self, session, org, member):
        with pytest.raises(ForbiddenError):
            await license_service.list_organization_licenses(
                org.id, member, PaginationRequest(), session
            )

    async def test_all_listing_search_by_org_name(self, session, owner, org):
        other = await org_service.create_organization("Globex", None, owner, session)
        await license_service.create_license(org.id, False, 10, session)
        await license_service.create_license(other.id, False, 10, session)

        page = await license_service.list_all_licenses(PaginationRequest(search="glob"), session)
        assert page.total_count == 1
        assert page.items[0].organization_id == other.id

    async def test_all_listing_sort_by_expiry(self, session, org):
        late = await license_service.create_license(org.id, False, 60, session)
        early = await license_service.create_license(org.id, False, 5, session)
        page = await license_service.list_all_licenses(
            PaginationRequest(sort_by="EXPIRESAT", sort_descending=True), session
        )
        assert [item.id for item in page.items] == [late.id, early.id]
