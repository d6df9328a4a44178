"""
Tests for the role ordering and authorization gates.
"""

from __future__ import annotations

import uuid

import pytest

from app.core.errors import BadRequestError, ForbiddenError
from app.core.permissions import parse_role, require_can_grant, require_role
from app.models.membership import OrganizationMembership
from orglicense_shared.schemas.common import OrganizationRole


def _membership(role: str) -> OrganizationMembership:
    return OrganizationMembership(organization_id=uuid.uuid4(), user_id=uuid.uuid4(), role=role)


class TestParseRole:
    @pytest.mark.parametrize("raw,expected", [
        ("Owner", OrganizationRole.OWNER),
        ("admin", OrganizationRole.ADMIN),
        ("MEMBER", OrganizationRole.MEMBER),
        ("  Admin ", OrganizationRole.ADMIN),
    ])
    def test_case_insensitive(self, raw, expected):
        assert parse_role(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "SuperAdmin", "user"])
    def test_invalid_role(self, raw):
        with pytest.raises(BadRequestError) as exc:
            parse_role(raw)
        assert exc.value.title == "Invalid role"
        assert exc.value.detail == "Role must be Owner, Admin, or Member"


class TestRoleOrder:
    def test_ranks(self):
        assert OrganizationRole.MEMBER.rank < OrganizationRole.ADMIN.rank < OrganizationRole.OWNER.rank


class TestRequireRole:
    def test_no_membership_is_forbidden(self):
        with pytest.raises(ForbiddenError) as exc:
            require_role(None, OrganizationRole.MEMBER)
        assert exc.value.title == "Not a member"

    def test_member_cannot_pass_admin_gate(self):
        with pytest.raises(ForbiddenError) as exc:
            require_role(_membership("Member"), OrganizationRole.ADMIN)
        assert exc.value.title == "Insufficient permissions"

    @pytest.mark.parametrize("role", ["Admin", "Owner"])
    def test_owner_or_admin_pass_admin_gate(self, role):
        membership = _membership(role)
        assert require_role(membership, OrganizationRole.ADMIN) is membership

    def test_admin_fails_owner_gate(self):
        with pytest.raises(ForbiddenError):
            require_role(_membership("Admin"), OrganizationRole.OWNER)


class TestRequireCanGrant:
    def test_admin_cannot_grant_owner(self):
        with pytest.raises(ForbiddenError):
            require_can_grant(_membership("Admin"), OrganizationRole.OWNER)

    def test_admin_can_grant_admin(self):
        require_can_grant(_membership("Admin"), OrganizationRole.ADMIN)

    def test_owner_can_grant_owner(self):
        require_can_grant(_membership("Owner"), OrganizationRole.OWNER)
