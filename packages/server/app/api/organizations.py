"""
Organization API endpoints.

POST   /api/organizations                                   Create an organization
GET    /api/organizations                                   List the caller's organizations
GET    /api/organizations/{orgId}                           Get organization details
PUT    /api/organizations/{orgId}                           Update name/description
DELETE /api/organizations/{orgId}                           Delete with all members, licenses, invitations
POST   /api/organizations/{orgId}/invite                    Invite by email
GET    /api/organizations/{orgId}/invitations               List pending invitations
GET    /api/organizations/{orgId}/invitations/{id}          Get one invitation
DELETE /api/organizations/{orgId}/invitations/{id}          Cancel an invitation
GET    /api/organizations/{orgId}/users                     List members
GET    /api/organizations/{orgId}/users/{userId}            Get one member
PUT    /api/organizations/{orgId}/users/{userId}/role       Change a member's role
POST   /api/organizations/{orgId}/users/{userId}/remove     Remove a member
POST   /api/organizations/{orgId}/users/{userId}/license    Assign a license
DELETE /api/organizations/{orgId}/users/{userId}/license    Unassign the member's license
GET    /api/organizations/{orgId}/licenses                  List the organization's licenses
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_db_user
from app.core.database import get_session
from app.core.pagination import pagination_params
from app.models.user import User
from app.services import invitations as invitation_service
from app.services import licenses as license_service
from app.services import organizations as org_service
from app.services.notifications import InvitationNotifier, get_invitation_notifier
from orglicense_shared.schemas.common import PagedResponse, PaginationRequest
from orglicense_shared.schemas.invitations import InvitationCreateRequest, InvitationResponse
from orglicense_shared.schemas.licenses import LicenseAssignRequest, LicenseResponse
from orglicense_shared.schemas.members import MemberResponse, MemberRoleUpdateRequest
from orglicense_shared.schemas.organizations import (
    OrganizationCreateRequest,
    OrganizationResponse,
    OrganizationUpdateRequest,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

@router.post("", response_model=OrganizationResponse, status_code=201)
async def create_organization(
    body: OrganizationCreateRequest,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    """Create an organization. The caller becomes its Owner."""
    org = await org_service.create_organization(body.name, body.description, user, session)
    return await org_service.organization_response(session, org)


@router.get("", response_model=list[OrganizationResponse])
async def list_organizations(
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    return await org_service.list_user_organizations(user, session)


@router.get("/{orgId}", response_model=OrganizationResponse)
async def get_organization(
    orgId: uuid.UUID,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    org = await org_service.get_organization_for_member(orgId, user, session)
    return await org_service.organization_response(session, org)


@router.put("/{orgId}", response_model=OrganizationResponse)
async def update_organization(
    orgId: uuid.UUID,
    body: OrganizationUpdateRequest,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    org = await org_service.update_organization(orgId, body.name, body.description, user, session)
    return await org_service.organization_response(session, org)


@router.delete("/{orgId}", status_code=204)
async def delete_organization(
    orgId: uuid.UUID,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    await org_service.delete_organization(orgId, user, session)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

@router.post("/{orgId}/invite", response_model=InvitationResponse, status_code=201)
async def invite(
    orgId: uuid.UUID,
    body: InvitationCreateRequest,
    user: User = Depends(get_current_db_user),
    notifier: InvitationNotifier = Depends(get_invitation_notifier),
    session: AsyncSession = Depends(get_session),
):
    invitation, org = await invitation_service.create_invitation(
        orgId, body.email, body.role, user, notifier, session
    )
    return invitation_service.invitation_response(invitation, org.name)


@router.get("/{orgId}/invitations", response_model=PagedResponse[InvitationResponse])
async def list_invitations(
    orgId: uuid.UUID,
    pagination: PaginationRequest = Depends(pagination_params),
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    page = await invitation_service.list_invitations(orgId, user, pagination, session)
    return page.to_response()


@router.get("/{orgId}/invitations/{invitationId}", response_model=InvitationResponse)
async def get_invitation(
    orgId: uuid.UUID,
    invitationId: uuid.UUID,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    return await invitation_service.get_invitation(orgId, invitationId, user, session)


@router.delete("/{orgId}/invitations/{invitationId}", status_code=204)
async def cancel_invitation(
    orgId: uuid.UUID,
    invitationId: uuid.UUID,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    await invitation_service.cancel_invitation(orgId, invitationId, user, session)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get("/{orgId}/users", response_model=PagedResponse[MemberResponse])
async def list_members(
    orgId: uuid.UUID,
    pagination: PaginationRequest = Depends(pagination_params),
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    page = await org_service.list_members(orgId, user, pagination, session)
    return page.to_response()


@router.get("/{orgId}/users/{userId}", response_model=MemberResponse)
async def get_member(
    orgId: uuid.UUID,
    userId: uuid.UUID,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    return await org_service.get_member(orgId, userId, user, session)


@router.put("/{orgId}/users/{userId}/role", status_code=204)
async def update_member_role(
    orgId: uuid.UUID,
    userId: uuid.UUID,
    body: MemberRoleUpdateRequest,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    await org_service.update_member_role(orgId, userId, body.role, user, session)
    return Response(status_code=204)


@router.post("/{orgId}/users/{userId}/remove", status_code=204)
async def remove_member(
    orgId: uuid.UUID,
    userId: uuid.UUID,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    await org_service.remove_member(orgId, userId, user, session)
    return Response(status_code=204)


@router.post("/{orgId}/users/{userId}/license", status_code=204)
async def assign_license(
    orgId: uuid.UUID,
    userId: uuid.UUID,
    body: LicenseAssignRequest,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    await license_service.assign_license(orgId, userId, body.license_id, user, session)
    return Response(status_code=204)


@router.delete("/{orgId}/users/{userId}/license", status_code=204)
async def unassign_license(
    orgId: uuid.UUID,
    userId: uuid.UUID,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    await license_service.unassign_license(orgId, userId, user, session)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Licenses
# ---------------------------------------------------------------------------

@router.get("/{orgId}/licenses", response_model=PagedResponse[LicenseResponse])
async def list_licenses(
    orgId: uuid.UUID,
    pagination: PaginationRequest = Depends(pagination_params),
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    page = await license_service.list_organization_licenses(orgId, user, pagination, session)
    return page.to_response()
