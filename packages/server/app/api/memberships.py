"""
Self-service membership endpoints for the authenticated user.

GET    /api/memberships                          List my organizations
POST   /api/memberships/invitations/accept       Accept an invitation token
GET    /api/memberships/invitations/accept       Accept via emailed link (HTML)
GET    /api/memberships/{orgId}                  Get my membership in an organization
DELETE /api/memberships/{orgId}                  Leave an organization
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import invitation_pages
from app.core.auth import CurrentUser, get_current_db_user, get_optional_current_user
from app.core.database import get_session
from app.core.errors import BadRequestError, ForbiddenError, NotFoundError
from app.models.user import User
from app.services import invitations as invitation_service
from app.services import memberships as membership_service
from app.services.organizations import user_organization_response
from orglicense_shared.schemas.invitations import InvitationAcceptRequest
from orglicense_shared.schemas.organizations import UserOrganizationResponse

router = APIRouter()


@router.get("", response_model=list[UserOrganizationResponse])
async def list_my_memberships(
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    rows = await membership_service.list_my_memberships(user, session)
    return [user_organization_response(org, membership) for org, membership in rows]


# ---------------------------------------------------------------------------
# Invitation acceptance
# ---------------------------------------------------------------------------

@router.post("/invitations/accept", response_model=UserOrganizationResponse, status_code=201)
async def accept_invitation(
    body: InvitationAcceptRequest,
    response: Response,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    membership, org = await invitation_service.accept_invitation(body.token, user, session)
    response.headers["Location"] = f"/api/memberships/{org.id}"
    return user_organization_response(org, membership)


@router.get("/invitations/accept", response_class=HTMLResponse)
async def accept_invitation_via_link(
    token: Optional[str] = None,
    current: Optional[CurrentUser] = Depends(get_optional_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Landing page for the emailed link; always answers with a readable HTML page."""
    if not token or not token.strip():
        return HTMLResponse(
            invitation_pages.error_page("Invalid Request", "No invitation token provided.")
        )
    if current is None:
        return HTMLResponse(invitation_pages.login_required_page(token))

    try:
        user = await current.get_user()
        membership, org = await invitation_service.accept_invitation(token, user, session)
    except NotFoundError as exc:
        page = invitation_pages.error_page(
            "Invitation Not Found",
            exc.detail or "This invitation is invalid or has already been used.",
        )
    except BadRequestError as exc:
        page = invitation_pages.error_page(
            "Cannot Accept Invitation", exc.detail or "Unable to accept this invitation."
        )
    except ForbiddenError as exc:
        page = invitation_pages.error_page(
            "Access Denied",
            exc.detail or "You don't have permission to accept this invitation.",
        )
    else:
        page = invitation_pages.success_page(org.name, membership.role)
    return HTMLResponse(page)


# ---------------------------------------------------------------------------
# My memberships
# ---------------------------------------------------------------------------

@router.get("/{orgId}", response_model=UserOrganizationResponse)
async def get_my_membership(
    orgId: uuid.UUID,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    org, membership = await membership_service.get_my_membership(orgId, user, session)
    return user_organization_response(org, membership)


@router.delete("/{orgId}", status_code=204)
async def leave_organization(
    orgId: uuid.UUID,
    user: User = Depends(get_current_db_user),
    session: AsyncSession = Depends(get_session),
):
    await membership_service.leave_organization(orgId, user, session)
    return Response(status_code=204)
