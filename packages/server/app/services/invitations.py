"""
Invitation service: invite by email, list/cancel, and accept by token.

Every terminal outcome (accepted, cancelled, expired) deletes the row.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import timedelta

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import BadRequestError, ForbiddenError, NotFoundError
from app.core.pagination import Page, paginate, search_pattern
from app.core.permissions import get_membership, parse_role, require_role, role_of
from app.models.base import utcnow
from app.models.invitation import Invitation
from app.models.membership import OrganizationMembership
from app.models.organization import Organization
from app.models.user import User
from app.services.notifications import InvitationNotifier
from app.services.organizations import get_organization_or_404, require_admin_of
from orglicense_shared.schemas.common import OrganizationRole, PaginationRequest
from orglicense_shared.schemas.invitations import InvitationResponse

log = structlog.get_logger()

INVITATION_TTL = timedelta(days=7)
TOKEN_BYTES = 32

INVITATION_SORT_FIELDS = {
    "email": Invitation.email,
    "role": Invitation.role,
    "createdat": Invitation.created_at,
    "expiresat": Invitation.expires_at,
}


def generate_token() -> str:
    """32 random bytes, URL-safe base64 without padding."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def invitation_response(invitation: Invitation, organization_name: str) -> InvitationResponse:
    return InvitationResponse(
        id=invitation.id,
        organization_id=invitation.organization_id,
        organization_name=organization_name,
        email=invitation.email,
        role=invitation.role,
        expires_at=invitation.expires_at,
        token=invitation.token,
        invited_by_user_id=invitation.invited_by_user_id,
        created_at=invitation.created_at,
    )


async def create_invitation(
    org_id: uuid.UUID,
    email: str,
    role: str,
    inviter: User,
    notifier: InvitationNotifier,
    session: AsyncSession,
) -> tuple[Invitation, Organization]:
    target_role = parse_role(role)
    org = await get_organization_or_404(session, org_id)
    membership = require_role(
        await get_membership(org_id, inviter.id, session), OrganizationRole.ADMIN
    )
    if target_role == OrganizationRole.OWNER and role_of(membership) != OrganizationRole.OWNER:
        raise ForbiddenError("Cannot invite as owner", "Only owners can invite new owners")

    normalized = normalize_email(email)

    existing_member = await session.execute(
        select(OrganizationMembership.id)
        .join(User, User.id == OrganizationMembership.user_id)
        .where(
            OrganizationMembership.organization_id == org_id,
            func.lower(User.email) == normalized,
        )
    )
    if existing_member.first() is not None:
        raise BadRequestError("Already a member", "This user is already a member of the organization")

    now = utcnow()
    existing_invitation = await session.execute(
        select(Invitation).where(
            Invitation.organization_id == org_id,
            Invitation.email == normalized,
        )
    )
    existing = existing_invitation.scalar_one_or_none()
    if existing is not None:
        if existing.expires_at > now:
            raise BadRequestError("Invitation exists", "An invitation has already been sent to this email")
        # Expired and never accepted; replaced by the new invitation
        await session.delete(existing)
        await session.flush()
        log.info("invitation.expired", invitation_id=str(existing.id))

    invitation = Invitation(
        organization_id=org_id,
        email=normalized,
        token=generate_token(),
        role=target_role.value,
        expires_at=now + INVITATION_TTL,
        invited_by_user_id=inviter.id,
        created_at=now,
    )
    session.add(invitation)
    # Committed before notifying so the emailed token is already valid
    await session.commit()
    log.info(
        "invitation.created",
        invitation_id=str(invitation.id),
        org_id=str(org_id),
        role=invitation.role,
        by=str(inviter.id),
    )

    notifier.dispatch(normalized, org.name, invitation.token)
    return invitation, org


async def list_invitations(
    org_id: uuid.UUID,
    caller: User,
    pagination: PaginationRequest,
    session: AsyncSession,
) -> Page:
    org = await require_admin_of(session, org_id, caller)
    stmt = select(Invitation).where(Invitation.organization_id == org_id)
    pattern = search_pattern(pagination)
    if pattern:
        stmt = stmt.where(func.lower(Invitation.email).like(pattern))
    page = await paginate(
        session,
        stmt,
        pagination,
        sort_fields=INVITATION_SORT_FIELDS,
        default_sort="createdAt",
        tiebreaker=Invitation.id,
        scalars=True,
    )
    page.items = [invitation_response(inv, org.name) for inv in page.items]
    return page


async def _get_invitation_or_404(
    session: AsyncSession, org_id: uuid.UUID, invitation_id: uuid.UUID
) -> Invitation:
    result = await session.execute(
        select(Invitation).where(
            Invitation.id == invitation_id,
            Invitation.organization_id == org_id,
        )
    )
    invitation = result.scalar_one_or_none()
    if invitation is None:
        raise NotFoundError("Invitation not found", f"Invitation with ID {invitation_id} does not exist")
    return invitation


async def get_invitation(
    org_id: uuid.UUID,
    invitation_id: uuid.UUID,
    caller: User,
    session: AsyncSession,
) -> InvitationResponse:
    org = await require_admin_of(session, org_id, caller)
    invitation = await _get_invitation_or_404(session, org_id, invitation_id)
    return invitation_response(invitation, org.name)


async def cancel_invitation(
    org_id: uuid.UUID,
    invitation_id: uuid.UUID,
    caller: User,
    session: AsyncSession,
) -> None:
    await require_admin_of(session, org_id, caller)
    invitation = await _get_invitation_or_404(session, org_id, invitation_id)
    await session.delete(invitation)
    await session.flush()
    log.info("invitation.cancelled", invitation_id=str(invitation_id), by=str(caller.id))


async def accept_invitation(
    token: str, user: User, session: AsyncSession
) -> tuple[OrganizationMembership, Organization]:
    """Turn a pending invitation into a membership for ``user``.

    Expired and already-member outcomes still consume the invitation: the
    delete is committed before the error is raised. An email mismatch leaves
    the invitation untouched.
    """
    result = await session.execute(select(Invitation).where(Invitation.token == token))
    invitation = result.scalar_one_or_none()
    if invitation is None:
        raise NotFoundError("Invitation not found", "Invalid or expired invitation token")

    if invitation.expires_at <= utcnow():
        await session.delete(invitation)
        await session.commit()
        log.info("invitation.expired", invitation_id=str(invitation.id))
        raise BadRequestError("Invitation expired", "This invitation has expired")

    if invitation.email.lower() != user.email.strip().lower():
        raise ForbiddenError("Email mismatch", "This invitation was sent to a different email address")

    if await get_membership(invitation.organization_id, user.id, session) is not None:
        await session.delete(invitation)
        await session.commit()
        raise BadRequestError("Already a member", "You are already a member of this organization")

    org = await get_organization_or_404(session, invitation.organization_id)
    membership = OrganizationMembership(
        organization_id=invitation.organization_id,
        user_id=user.id,
        role=parse_role(invitation.role).value,
    )
    session.add(membership)
    await session.delete(invitation)
    await session.flush()
    log.info(
        "invitation.accepted",
        invitation_id=str(invitation.id),
        org_id=str(org.id),
        user_id=str(user.id),
        role=membership.role,
    )
    return membership, org
