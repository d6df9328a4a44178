"""
Authentication endpoints.

POST /api/auth/login  Issue a development token (when enabled)
GET  /api/auth/claims  Echo the verified token claims
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, create_access_token, get_current_user
from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import BadRequestError, NotFoundError
from app.services.users import get_or_create_user
from orglicense_shared.schemas.auth import (
    VALID_USER_ROLES,
    ClaimItem,
    ClaimsResponse,
    LoginRequest,
    LoginResponse,
)

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
):
    """Mint a bearer token for any user id/email. Development only."""
    if not settings.auth_dev_login_enabled:
        raise NotFoundError("Not found", "Development login is disabled")

    role = next((r for r in VALID_USER_ROLES if r.lower() == body.role.strip().lower()), None)
    if role is None:
        raise BadRequestError("Invalid role", "Role must be User or Admin")

    email = str(body.email).strip().lower()
    await get_or_create_user(body.user_id, email, role, session)
    token, expires_at = create_access_token(body.user_id, email, role)
    log.info("auth.login", user_id=body.user_id, role=role)
    return LoginResponse(
        token=token,
        expires_at=expires_at,
        user_id=body.user_id,
        email=email,
        role=role,
    )


@router.get("/claims", response_model=ClaimsResponse)
async def claims(current: CurrentUser = Depends(get_current_user)):
    """Return the claims carried by the caller's token."""
    return ClaimsResponse(
        user_id=current.external_id,
        email=current.email,
        role=current.role,
        all_claims=[ClaimItem(type=k, value=str(v)) for k, v in current.claims.items()],
    )
