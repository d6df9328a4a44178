"""
Authentication for the Org License Manager API.

Supports:
- Bearer JWT verification (HS256, issuer + audience checked)
- Token issue for the development login endpoint and tests
- Per-request identity cache resolving claims to a local user row
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import UnauthorizedError
from app.models.user import User
from app.services.users import get_or_create_user

log = structlog.get_logger()
settings = get_settings()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)

DEFAULT_USER_ROLE = "User"
GLOBAL_ADMIN_ROLE = "Admin"

# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_access_token(
    subject: str,
    email: str,
    role: str = DEFAULT_USER_ROLE,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, datetime]:
    """Create a signed JWT. Returns (token, expires_at)."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": subject,
        "email": email,
        "role": role,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": exp,
    }
    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return token, exp


def decode_access_token(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
    )


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

class CurrentUser:
    """Verified claims plus the lazily resolved user row for one request."""

    def __init__(self, claims: dict[str, Any], session: AsyncSession):
        self.claims = claims
        self.external_id: str = claims["sub"]
        self.email: str = claims["email"]
        self.role: str = claims.get("role") or DEFAULT_USER_ROLE
        self._session = session
        self._user: Optional[User] = None

    @property
    def is_global_admin(self) -> bool:
        return self.role.lower() == GLOBAL_ADMIN_ROLE.lower()

    async def get_user(self) -> User:
        """Resolve (and on first sight create) the local user; at most once per request."""
        if self._user is None:
            self._user = await get_or_create_user(
                self.external_id, self.email, self.role, self._session
            )
        return self._user


def _claims_from_header(authorization: Optional[str]) -> dict[str, Any]:
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Unauthorized", "Authentication required")
    token = authorization[7:].strip()
    try:
        claims = decode_access_token(token)
    except jwt.PyJWTError as exc:
        log.warning("auth.invalid_token", error=str(exc))
        raise UnauthorizedError("Unauthorized", "Invalid or expired token")

    if not claims.get("sub"):
        raise UnauthorizedError("Unauthorized", "Token has no subject")
    if not claims.get("email"):
        raise UnauthorizedError("Email not found", "Email claim not found in token")
    return claims


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Depends(api_key_header),
    session: AsyncSession = Depends(get_session),
) -> CurrentUser:
    """Main authentication dependency. Cached on ``request.state`` for the request."""
    cached = getattr(request.state, "current_user", None)
    if cached is not None:
        return cached
    current = CurrentUser(_claims_from_header(authorization), session)
    request.state.current_user = current
    return current


async def get_optional_current_user(
    request: Request,
    authorization: Optional[str] = Depends(api_key_header),
    session: AsyncSession = Depends(get_session),
) -> Optional[CurrentUser]:
    """Like ``get_current_user`` but returns None instead of failing."""
    try:
        return await get_current_user(request, authorization, session)
    except UnauthorizedError:
        return None


async def get_current_db_user(
    current: CurrentUser = Depends(get_current_user),
) -> User:
    """The authenticated caller's user row (created on first sight)."""
    return await current.get_user()
