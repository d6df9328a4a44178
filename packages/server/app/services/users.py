"""
User identity service: resolves verified token claims to a local user row.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import utcnow
from app.models.user import User

log = structlog.get_logger()


async def get_user_by_external_id(external_id: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.external_id == external_id))
    return result.scalar_one_or_none()


async def get_or_create_user(
    external_id: str,
    email: str,
    role: str,
    session: AsyncSession,
) -> User:
    """Return the user for ``external_id``, creating it on first sight.

    Email and role are refreshed from the claims whenever they differ from
    what is stored.
    """
    user = await get_user_by_external_id(external_id, session)
    if user is None:
        user = User(external_id=external_id, email=email, role=role)
        session.add(user)
        try:
            await session.flush()
        except IntegrityError:
            # Concurrent first request for the same subject won the insert;
            # identity resolution runs before any other write in the request.
            await session.rollback()
            user = await get_user_by_external_id(external_id, session)
            if user is None:
                raise
        else:
            log.info("user.created", user_id=str(user.id), external_id=external_id)
            return user

    if user.email != email or user.role != role:
        user.email = email
        user.role = role
        user.updated_at = utcnow()
        session.add(user)
        await session.flush()
        log.info("user.claims_refreshed", user_id=str(user.id))
    return user
