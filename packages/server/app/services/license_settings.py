"""
Process-wide license expiration setting.

One ``LicenseSettingsService`` lives on ``app.state``. Reads are served from
memory; writes update memory immediately and persist to ``app_settings`` in
the background.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Optional

import structlog
from fastapi import Request
from sqlmodel import select

from app.core.database import get_session_context
from app.core.errors import BadRequestError
from app.models.app_setting import AppSetting
from app.models.base import utcnow

log = structlog.get_logger()

EXPIRATION_MINUTES_KEY = "LicenseExpirationMinutes"
DEFAULT_EXPIRATION_MINUTES = 10


def _parse_minutes(raw: Optional[str]) -> Optional[int]:
    try:
        minutes = int(raw) if raw is not None else None
    except ValueError:
        return None
    if minutes is None or minutes <= 0:
        return None
    return minutes


class LicenseSettingsService:
    def __init__(self, session_context=get_session_context, default_minutes: int = DEFAULT_EXPIRATION_MINUTES):
        self._session_context = session_context
        self._default = default_minutes
        self._minutes = default_minutes
        self._lock = threading.Lock()
        self._pending: set[asyncio.Task] = set()

    @property
    def expiration_minutes(self) -> int:
        with self._lock:
            return self._minutes

    async def initialize(self) -> None:
        """Load the persisted value; fall back to the default on any problem."""
        try:
            async with self._session_context() as session:
                result = await session.execute(
                    select(AppSetting).where(AppSetting.key == EXPIRATION_MINUTES_KEY)
                )
                row = result.scalar_one_or_none()
        except Exception as exc:
            log.warning("license_settings.load_failed", error=str(exc), default=self._default)
            return

        minutes = _parse_minutes(row.value if row else None)
        if minutes is None:
            if row is not None:
                log.warning("license_settings.invalid_value", value=row.value, default=self._default)
            minutes = self._default
        with self._lock:
            self._minutes = minutes
        log.info("license_settings.loaded", expiration_minutes=minutes)

    def set_expiration_minutes(self, minutes: int) -> None:
        """Apply ``minutes`` now and persist it asynchronously."""
        if minutes <= 0:
            raise BadRequestError("Invalid expiration", "Expiration minutes must be greater than zero")
        with self._lock:
            self._minutes = minutes
        log.info("license_settings.updated", expiration_minutes=minutes)

        task = asyncio.create_task(self._persist(minutes))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self, minutes: int) -> None:
        try:
            async with self._session_context() as session:
                setting = await session.get(AppSetting, EXPIRATION_MINUTES_KEY)
                if setting is None:
                    setting = AppSetting(key=EXPIRATION_MINUTES_KEY, value=str(minutes))
                else:
                    setting.value = str(minutes)
                    setting.updated_at = utcnow()
                session.add(setting)
        except Exception:
            log.exception("license_settings.persist_failed", expiration_minutes=minutes)

    async def drain(self) -> None:
        """Wait for in-flight persistence tasks (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def get_license_settings(request: Request) -> LicenseSettingsService:
    """FastAPI dependency returning the application's settings service."""
    return request.app.state.license_settings
