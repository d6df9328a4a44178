"""
Background task: renew expired auto-renewing licenses.

Runs inside the API process as a single asyncio task started at startup.
Each pass uses its own session; a failed pass is logged and the loop keeps
going. Passes are separated by a fixed delay measured from the end of the
previous pass.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from app.core.database import get_session_context
from app.services.license_settings import LicenseSettingsService
from app.services.licenses import renew_expired_licenses

log = structlog.get_logger()

STOP_TIMEOUT = 10.0


class LicenseRenewalSweeper:
    def __init__(
        self,
        license_settings: LicenseSettingsService,
        interval_seconds: float = 60.0,
        session_context=get_session_context,
    ):
        self._license_settings = license_settings
        self._interval = interval_seconds
        self._session_context = session_context
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """One sweep. Returns the number of licenses renewed."""
        async with self._session_context() as session:
            return await renew_expired_licenses(
                self._license_settings.expiration_minutes, session
            )

    async def run_forever(self) -> None:
        log.info("license_renewal.started", interval_seconds=self._interval)
        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_once()
                except Exception:
                    log.exception("license_renewal.failed")
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            log.info("license_renewal.stopped")

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run_forever())

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task is not None:
            try:
                await asyncio.wait_for(self._task, timeout=STOP_TIMEOUT)
            except asyncio.TimeoutError:
                log.warning("license_renewal.stop_timeout")
                self._task.cancel()
            self._task = None
