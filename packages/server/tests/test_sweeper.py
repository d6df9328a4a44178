"""
Tests for the background license renewal sweeper.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta

from sqlalchemy import event

from app.models.base import utcnow
from app.models.license import License
from app.services import organizations as org_service
from app.tasks.license_renewal import LicenseRenewalSweeper


async def _expired_license(session, make_user, auto_renewal=True) -> License:
    owner = await make_user()
    org = await org_service.create_organization("Acme", None, owner, session)
    license = License(
        organization_id=org.id,
        expires_at=utcnow() - timedelta(minutes=1),
        auto_renewal=auto_renewal,
    )
    session.add(license)
    # Sweeper sessions share the connection, so hand over committed state
    await session.commit()
    return license


async def test_run_once_renews(session, make_user, session_context, license_settings):
    license = await _expired_license(session, make_user)
    license_settings.set_expiration_minutes(30)
    await license_settings.drain()
    sweeper = LicenseRenewalSweeper(license_settings, session_context=session_context)

    assert await sweeper.run_once() == 1
    assert await sweeper.run_once() == 0

    await session.refresh(license)
    remaining = license.expires_at - utcnow()
    assert timedelta(minutes=29) < remaining <= timedelta(minutes=30)


async def test_start_and_stop(session, make_user, session_context, license_settings):
    license = await _expired_license(session, make_user)
    sweeper = LicenseRenewalSweeper(license_settings, interval_seconds=0.01, session_context=session_context)

    sweeper.start()
    assert sweeper.running
    await asyncio.sleep(0.05)
    await sweeper.stop()
    assert not sweeper.running

    await session.refresh(license)
    assert license.expires_at > utcnow()


async def test_start_is_idempotent(license_settings, session_context):
    sweeper = LicenseRenewalSweeper(license_settings, interval_seconds=10, session_context=session_context)
    sweeper.start()
    first = sweeper._task
    sweeper.start()
    assert sweeper._task is first
    await sweeper.stop()


async def test_failed_pass_does_not_stop_loop(license_settings):
    attempts = 0

    @asynccontextmanager
    async def flaky():
        nonlocal attempts
        attempts += 1
        raise RuntimeError("database unavailable")
        yield  # pragma: no cover

    sweeper = LicenseRenewalSweeper(license_settings, interval_seconds=0.01, session_context=flaky)
    sweeper.start()
    await asyncio.sleep(0.05)
    assert sweeper.running
    await sweeper.stop()
    assert attempts >= 2


async def test_run_once_skips_failing_row(session, make_user, session_context, license_settings):
    healthy = await _expired_license(session, make_user)
    broken = await _expired_license(session, make_user)
    broken_id = broken.id
    sweeper = LicenseRenewalSweeper(license_settings, session_context=session_context)

    def reject(mapper, connection, target):
        if target.id == broken_id:
            raise RuntimeError("row update failed")

    event.listen(License, "before_update", reject)
    try:
        assert await sweeper.run_once() == 1
    finally:
        event.remove(License, "before_update", reject)

    await session.refresh(healthy)
    await session.refresh(broken)
    assert healthy.expires_at > utcnow()
    assert broken.expires_at < utcnow()
