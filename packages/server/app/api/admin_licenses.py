"""
Global license administration (requires the Admin role claim).

POST   /api/admin/licenses/organizations/{orgId}   Create a license for an organization
GET    /api/admin/licenses                         List all licenses
GET    /api/admin/licenses/{licenseId}             Get one license
GET    /api/admin/licenses/settings                Read the expiration setting
PUT    /api/admin/licenses/settings                Change the expiration setting
PUT    /api/admin/licenses/{licenseId}             Update expiry/auto-renewal
DELETE /api/admin/licenses/{licenseId}             Cancel a license
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.core.pagination import pagination_params
from app.core.permissions import require_global_admin
from app.services import licenses as license_service
from app.services.license_settings import LicenseSettingsService, get_license_settings
from orglicense_shared.schemas.common import PagedResponse, PaginationRequest
from orglicense_shared.schemas.licenses import (
    LicenseCreateRequest,
    LicenseResponse,
    LicenseSettingsResponse,
    LicenseSettingsUpdateRequest,
    LicenseUpdateRequest,
)

router = APIRouter(dependencies=[Depends(require_global_admin)])


@router.post("/organizations/{orgId}", response_model=LicenseResponse, status_code=201)
async def create_license(
    orgId: uuid.UUID,
    body: LicenseCreateRequest,
    license_settings: LicenseSettingsService = Depends(get_license_settings),
    session: AsyncSession = Depends(get_session),
):
    license = await license_service.create_license(
        orgId, body.auto_renewal, license_settings.expiration_minutes, session
    )
    return license_service.license_response(license, None)


@router.get("", response_model=PagedResponse[LicenseResponse])
async def list_licenses(
    pagination: PaginationRequest = Depends(pagination_params),
    session: AsyncSession = Depends(get_session),
):
    page = await license_service.list_all_licenses(pagination, session)
    return page.to_response()


# Registered before /{licenseId} so "settings" is not parsed as an id
@router.get("/settings", response_model=LicenseSettingsResponse)
async def get_settings(
    license_settings: LicenseSettingsService = Depends(get_license_settings),
):
    return LicenseSettingsResponse(expiration_minutes=license_settings.expiration_minutes)


@router.put("/settings", response_model=LicenseSettingsResponse)
async def update_settings(
    body: LicenseSettingsUpdateRequest,
    license_settings: LicenseSettingsService = Depends(get_license_settings),
):
    license_settings.set_expiration_minutes(body.expiration_minutes)
    return LicenseSettingsResponse(expiration_minutes=license_settings.expiration_minutes)


@router.get("/{licenseId}", response_model=LicenseResponse)
async def get_license(
    licenseId: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    return await license_service.get_license(licenseId, session)


@router.put("/{licenseId}", response_model=LicenseResponse)
async def update_license(
    licenseId: uuid.UUID,
    body: LicenseUpdateRequest,
    session: AsyncSession = Depends(get_session),
):
    license = await license_service.update_license(
        licenseId, body.expires_at, body.auto_renewal, session
    )
    return await license_service.describe_license(session, license)


@router.delete("/{licenseId}", status_code=204)
async def cancel_license(
    licenseId: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    await license_service.cancel_license(licenseId, session)
    return Response(status_code=204)
