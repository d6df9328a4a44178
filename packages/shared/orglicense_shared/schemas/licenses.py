"""License schemas (admin surface and org-scoped listings)."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import CamelModel

MAX_EXPIRATION_MINUTES = 525_600  # one year


class LicenseCreateRequest(CamelModel):
    auto_renewal: bool = False


class LicenseUpdateRequest(CamelModel):
    """Each field is optional and applied independently."""

    expires_at: Optional[datetime] = None
    auto_renewal: Optional[bool] = None


class LicenseAssignRequest(CamelModel):
    license_id: uuid.UUID


class LicenseSettingsUpdateRequest(CamelModel):
    expiration_minutes: int = Field(..., ge=1, le=MAX_EXPIRATION_MINUTES)


class LicenseSettingsResponse(CamelModel):
    expiration_minutes: int


class LicenseResponse(CamelModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    assigned_to_user_id: Optional[uuid.UUID] = None
    assigned_to_email: Optional[str] = None
    expires_at: datetime
    auto_renewal: bool
    is_active: bool
    is_expired: bool
    created_at: datetime
    updated_at: datetime
