"""
API Router

Everything is mounted under /api; the admin surface is gated on the global
Admin role claim.
"""

from fastapi import APIRouter

from . import admin_licenses, auth, memberships, organizations

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
router.include_router(memberships.router, prefix="/memberships", tags=["Memberships"])
router.include_router(admin_licenses.router, prefix="/admin/licenses", tags=["Admin Licenses"])
