# Table definitions; importing this package populates SQLModel.metadata for Alembic and init_db.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization  # noqa: F401
from .license import License  # noqa: F401
from .membership import OrganizationMembership  # noqa: F401
from .invitation import Invitation  # noqa: F401
from .app_setting import AppSetting  # noqa: F401
