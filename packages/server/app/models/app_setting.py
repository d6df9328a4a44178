"""Key/value application settings persisted across restarts."""

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import utcnow


class AppSetting(SQLModel, table=True):
    __tablename__ = "app_settings"

    key: str = Field(primary_key=True, max_length=100)
    value: str = Field(nullable=False, max_length=1000)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=sa.DateTime())
