"""User model."""

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    # Subject claim issued by the identity provider
    external_id: str = Field(unique=True, index=True, nullable=False, max_length=200)
    email: str = Field(nullable=False, index=True, max_length=256)
    role: str = Field(default="User", nullable=False)  # User | Admin
