from __future__ import annotations

from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10


class CamelModel(BaseModel):
    """Wire models use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class OrganizationRole(str, Enum):
    OWNER = "Owner"
    ADMIN = "Admin"
    MEMBER = "Member"

    @property
    def rank(self) -> int:
        return ROLE_RANK[self]


# Total order used by every role check: Member < Admin < Owner
ROLE_RANK: dict[OrganizationRole, int] = {
    OrganizationRole.MEMBER: 0,
    OrganizationRole.ADMIN: 1,
    OrganizationRole.OWNER: 2,
}


class PaginationRequest(CamelModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)
    sort_by: Optional[str] = None
    sort_descending: bool = False
    search: Optional[str] = None

    @field_validator("page_size")
    @classmethod
    def clamp_page_size(cls, value: int) -> int:
        return min(value, MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PagedResponse(CamelModel, Generic[T]):
    items: List[T]
    page: int
    page_size: int
    total_count: int
    total_pages: int
    has_previous_page: bool
    has_next_page: bool
