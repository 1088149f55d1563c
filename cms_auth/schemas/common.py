"""Response envelope shared by every endpoint."""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys; accepts either form on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ApiResponse(CamelModel, Generic[T]):
    """Uniform envelope: ``{success, message, errors[], data}``."""

    success: bool = True
    message: str = ""
    errors: List[str] = Field(default_factory=list)
    data: Optional[T] = None

    @classmethod
    def ok(cls, data=None, message: str = ""):
        return cls(success=True, message=message, data=data)

    @classmethod
    def error(cls, message: str, errors: List[str] = None):
        return cls(success=False, message=message, errors=errors or [])


class PagedResponse(CamelModel, Generic[T]):
    items: List[T] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 10
    total_pages: int = 0
    has_next_page: bool = False
    has_previous_page: bool = False

    @classmethod
    def build(cls, items, total_count: int, page: int, page_size: int):
        total_pages = (total_count + page_size - 1) // page_size if page_size else 0
        return cls(
            items=items,
            total_count=total_count,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        )
