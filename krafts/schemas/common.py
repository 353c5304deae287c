"""Common schemas and utilities."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class CursorPage(BaseSchema, Generic[T]):
    """Cursor paginated response wrapper."""

    data: list[T]
    next_cursor: str | None = Field(default=None, serialization_alias="nextCursor")


class SuccessResponse(BaseModel):
    """Simple success response."""

    success: bool = True
    message: str | None = None
