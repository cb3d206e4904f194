"""Common schema utilities and base classes."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class CacheSchema(BaseSchema):
    """Shape shared with consumers of the local cache (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel)


class SuccessResponse(BaseSchema):
    """Standard success response."""

    success: bool = True
    message: str | None = None
    data: Any = None


class MessageResponse(BaseSchema):
    """Simple message response."""

    message: str
