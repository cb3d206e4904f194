"""Class schemas."""

from pydantic import Field

from classroll.schemas.common import BaseSchema, CacheSchema


class SchoolClass(CacheSchema):
    """A class as held in the local cache: ``{id, name}``."""

    id: str
    name: str


class ClassCreate(BaseSchema):
    """Class creation schema."""

    name: str = Field(..., min_length=1, max_length=255)


class ClassRename(BaseSchema):
    """Class rename schema."""

    name: str = Field(..., min_length=1, max_length=255)
