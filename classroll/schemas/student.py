"""Student schemas."""

from pydantic import Field

from classroll.schemas.common import BaseSchema, CacheSchema


class Student(CacheSchema):
    """A student as held in the local cache: ``{id, name, classId}``."""

    id: str
    name: str
    class_id: str


class StudentCreate(BaseSchema):
    """Single student creation schema."""

    name: str = Field(..., min_length=1, max_length=255)


class StudentBulkDelete(BaseSchema):
    """Bulk student deletion schema."""

    ids: list[str] = Field(..., min_length=1)


class StudentImportResult(BaseSchema):
    """Result of a CSV student import."""

    total_names: int
    imported: int
    skipped: int
    students: list[Student] = []
    message: str
