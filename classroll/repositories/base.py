"""Storage adapter contract used by the attendance store."""

from collections.abc import Sequence
from typing import Protocol

from classroll.schemas.attendance import AttendanceRow
from classroll.schemas.school_class import SchoolClass
from classroll.schemas.student import Student


class AttendanceRepository(Protocol):
    """Remote relational store holding classes, students and attendance.

    Every method raises ``StorageError`` when the store cannot complete the
    operation.
    """

    async def fetch_classes(self) -> list[SchoolClass]:
        raise NotImplementedError

    async def fetch_students(self) -> list[Student]:
        raise NotImplementedError

    async def fetch_attendance(self) -> list[AttendanceRow]:
        raise NotImplementedError

    async def insert_class(self, name: str) -> SchoolClass:
        raise NotImplementedError

    async def update_class(self, class_id: str, name: str) -> None:
        raise NotImplementedError

    async def delete_class(self, class_id: str) -> None:
        """Delete a class together with its students and attendance rows."""
        raise NotImplementedError

    async def insert_students(self, class_id: str, names: Sequence[str]) -> list[Student]:
        """Insert students in the given order and return them in that order."""
        raise NotImplementedError

    async def delete_students(self, student_ids: Sequence[str]) -> None:
        """Delete students (and their attendance rows) by id membership."""
        raise NotImplementedError

    async def upsert_attendance(self, rows: Sequence[AttendanceRow]) -> None:
        """Insert rows, updating ``present`` on (class_id, student_id, date) conflicts."""
        raise NotImplementedError
