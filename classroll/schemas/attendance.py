"""Attendance schemas.

Remote storage keeps one row per (class, student, date) with an explicit
flag. The local cache keeps one sparse record per (class, date) where a
missing student means present.
"""

import enum
from collections.abc import Iterable
from datetime import date

from pydantic import Field

from classroll.schemas.common import BaseSchema, CacheSchema
from classroll.schemas.student import Student


class Presence(str, enum.Enum):
    """Three-valued presence lookup result."""

    DEFAULT = "default"
    PRESENT = "present"
    ABSENT = "absent"

    @classmethod
    def from_flag(cls, value: bool | None) -> "Presence":
        """Convert a mapping value (or its absence) to a Presence."""
        if value is None:
            return cls.DEFAULT
        return cls.PRESENT if value else cls.ABSENT

    @property
    def is_present(self) -> bool:
        return self is not Presence.ABSENT


class AttendanceRow(BaseSchema):
    """Normalized remote row, unique per (class_id, student_id, date)."""

    class_id: str
    student_id: str
    attendance_date: date = Field(..., alias="date")
    present: bool


class AttendanceRecord(CacheSchema):
    """Sparse per-(class, date) presence map held in the local cache."""

    attendance_date: date = Field(..., alias="date")
    class_id: str
    records: dict[str, bool] = Field(default_factory=dict)

    def presence_of(self, student_id: str) -> Presence:
        return Presence.from_flag(self.records.get(student_id))

    def is_present(self, student_id: str) -> bool:
        return self.presence_of(student_id).is_present

    def discard(self, student_ids: Iterable[str]) -> None:
        """Drop the given students' entries, keeping the record itself."""
        for student_id in student_ids:
            self.records.pop(student_id, None)


def presence_for(record: AttendanceRecord | None, student_id: str) -> Presence:
    """Presence of a student in a possibly missing record."""
    if record is None:
        return Presence.DEFAULT
    return record.presence_of(student_id)


class AttendanceNotification(BaseSchema):
    """Payload forwarded to the spreadsheet side channel after a write."""

    student_id: str
    class_id: str
    present: bool
    attendance_date: date = Field(..., alias="date")
    student_name: str | None = None
    class_name: str | None = None


class RollCallEntry(BaseSchema):
    """One student's presence on a class page."""

    student: Student
    presence: Presence

    @property
    def present(self) -> bool:
        return self.presence.is_present


class RollCallItem(CacheSchema):
    """Serialized roll call line."""

    student_id: str
    name: str
    present: bool
    presence: Presence


class RollCallResponse(CacheSchema):
    """Roll call of a class on a date, plus the raw sparse record."""

    class_id: str
    attendance_date: date = Field(..., alias="date")
    students: list[RollCallItem]
    record: AttendanceRecord | None = None


class ToggleResponse(CacheSchema):
    """Outcome of a presence toggle."""

    class_id: str
    student_id: str
    attendance_date: date = Field(..., alias="date")
    present: bool
