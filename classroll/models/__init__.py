"""Database models package."""

from classroll.models.attendance import AttendanceEntry
from classroll.models.school_class import SchoolClass
from classroll.models.student import Student

__all__ = [
    # Class
    "SchoolClass",
    # Student
    "Student",
    # Attendance
    "AttendanceEntry",
]
