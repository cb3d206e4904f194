"""Storage adapters for the attendance store."""

from classroll.repositories.base import AttendanceRepository
from classroll.repositories.sql import SQLAlchemyRepository

__all__ = [
    "AttendanceRepository",
    "SQLAlchemyRepository",
]
