"""Attendance entry model."""

from datetime import date

from sqlalchemy import Boolean, Date, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from classroll.core.database import Base


class AttendanceEntry(Base):
    """One explicit presence flag per (class, student, date).

    The composite primary key doubles as the upsert conflict target.
    """

    __tablename__ = "attendance"

    class_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("classes.id", ondelete="CASCADE"),
        primary_key=True,
    )
    student_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("students.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    attendance_date: Mapped[date] = mapped_column("date", Date, primary_key=True)
    present: Mapped[bool] = mapped_column(Boolean, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<AttendanceEntry(class_id={self.class_id}, student_id={self.student_id}, "
            f"date={self.attendance_date}, present={self.present})>"
        )
