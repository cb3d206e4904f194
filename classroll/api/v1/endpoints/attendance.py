"""Attendance endpoints."""

from datetime import date

from fastapi import APIRouter

from classroll.core.dependencies import ClassDep, StoreDep
from classroll.core.exceptions import NotFoundError, StorageError
from classroll.schemas.attendance import (
    AttendanceRecord,
    RollCallItem,
    RollCallResponse,
    ToggleResponse,
)

router = APIRouter()


@router.get("/{class_id}/attendance", response_model=list[AttendanceRecord])
async def list_class_attendance(school_class: ClassDep, store: StoreDep):
    """All sparse attendance records of a class. Missing students are present."""
    return store.attendance_for_class(school_class.id)


@router.get("/{class_id}/attendance/{on_date}", response_model=RollCallResponse)
async def get_roll_call(on_date: date, school_class: ClassDep, store: StoreDep):
    """Presence of every student of a class on a date."""
    entries = store.roll_call(school_class.id, on_date)
    return RollCallResponse(
        class_id=school_class.id,
        attendance_date=on_date,
        students=[
            RollCallItem(
                student_id=entry.student.id,
                name=entry.student.name,
                present=entry.present,
                presence=entry.presence,
            )
            for entry in entries
        ],
        record=store.get_attendance_for_date(school_class.id, on_date),
    )


@router.post(
    "/{class_id}/attendance/{on_date}/students/{student_id}/toggle",
    response_model=ToggleResponse,
)
async def toggle_attendance(
    on_date: date,
    student_id: str,
    school_class: ClassDep,
    store: StoreDep,
):
    """Flip a student's presence on a date (present by default)."""
    student = store.get_student(student_id)
    if student is None or student.class_id != school_class.id:
        raise NotFoundError("Student", student_id)

    present = await store.toggle_attendance(school_class.id, student_id, on_date)
    if present is None:
        raise StorageError("Attendance could not be saved; the change was reverted")

    return ToggleResponse(
        class_id=school_class.id,
        student_id=student_id,
        attendance_date=on_date,
        present=present,
    )
