"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends, Request

from classroll.core.exceptions import NotFoundError
from classroll.schemas.school_class import SchoolClass
from classroll.schemas.student import Student
from classroll.services.store import AttendanceStore


def get_store(request: Request) -> AttendanceStore:
    """The application's single attendance store."""
    return request.app.state.store


StoreDep = Annotated[AttendanceStore, Depends(get_store)]


def require_class(class_id: str, store: StoreDep) -> SchoolClass:
    """Resolve a class path parameter or fail with 404."""
    school_class = store.get_class(class_id)
    if school_class is None:
        raise NotFoundError("Class", class_id)
    return school_class


def require_student(student_id: str, store: StoreDep) -> Student:
    """Resolve a student path parameter or fail with 404."""
    student = store.get_student(student_id)
    if student is None:
        raise NotFoundError("Student", student_id)
    return student


ClassDep = Annotated[SchoolClass, Depends(require_class)]
StudentDep = Annotated[Student, Depends(require_student)]
