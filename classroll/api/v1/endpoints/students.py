"""Student deletion endpoints."""

from fastapi import APIRouter

from classroll.core.dependencies import StoreDep, StudentDep
from classroll.core.exceptions import StorageError
from classroll.schemas.common import MessageResponse
from classroll.schemas.student import Student, StudentBulkDelete

router = APIRouter()


@router.get("/{student_id}", response_model=Student)
async def get_student(student: StudentDep):
    """Get a student by ID."""
    return student


@router.delete("/{student_id}", response_model=MessageResponse)
async def delete_student(student: StudentDep, store: StoreDep):
    """Delete a student and clear them from every attendance record."""
    if not await store.delete_student(student.id):
        raise StorageError("Student could not be deleted")
    return MessageResponse(message=f"Student '{student.name}' deleted")


@router.post("/bulk-delete", response_model=MessageResponse)
async def delete_students(request: StudentBulkDelete, store: StoreDep):
    """Delete several students at once."""
    if not await store.delete_students(request.ids):
        raise StorageError("Students could not be deleted")
    return MessageResponse(message=f"{len(set(request.ids))} students deleted")
