"""Class and class roster endpoints."""

from fastapi import APIRouter, File, UploadFile, status

from classroll.core.config import settings
from classroll.core.dependencies import ClassDep, StoreDep
from classroll.core.exceptions import StorageError, UploadError
from classroll.schemas.common import MessageResponse, SuccessResponse
from classroll.schemas.school_class import ClassCreate, ClassRename, SchoolClass
from classroll.schemas.student import Student, StudentCreate, StudentImportResult
from classroll.services.csv_import import decode_upload, extract_student_names

router = APIRouter()


@router.get("", response_model=list[SchoolClass])
async def list_classes(store: StoreDep):
    """List all classes."""
    return store.classes


@router.post("", response_model=SchoolClass, status_code=status.HTTP_201_CREATED)
async def create_class(request: ClassCreate, store: StoreDep):
    """Create a new class."""
    created = await store.create_class(request.name)
    if created is None:
        raise StorageError("Class could not be created")
    return created


@router.get("/{class_id}", response_model=SchoolClass)
async def get_class(school_class: ClassDep):
    """Get a class by ID."""
    return school_class


@router.patch("/{class_id}", response_model=SchoolClass)
async def rename_class(request: ClassRename, school_class: ClassDep, store: StoreDep):
    """Rename a class."""
    if not await store.rename_class(school_class.id, request.name):
        raise StorageError("Class could not be renamed")
    return store.get_class(school_class.id)


@router.delete("/{class_id}", response_model=MessageResponse)
async def delete_class(school_class: ClassDep, store: StoreDep):
    """Delete a class with all of its students and attendance records."""
    if not await store.delete_class(school_class.id):
        raise StorageError("Class could not be deleted")
    return MessageResponse(message=f"Class '{school_class.name}' deleted")


@router.get("/{class_id}/students", response_model=list[Student])
async def list_class_students(school_class: ClassDep, store: StoreDep):
    """List the students of a class."""
    return store.students_in_class(school_class.id)


@router.post("/{class_id}/students", response_model=SuccessResponse)
async def add_student(request: StudentCreate, school_class: ClassDep, store: StoreDep):
    """Add a student to a class.

    A name already present in the class (ignoring case) is not an error:
    the existing student is returned with an explanatory message.
    """
    existing = store.find_student_by_name(school_class.id, request.name)
    if existing is not None:
        return SuccessResponse(
            message=f"Student '{existing.name}' already exists in this class",
            data=existing.model_dump(by_alias=True),
        )

    student = await store.add_student(school_class.id, request.name)
    if student is None:
        raise StorageError("Student could not be added")
    return SuccessResponse(
        message=f"Student '{student.name}' added",
        data=student.model_dump(by_alias=True),
    )


@router.post("/{class_id}/students/import", response_model=StudentImportResult)
async def import_students(
    school_class: ClassDep,
    store: StoreDep,
    file: UploadFile = File(...),
):
    """
    Import students from a CSV file.

    The name column is found by its header ("Nome do Aluno", "Nome" or
    "Student Name"); without a header the first column is used. Names already
    in the class, and repeated names in the file, are skipped.
    """
    if not file.filename:
        raise UploadError("No file provided")

    if not any(file.filename.lower().endswith(ext) for ext in settings.ALLOWED_EXTENSIONS):
        allowed = ", ".join(settings.ALLOWED_EXTENSIONS)
        raise UploadError(f"Only {allowed} files are allowed")

    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise UploadError(f"File size exceeds {settings.MAX_UPLOAD_SIZE_MB}MB limit")

    names = extract_student_names(decode_upload(content))
    if not names:
        return StudentImportResult(
            total_names=0,
            imported=0,
            skipped=0,
            message='No valid names found. Check that the file has a "Nome do Aluno" column.',
        )

    pending = store.pending_names(school_class.id, names)
    created = await store.import_students(school_class.id, names)
    if pending and not created:
        raise StorageError("Students could not be imported")

    return StudentImportResult(
        total_names=len(names),
        imported=len(created),
        skipped=len(names) - len(created),
        students=created,
        message=f"{len(created)} students imported",
    )
