"""Attendance store: the single owner of classes, students and attendance.

All mutation goes through the store. Remote writes are awaited; local state
only advances when they succeed, except for attendance toggles, which are
applied optimistically and rolled back when the write fails.

The store assumes one event loop and no threads. Every operation captures
whatever it needs for a rollback before its first ``await``, so coroutines
interleaving on the same (class, date) key never see a half-applied toggle.
Running the store from several threads would need per-key serialization.
"""

import asyncio
import logging
from collections.abc import Awaitable, Iterable, Sequence
from datetime import date
from typing import TypeVar

from classroll.core.exceptions import StorageError
from classroll.repositories.base import AttendanceRepository
from classroll.schemas.attendance import (
    AttendanceNotification,
    AttendanceRecord,
    Presence,
    RollCallEntry,
    presence_for,
)
from classroll.schemas.school_class import SchoolClass
from classroll.schemas.student import Student
from classroll.services.mapping import records_from_rows, rows_from_record
from classroll.services.sheets import AttendanceNotifier

logger = logging.getLogger(__name__)

T = TypeVar("T")

# What a storage adapter may raise: its own StorageError, or a connection
# error from the driver underneath it
REMOTE_ERRORS = (StorageError, OSError)


def failure_reason(error: Exception) -> str:
    """Log-friendly description of a remote failure."""
    if isinstance(error, StorageError):
        return error.message
    return f"{type(error).__name__}: {error}"


def name_key(name: str) -> str:
    """Case-insensitive comparison key for student names."""
    return name.strip().lower()


class AttendanceStore:
    """In-memory cache of the remote store with optimistic attendance sync."""

    def __init__(
        self,
        repository: AttendanceRepository,
        notifier: AttendanceNotifier | None = None,
    ):
        self.repository = repository
        self.notifier = notifier
        self._classes: list[SchoolClass] = []
        self._students: list[Student] = []
        self._attendance: list[AttendanceRecord] = []
        self._loading = True

    # ==========================================
    # Read access
    # ==========================================

    @property
    def loading(self) -> bool:
        """True until the initial fetch has completed."""
        return self._loading

    @property
    def classes(self) -> list[SchoolClass]:
        return [c.model_copy() for c in self._classes]

    @property
    def students(self) -> list[Student]:
        return [s.model_copy() for s in self._students]

    @property
    def attendance(self) -> list[AttendanceRecord]:
        return [r.model_copy(deep=True) for r in self._attendance]

    def get_class(self, class_id: str) -> SchoolClass | None:
        for school_class in self._classes:
            if school_class.id == class_id:
                return school_class.model_copy()
        return None

    def get_student(self, student_id: str) -> Student | None:
        for student in self._students:
            if student.id == student_id:
                return student.model_copy()
        return None

    def students_in_class(self, class_id: str) -> list[Student]:
        return [s.model_copy() for s in self._students if s.class_id == class_id]

    def find_student_by_name(self, class_id: str, name: str) -> Student | None:
        """Case-insensitive lookup of a student name within a class."""
        key = name_key(name)
        for student in self._students:
            if student.class_id == class_id and name_key(student.name) == key:
                return student.model_copy()
        return None

    def get_attendance_for_date(self, class_id: str, on_date: date) -> AttendanceRecord | None:
        """Return the sparse record for (class_id, on_date), if any.

        Students missing from the record are present.
        """
        record = self._find_record(class_id, on_date)
        return record.model_copy(deep=True) if record else None

    def attendance_for_class(self, class_id: str) -> list[AttendanceRecord]:
        return [r.model_copy(deep=True) for r in self._attendance if r.class_id == class_id]

    def roll_call(self, class_id: str, on_date: date) -> list[RollCallEntry]:
        """Presence of every student of the class on a date."""
        record = self._find_record(class_id, on_date)
        return [
            RollCallEntry(student=student.model_copy(), presence=presence_for(record, student.id))
            for student in self._students
            if student.class_id == class_id
        ]

    # ==========================================
    # Initial load
    # ==========================================

    async def load(self) -> None:
        """Fetch all three tables concurrently and populate the cache.

        A table that cannot be fetched is logged and left empty.
        """
        self._loading = True
        classes, students, rows = await asyncio.gather(
            self._fetch("classes", self.repository.fetch_classes()),
            self._fetch("students", self.repository.fetch_students()),
            self._fetch("attendance", self.repository.fetch_attendance()),
        )
        self._classes = list(classes or [])
        self._students = list(students or [])
        self._attendance = records_from_rows(rows or [])
        self._loading = False
        logger.info(
            f"[STORE] Loaded {len(self._classes)} classes, {len(self._students)} students, "
            f"{len(self._attendance)} attendance records"
        )

    async def _fetch(self, table: str, fetch: Awaitable[list[T]]) -> list[T] | None:
        try:
            return await fetch
        except REMOTE_ERRORS as e:
            logger.error(f"[STORE] Failed to load {table}: {failure_reason(e)}")
            return None

    # ==========================================
    # Classes
    # ==========================================

    async def create_class(self, name: str) -> SchoolClass | None:
        """Create a class remotely, then cache it. Returns None on failure."""
        name = name.strip()
        try:
            created = await self.repository.insert_class(name)
        except REMOTE_ERRORS as e:
            logger.error(f"[CLASSES] Failed to create class '{name}': {failure_reason(e)}")
            return None
        self._classes.append(created)
        logger.info(f"[CLASSES] Created class '{created.name}' ({created.id})")
        return created.model_copy()

    async def rename_class(self, class_id: str, name: str) -> bool:
        """Rename a class remotely, then locally. Returns whether it applied."""
        name = name.strip()
        try:
            await self.repository.update_class(class_id, name)
        except REMOTE_ERRORS as e:
            logger.error(f"[CLASSES] Failed to rename class {class_id}: {failure_reason(e)}")
            return False
        for school_class in self._classes:
            if school_class.id == class_id:
                school_class.name = name
        logger.info(f"[CLASSES] Renamed class {class_id} to '{name}'")
        return True

    async def delete_class(self, class_id: str) -> bool:
        """Delete a class and cascade to its students and attendance records."""
        try:
            await self.repository.delete_class(class_id)
        except REMOTE_ERRORS as e:
            logger.error(f"[CLASSES] Failed to delete class {class_id}: {failure_reason(e)}")
            return False
        self._classes = [c for c in self._classes if c.id != class_id]
        self._students = [s for s in self._students if s.class_id != class_id]
        self._attendance = [r for r in self._attendance if r.class_id != class_id]
        logger.info(f"[CLASSES] Deleted class {class_id} with its students and attendance")
        return True

    # ==========================================
    # Students
    # ==========================================

    async def add_student(self, class_id: str, name: str) -> Student | None:
        """Add one student unless the class already has that name.

        Returns the new student, or None when skipped or on failure.
        """
        name = name.strip()
        if self.find_student_by_name(class_id, name) is not None:
            logger.warning(f"[STUDENTS] '{name}' already exists in class {class_id}, skipping")
            return None
        try:
            created = await self.repository.insert_students(class_id, [name])
        except REMOTE_ERRORS as e:
            logger.error(f"[STUDENTS] Failed to add '{name}' to class {class_id}: {failure_reason(e)}")
            return None
        self._students.extend(created)
        logger.info(f"[STUDENTS] Added '{name}' to class {class_id}")
        return created[0].model_copy() if created else None

    def pending_names(self, class_id: str, names: Iterable[str]) -> list[str]:
        """Names that an import would create, in first-seen order.

        Trims names, drops empties, collapses case-insensitive duplicates
        (first form wins) and skips names already in the class.
        """
        taken = {name_key(s.name) for s in self._students if s.class_id == class_id}
        pending: list[str] = []
        for raw in names:
            name = raw.strip()
            key = name_key(name)
            if not name or key in taken:
                continue
            taken.add(key)
            pending.append(name)
        return pending

    async def import_students(self, class_id: str, names: Sequence[str]) -> list[Student]:
        """Bulk-create the new names for a class. Returns the created students."""
        pending = self.pending_names(class_id, names)
        if not pending:
            logger.info(f"[STUDENTS] Nothing new to import into class {class_id}")
            return []
        try:
            created = await self.repository.insert_students(class_id, pending)
        except REMOTE_ERRORS as e:
            logger.error(
                f"[STUDENTS] Failed to import {len(pending)} students into class {class_id}: {failure_reason(e)}"
            )
            return []
        self._students.extend(created)
        logger.info(
            f"[STUDENTS] Imported {len(created)} of {len(names)} names into class {class_id}"
        )
        return [s.model_copy() for s in created]

    async def delete_student(self, student_id: str) -> bool:
        return await self.delete_students([student_id])

    async def delete_students(self, student_ids: Sequence[str]) -> bool:
        """Delete students and strip them from every attendance record."""
        ids = set(student_ids)
        if not ids:
            return False
        try:
            await self.repository.delete_students(list(ids))
        except REMOTE_ERRORS as e:
            logger.error(f"[STUDENTS] Failed to delete {len(ids)} students: {failure_reason(e)}")
            return False
        self._students = [s for s in self._students if s.id not in ids]
        for record in self._attendance:
            record.discard(ids)
        logger.info(f"[STUDENTS] Deleted {len(ids)} students")
        return True

    # ==========================================
    # Attendance
    # ==========================================

    def _find_record(self, class_id: str, on_date: date) -> AttendanceRecord | None:
        for record in self._attendance:
            if record.class_id == class_id and record.attendance_date == on_date:
                return record
        return None

    async def toggle_attendance(
        self,
        class_id: str,
        student_id: str,
        on_date: date,
    ) -> bool | None:
        """Flip a student's presence for a date.

        The new value is cached before the remote upsert. If the upsert
        fails, the pre-toggle value is written back into the same slot and
        None is returned. Otherwise the new presence is returned.
        """
        record = self._find_record(class_id, on_date)
        previous = presence_for(record, student_id).is_present
        present = not previous

        if record is None:
            record = AttendanceRecord(attendance_date=on_date, class_id=class_id)
            self._attendance.append(record)
        record.records[student_id] = present

        change = AttendanceRecord(
            attendance_date=on_date,
            class_id=class_id,
            records={student_id: present},
        )
        try:
            await self.repository.upsert_attendance(rows_from_record(change))
        except REMOTE_ERRORS as e:
            record.records[student_id] = previous
            logger.error(
                f"[ATTENDANCE] Failed to save student {student_id} in class {class_id} "
                f"on {on_date}, reverted: {failure_reason(e)}"
            )
            return None

        logger.debug(
            f"[ATTENDANCE] Student {student_id} in class {class_id} on {on_date}: "
            f"{Presence.from_flag(present).value}"
        )
        self._notify(class_id, student_id, on_date, present)
        return present

    def _notify(self, class_id: str, student_id: str, on_date: date, present: bool) -> None:
        if self.notifier is None:
            return
        school_class = self.get_class(class_id)
        student = self.get_student(student_id)
        self.notifier.submit(
            AttendanceNotification(
                student_id=student_id,
                class_id=class_id,
                present=present,
                attendance_date=on_date,
                student_name=student.name if student else None,
                class_name=school_class.name if school_class else None,
            )
        )
