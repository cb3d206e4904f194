import asyncio
from collections.abc import Sequence
from datetime import date

import pytest

from classroll.core.exceptions import StorageError
from classroll.schemas.attendance import AttendanceNotification, AttendanceRow
from classroll.schemas.school_class import SchoolClass
from classroll.schemas.student import Student
from classroll.services.store import AttendanceStore

DAY = date(2026, 3, 10)
OTHER_DAY = date(2026, 3, 11)


class FakeRepository:
    """In-memory storage adapter with per-operation failure injection."""

    def __init__(self, classes=None, students=None, rows=None):
        self.classes: list[SchoolClass] = list(classes or [])
        self.students: list[Student] = list(students or [])
        self.rows: dict[tuple[str, str, date], bool] = {
            (r.class_id, r.student_id, r.attendance_date): r.present for r in rows or []
        }
        self.failing: dict[str, type[Exception]] = {}
        self.calls: list[str] = []
        # When set, upserts wait on the gate after signalling `upsert_started`
        self.gate: asyncio.Event | None = None
        self.upsert_started: asyncio.Event | None = None
        self._next_id = 1

    def fail(self, *operations: str, error: type[Exception] = StorageError) -> None:
        """Make the named operations raise `error` until the test ends."""
        for operation in operations:
            self.failing[operation] = error

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failing:
            raise self.failing[operation](f"{operation} unavailable")

    def _new_id(self, prefix: str) -> str:
        new_id = f"{prefix}-new-{self._next_id}"
        self._next_id += 1
        return new_id

    async def fetch_classes(self) -> list[SchoolClass]:
        self._check("fetch_classes")
        return [c.model_copy() for c in self.classes]

    async def fetch_students(self) -> list[Student]:
        self._check("fetch_students")
        return [s.model_copy() for s in self.students]

    async def fetch_attendance(self) -> list[AttendanceRow]:
        self._check("fetch_attendance")
        return [
            AttendanceRow(class_id=c, student_id=s, attendance_date=d, present=p)
            for (c, s, d), p in self.rows.items()
        ]

    async def insert_class(self, name: str) -> SchoolClass:
        self._check("insert_class")
        school_class = SchoolClass(id=self._new_id("c"), name=name)
        self.classes.append(school_class)
        return school_class.model_copy()

    async def update_class(self, class_id: str, name: str) -> None:
        self._check("update_class")
        for school_class in self.classes:
            if school_class.id == class_id:
                school_class.name = name

    async def delete_class(self, class_id: str) -> None:
        self._check("delete_class")
        self.classes = [c for c in self.classes if c.id != class_id]
        self.students = [s for s in self.students if s.class_id != class_id]
        self.rows = {k: v for k, v in self.rows.items() if k[0] != class_id}

    async def insert_students(self, class_id: str, names: Sequence[str]) -> list[Student]:
        self._check("insert_students")
        created = [Student(id=self._new_id("s"), name=name, class_id=class_id) for name in names]
        self.students.extend(created)
        return [s.model_copy() for s in created]

    async def delete_students(self, student_ids: Sequence[str]) -> None:
        self._check("delete_students")
        ids = set(student_ids)
        self.students = [s for s in self.students if s.id not in ids]
        self.rows = {k: v for k, v in self.rows.items() if k[1] not in ids}

    async def upsert_attendance(self, rows: Sequence[AttendanceRow]) -> None:
        self.calls.append("upsert_attendance")
        if self.upsert_started is not None:
            self.upsert_started.set()
        if self.gate is not None:
            await self.gate.wait()
        if "upsert_attendance" in self.failing:
            raise self.failing["upsert_attendance"]("upsert_attendance unavailable")
        for row in rows:
            self.rows[(row.class_id, row.student_id, row.attendance_date)] = row.present


class RecordingNotifier:
    def __init__(self):
        self.notifications: list[AttendanceNotification] = []

    def submit(self, notification: AttendanceNotification) -> None:
        self.notifications.append(notification)


@pytest.fixture
def repository():
    return FakeRepository(
        classes=[
            SchoolClass(id="c1", name="5A"),
            SchoolClass(id="c2", name="5B"),
            SchoolClass(id="c3", name="6A"),
        ],
        students=[
            Student(id="s1", name="Ana", class_id="c1"),
            Student(id="s2", name="Bruno", class_id="c1"),
            Student(id="s3", name="Carla", class_id="c2"),
        ],
        rows=[
            AttendanceRow(class_id="c1", student_id="s1", attendance_date=DAY, present=False),
            AttendanceRow(class_id="c1", student_id="s1", attendance_date=OTHER_DAY, present=True),
            AttendanceRow(class_id="c2", student_id="s3", attendance_date=DAY, present=False),
        ],
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def store(repository, notifier):
    store = AttendanceStore(repository, notifier=notifier)
    await store.load()
    return store
