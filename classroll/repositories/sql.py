"""SQLAlchemy implementation of the storage adapter."""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from classroll.core.exceptions import StorageError
from classroll.models.attendance import AttendanceEntry
from classroll.models.school_class import SchoolClass as SchoolClassModel
from classroll.models.student import Student as StudentModel
from classroll.schemas.attendance import AttendanceRow
from classroll.schemas.school_class import SchoolClass
from classroll.schemas.student import Student

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SQLAlchemyRepository:
    """Relational store backed by an async SQLAlchemy engine.

    Each call runs in its own session and transaction, so independent calls
    may be awaited concurrently. Database and connection failures surface as
    ``StorageError``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, action: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield session
        except (SQLAlchemyError, OSError) as e:
            logger.debug(f"[STORAGE] {action} failed: {e}")
            raise StorageError(f"Failed to {action}", details={"error": str(e)}) from e

    async def fetch_classes(self) -> list[SchoolClass]:
        async with self._transaction("fetch classes") as session:
            result = await session.execute(
                select(SchoolClassModel).order_by(SchoolClassModel.created_at, SchoolClassModel.id)
            )
            return [SchoolClass.model_validate(c) for c in result.scalars().all()]

    async def fetch_students(self) -> list[Student]:
        async with self._transaction("fetch students") as session:
            result = await session.execute(
                select(StudentModel).order_by(StudentModel.created_at, StudentModel.id)
            )
            return [Student.model_validate(s) for s in result.scalars().all()]

    async def fetch_attendance(self) -> list[AttendanceRow]:
        async with self._transaction("fetch attendance") as session:
            result = await session.execute(select(AttendanceEntry))
            return [
                AttendanceRow(
                    class_id=entry.class_id,
                    student_id=entry.student_id,
                    attendance_date=entry.attendance_date,
                    present=entry.present,
                )
                for entry in result.scalars().all()
            ]

    async def insert_class(self, name: str) -> SchoolClass:
        async with self._transaction("create class") as session:
            school_class = SchoolClassModel(name=name)
            session.add(school_class)
            await session.flush()
            return SchoolClass.model_validate(school_class)

    async def update_class(self, class_id: str, name: str) -> None:
        async with self._transaction("rename class") as session:
            await session.execute(
                update(SchoolClassModel)
                .where(SchoolClassModel.id == class_id)
                .values(name=name)
            )

    async def delete_class(self, class_id: str) -> None:
        async with self._transaction("delete class") as session:
            await session.execute(delete(AttendanceEntry).where(AttendanceEntry.class_id == class_id))
            await session.execute(delete(StudentModel).where(StudentModel.class_id == class_id))
            await session.execute(delete(SchoolClassModel).where(SchoolClassModel.id == class_id))

    async def insert_students(self, class_id: str, names: Sequence[str]) -> list[Student]:
        async with self._transaction("create students") as session:
            students = [StudentModel(name=name, class_id=class_id) for name in names]
            session.add_all(students)
            await session.flush()
            return [Student.model_validate(s) for s in students]

    async def delete_students(self, student_ids: Sequence[str]) -> None:
        ids = list(student_ids)
        async with self._transaction("delete students") as session:
            await session.execute(delete(AttendanceEntry).where(AttendanceEntry.student_id.in_(ids)))
            await session.execute(delete(StudentModel).where(StudentModel.id.in_(ids)))

    async def upsert_attendance(self, rows: Sequence[AttendanceRow]) -> None:
        if not rows:
            return
        async with self._transaction("save attendance") as session:
            dialect = session.get_bind().dialect.name
            insert = _UPSERT_DIALECTS.get(dialect)
            if insert is None:
                raise StorageError(f"Upsert is not supported for dialect '{dialect}'")

            table = AttendanceEntry.__table__
            stmt = insert(table).values(
                [
                    {
                        "class_id": row.class_id,
                        "student_id": row.student_id,
                        "date": row.attendance_date,
                        "present": row.present,
                    }
                    for row in rows
                ]
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.class_id, table.c.student_id, table.c.date],
                set_={"present": stmt.excluded.present},
            )
            await session.execute(stmt)
