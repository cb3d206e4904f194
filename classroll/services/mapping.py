"""Conversion between remote attendance rows and local attendance records."""

from collections.abc import Iterable
from datetime import date

from classroll.schemas.attendance import AttendanceRecord, AttendanceRow


def records_from_rows(rows: Iterable[AttendanceRow]) -> list[AttendanceRecord]:
    """Group normalized rows into one sparse record per (class_id, date).

    Records come out in the order their first row was seen; a later row for
    the same student and date overwrites an earlier one.
    """
    grouped: dict[tuple[str, date], AttendanceRecord] = {}
    for row in rows:
        key = (row.class_id, row.attendance_date)
        record = grouped.get(key)
        if record is None:
            record = AttendanceRecord(
                attendance_date=row.attendance_date,
                class_id=row.class_id,
            )
            grouped[key] = record
        record.records[row.student_id] = row.present
    return list(grouped.values())


def rows_from_record(record: AttendanceRecord) -> list[AttendanceRow]:
    """Flatten a record into one upsertable row per mapped student."""
    return [
        build_row(record.class_id, student_id, record.attendance_date, present)
        for student_id, present in record.records.items()
    ]


def build_row(
    class_id: str,
    student_id: str,
    on_date: date,
    present: bool,
) -> AttendanceRow:
    """Build the row keyed by (class_id, student_id, date)."""
    return AttendanceRow(
        class_id=class_id,
        student_id=student_id,
        attendance_date=on_date,
        present=present,
    )
