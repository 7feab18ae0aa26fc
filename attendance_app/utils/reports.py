import csv
import io
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from attendance_app.schemas import AttendanceRecordOut, StudentOut
from attendance_app.services.stats import average_confidence
from attendance_app.utils.time_utils import to_local

NA = "N/A"

SIMPLE_HEADERS = ["Student Name", "Date", "Time", "Confidence", "Location", "Device"]
DETAILED_HEADERS = [
    "Student Name", "Student ID", "Email", "Department", "Year",
    "Date", "Time", "Confidence", "Location", "Device",
]
SUMMARY_HEADERS = [
    "Student Name", "Student ID", "Email", "Department", "Year",
    "Total Records", "Days Attended", "Avg Confidence (%)",
    "First Record", "Last Record",
]


def _fmt_date(dt: datetime) -> str:
    return to_local(dt).strftime("%Y-%m-%d")


def _fmt_time(dt: datetime) -> str:
    return to_local(dt).strftime("%H:%M:%S")


def _fmt_confidence(value: float) -> str:
    return f"{value * 100:.1f}%"


def _or_na(value: Optional[str]) -> str:
    return value or NA


def _write(rows: Iterable[List]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerows(rows)
    return buf.getvalue()


def report_filename(prefix: str, today: Optional[datetime] = None) -> str:
    return f"{prefix}_{(today or datetime.now()).strftime('%Y-%m-%d')}.csv"


def attendance_csv(records: Sequence[AttendanceRecordOut]) -> str:
    """One line per record."""
    rows = [SIMPLE_HEADERS]
    for r in records:
        rows.append([
            r.student_name, _fmt_date(r.timestamp), _fmt_time(r.timestamp),
            _fmt_confidence(r.confidence), _or_na(r.location), _or_na(r.device_info),
        ])
    return _write(rows)


def detailed_csv(records: Sequence[AttendanceRecordOut], students: Sequence[StudentOut]) -> str:
    """One line per record, joined with the student's registration details."""
    by_id = {s.id: s for s in students}
    rows = [DETAILED_HEADERS]
    for r in records:
        s = by_id.get(r.student_id)
        rows.append([
            r.student_name,
            _or_na(s.student_id if s else None),
            _or_na(s.email if s else None),
            _or_na(s.department if s else None),
            _or_na(s.year if s else None),
            _fmt_date(r.timestamp), _fmt_time(r.timestamp),
            _fmt_confidence(r.confidence), _or_na(r.location), _or_na(r.device_info),
        ])
    return _write(rows)


def summary_csv(
    records: Sequence[AttendanceRecordOut],
    students: Sequence[StudentOut],
    period: str,
    generated_at: Optional[datetime] = None,
) -> str:
    """Per-student totals for a period, preceded by a short header block."""
    generated_at = generated_at or datetime.now()
    rows: List[List] = [
        [f"Attendance Report - {period}"],
        [f"Generated on: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}"],
        [f"Total Students: {len(students)}"],
        [f"Total Records: {len(records)}"],
        [],
        SUMMARY_HEADERS,
    ]
    for s in students:
        mine = [r for r in records if r.student_id == s.id]
        days = {to_local(r.timestamp).date() for r in mine}
        first = min((r.timestamp for r in mine), key=to_local, default=None)
        last = max((r.timestamp for r in mine), key=to_local, default=None)
        rows.append([
            s.name, _or_na(s.student_id), s.email, _or_na(s.department), _or_na(s.year),
            len(mine), len(days), f"{average_confidence(mine) * 100:.1f}",
            _fmt_date(first) if first else NA,
            _fmt_date(last) if last else NA,
        ])
    return _write(rows)
