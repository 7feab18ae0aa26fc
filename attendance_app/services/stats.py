import calendar
from collections import Counter, OrderedDict
from datetime import date, datetime, timedelta
from typing import Dict, List, Literal, Optional, Sequence

import numpy as np

from attendance_app.schemas import (
    AttendanceRecordOut,
    AttendanceStats,
    DayStat,
    DepartmentStat,
    HourStat,
    MonthStat,
    StudentOut,
)
from attendance_app.utils.time_utils import to_local

Period = Literal["week", "month", "quarter", "year"]

WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
UNASSIGNED = "Unassigned"


def shift_months(dt: datetime, months: int) -> datetime:
    """Moves `dt` by whole months, clamping the day to the target month."""
    month_index = dt.year * 12 + (dt.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def period_start(period: Period, now: datetime) -> datetime:
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return shift_months(now, -1)
    if period == "quarter":
        return shift_months(now, -3)
    if period == "year":
        return shift_months(now, -12)
    raise ValueError(f"Unknown period: {period}")


def filter_records(
    records: Sequence[AttendanceRecordOut],
    period: Period,
    now: datetime,
    student_id: Optional[str] = None,
) -> List[AttendanceRecordOut]:
    start = period_start(period, to_local(now))
    return [
        r for r in records
        if to_local(r.timestamp) >= start and (student_id is None or r.student_id == student_id)
    ]


def _local_day(record: AttendanceRecordOut) -> date:
    return to_local(record.timestamp).date()


def _distinct_students_on(records: Sequence[AttendanceRecordOut], day: date) -> int:
    return len({r.student_id for r in records if _local_day(r) == day})


def weekly_stats(students: Sequence[StudentOut], records: Sequence[AttendanceRecordOut], now: datetime) -> List[DayStat]:
    total = sum(1 for s in students if s.is_active)
    monday = to_local(now).date() - timedelta(days=to_local(now).weekday())
    return [
        DayStat(day=name, present=_distinct_students_on(records, monday + timedelta(days=i)), total=total)
        for i, name in enumerate(WEEKDAYS)
    ]


def monthly_trend(
    students: Sequence[StudentOut], records: Sequence[AttendanceRecordOut], now: datetime, months: int = 6
) -> List[MonthStat]:
    active = sum(1 for s in students if s.is_active)
    now = to_local(now)
    trend = []
    for offset in range(months - 1, -1, -1):
        month = shift_months(now.replace(day=1), -offset)
        in_month = [
            r for r in records
            if (_local_day(r).year, _local_day(r).month) == (month.year, month.month)
        ]
        unique_days = len({_local_day(r) for r in in_month})
        possible = active * unique_days
        rate = round(len(in_month) / possible * 100) if possible else 0
        trend.append(MonthStat(month=month.strftime("%b"), rate=rate))
    return trend


def compute_stats(
    students: Sequence[StudentOut], records: Sequence[AttendanceRecordOut], now: datetime
) -> AttendanceStats:
    """Dashboard summary for `now`."""
    active = sum(1 for s in students if s.is_active)
    present_today = _distinct_students_on(records, to_local(now).date())
    recent = sorted(records, key=lambda r: to_local(r.timestamp), reverse=True)[:5]
    return AttendanceStats(
        total_students=active,
        present_today=present_today,
        attendance_rate=round(present_today / active * 100, 1) if active else 0.0,
        recent_records=recent,
        weekly_stats=weekly_stats(students, records, now),
        monthly_trend=monthly_trend(students, records, now),
    )


def department_stats(students: Sequence[StudentOut], records: Sequence[AttendanceRecordOut]) -> List[DepartmentStat]:
    departments: Dict[str, Dict[str, int]] = OrderedDict()
    department_of = {}
    for student in students:
        dept = student.department or UNASSIGNED
        department_of[student.id] = dept
        departments.setdefault(dept, {"total": 0, "present": 0})["total"] += 1

    for record in records:
        dept = department_of.get(record.student_id, UNASSIGNED)
        if dept in departments:
            departments[dept]["present"] += 1

    return [
        DepartmentStat(
            name=name,
            total=data["total"],
            present=data["present"],
            rate=round(data["present"] / data["total"] * 100) if data["total"] else 0,
        )
        for name, data in departments.items()
    ]


def time_distribution(records: Sequence[AttendanceRecordOut]) -> List[HourStat]:
    hours = Counter(to_local(r.timestamp).hour for r in records)
    return [HourStat(hour=f"{hour}:00", count=count) for hour, count in sorted(hours.items())]


def average_confidence(records: Sequence[AttendanceRecordOut]) -> float:
    if not records:
        return 0.0
    return float(np.mean([r.confidence for r in records]))
