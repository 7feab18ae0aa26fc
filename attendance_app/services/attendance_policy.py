from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from attendance_app.schemas import AttendanceRecordIn, AttendanceSettings
from attendance_app.utils.time_utils import minutes_since_midnight, parse_hhmm, same_local_day


class Classification(str, Enum):
    NORMAL = "normal"
    OUTSIDE_WORKING_HOURS = "outside_working_hours"


class RejectionReason(str, Enum):
    ALREADY_MARKED_TODAY = "already_marked_today"


@dataclass(frozen=True)
class Decision:
    classification: Optional[Classification] = None
    reason: Optional[RejectionReason] = None

    @property
    def accepted(self) -> bool:
        return self.reason is None

    @classmethod
    def accept(cls, classification: Classification) -> "Decision":
        return cls(classification=classification)

    @classmethod
    def reject(cls, reason: RejectionReason) -> "Decision":
        return cls(reason=reason)


def has_marked_on_day(proposed: AttendanceRecordIn, existing: Iterable) -> bool:
    return any(
        r.student_id == proposed.student_id and same_local_day(r.timestamp, proposed.timestamp)
        for r in existing
    )


def within_working_hours(proposed: AttendanceRecordIn, settings: AttendanceSettings) -> bool:
    start = parse_hhmm(settings.working_hours.start)
    end = parse_hhmm(settings.working_hours.end)
    return start <= minutes_since_midnight(proposed.timestamp) <= end


def decide(proposed: AttendanceRecordIn, existing: Iterable, settings: AttendanceSettings) -> Decision:
    """
    Decides whether a proposed attendance event may be recorded.

    `existing` is whatever record snapshot the caller last fetched; the check
    is only as fresh as that snapshot.
    """
    if not settings.allow_multiple_marking and has_marked_on_day(proposed, existing):
        return Decision.reject(RejectionReason.ALREADY_MARKED_TODAY)

    if within_working_hours(proposed, settings):
        return Decision.accept(Classification.NORMAL)
    return Decision.accept(Classification.OUTSIDE_WORKING_HOURS)
