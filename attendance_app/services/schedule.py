import uuid
from datetime import date
from typing import Dict, List, Optional, Sequence

from attendance_app.schemas import AttendanceRecordOut, EventAttendance, ScheduleEventIn, ScheduleEventOut
from attendance_app.utils.time_utils import to_local


class EventNotFoundError(KeyError):
    pass


class ScheduleBook:
    """In-memory class/event schedule. Events are kept in insertion order."""

    def __init__(self):
        self._events: Dict[str, ScheduleEventOut] = {}

    def list(self, on_date: Optional[str] = None) -> List[ScheduleEventOut]:
        events = list(self._events.values())
        if on_date is not None:
            events = [e for e in events if e.date == on_date]
        return events

    def get(self, event_id: str) -> ScheduleEventOut:
        try:
            return self._events[event_id]
        except KeyError:
            raise EventNotFoundError(event_id) from None

    def add(self, fields: ScheduleEventIn) -> ScheduleEventOut:
        event = ScheduleEventOut(id=uuid.uuid4().hex, **fields.model_dump())
        self._events[event.id] = event
        return event

    def update(self, event_id: str, fields: ScheduleEventIn) -> ScheduleEventOut:
        self.get(event_id)
        event = ScheduleEventOut(id=event_id, **fields.model_dump())
        self._events[event_id] = event
        return event

    def delete(self, event_id: str) -> None:
        self.get(event_id)
        del self._events[event_id]

    def attendance_for(self, event_id: str, records: Sequence[AttendanceRecordOut]) -> EventAttendance:
        """Distinct rostered students with a record on the event's date."""
        event = self.get(event_id)
        event_day = date.fromisoformat(event.date)
        roster = set(event.students)
        present = {
            r.student_id for r in records
            if r.student_id in roster and to_local(r.timestamp).date() == event_day
        }
        return EventAttendance(present=len(present), total=len(event.students))
