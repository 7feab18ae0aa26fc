from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from attendance_app.dependencies import get_schedule, require_data
from attendance_app.schemas import EventAttendance, Message, ScheduleEventIn, ScheduleEventOut
from attendance_app.services.recognition import RecognitionService
from attendance_app.services.schedule import EventNotFoundError, ScheduleBook

router = APIRouter(prefix="/schedule", tags=["Schedule"])


@router.get("", response_model=List[ScheduleEventOut])
def list_events(date: Optional[str] = None, schedule: ScheduleBook = Depends(get_schedule)):
    return schedule.list(on_date=date)


@router.post("", response_model=ScheduleEventOut, status_code=201)
def add_event(fields: ScheduleEventIn, schedule: ScheduleBook = Depends(get_schedule)):
    return schedule.add(fields)


@router.put("/{event_id}", response_model=ScheduleEventOut)
def update_event(event_id: str, fields: ScheduleEventIn, schedule: ScheduleBook = Depends(get_schedule)):
    try:
        return schedule.update(event_id, fields)
    except EventNotFoundError:
        raise HTTPException(status_code=404, detail="Event not found")


@router.delete("/{event_id}", response_model=Message)
def delete_event(event_id: str, schedule: ScheduleBook = Depends(get_schedule)):
    try:
        schedule.delete(event_id)
    except EventNotFoundError:
        raise HTTPException(status_code=404, detail="Event not found")
    return Message(message="Event deleted")


@router.get("/{event_id}/attendance", response_model=EventAttendance)
def event_attendance(
    event_id: str,
    schedule: ScheduleBook = Depends(get_schedule),
    service: RecognitionService = Depends(require_data),
):
    try:
        return schedule.attendance_for(event_id, service.records)
    except EventNotFoundError:
        raise HTTPException(status_code=404, detail="Event not found")
