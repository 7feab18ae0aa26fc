from typing import List

from fastapi import APIRouter, Depends, HTTPException

from attendance_app.dependencies import get_service
from attendance_app.schemas import Message, NotificationMessage
from attendance_app.services.recognition import RecognitionService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationMessage])
def list_notifications(service: RecognitionService = Depends(get_service)):
    return service.notifications.list()


@router.post("/{notification_id}/read", response_model=Message)
def mark_as_read(notification_id: str, service: RecognitionService = Depends(get_service)):
    if not service.notifications.mark_as_read(notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return Message(message="Marked as read")


@router.delete("", response_model=Message)
def clear_notifications(service: RecognitionService = Depends(get_service)):
    service.notifications.clear_all()
    return Message(message="Notifications cleared")
