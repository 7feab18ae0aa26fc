from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile

from attendance_app.dependencies import get_service, require_data
from attendance_app.schemas import AttendanceRecordOut, CaptureStatus, RecognitionOutcome
from attendance_app.services.recognition import RecognitionService
from attendance_app.utils.image_utils import InvalidImageError, to_data_url
from attendance_app.utils.time_utils import same_local_day

router = APIRouter(tags=["Attendance"])


def _device_info(request: Request) -> str:
    agent = request.headers.get("user-agent", "")
    return agent.split(" ")[0] if agent else "unknown"


def _without_photos(records: List[AttendanceRecordOut], include_photos: bool) -> List[AttendanceRecordOut]:
    if include_photos:
        return records
    return [r.model_copy(update={"photo": None}) for r in records]

# --- CAPTURE SESSION ---

@router.post("/capture/start", response_model=CaptureStatus)
async def start_capture(service: RecognitionService = Depends(get_service)):
    await service.start_session()
    return service.status()


@router.post("/capture/stop", response_model=CaptureStatus)
async def stop_capture(service: RecognitionService = Depends(get_service)):
    await service.stop_session()
    return service.status()


@router.get("/capture/status", response_model=CaptureStatus)
def capture_status(service: RecognitionService = Depends(get_service)):
    return service.status()


@router.post("/capture/frame", response_model=CaptureStatus)
async def upload_frame(file: UploadFile = File(...), service: RecognitionService = Depends(get_service)):
    """Latest camera frame from the browser; recognition runs against it."""
    try:
        frame = to_data_url(await file.read())
    except InvalidImageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not service.capture.submit_frame(frame):
        raise HTTPException(status_code=409, detail="No active capture session")
    return service.status()


@router.post("/capture/recognize", response_model=RecognitionOutcome)
async def recognize(request: Request, service: RecognitionService = Depends(get_service)):
    """Manual trigger: one recognition attempt, unless one is already running."""
    return await service.trigger(device_info=_device_info(request))

# --- RECORDS ---

@router.get("/attendance", response_model=List[AttendanceRecordOut])
def list_attendance(
    limit: int = Query(500, ge=1),
    include_photos: bool = False,
    service: RecognitionService = Depends(require_data),
):
    return _without_photos(service.records[:limit], include_photos)


@router.get("/attendance/today", response_model=List[AttendanceRecordOut])
def today_attendance(include_photos: bool = False, service: RecognitionService = Depends(require_data)):
    now = service.clock()
    return _without_photos([r for r in service.records if same_local_day(r.timestamp, now)], include_photos)
