from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from attendance_app.dependencies import get_service
from attendance_app.schemas import AttendanceSettings
from attendance_app.services.recognition import RecognitionService
from attendance_app.services.settings_store import InvalidSettingsError

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=AttendanceSettings)
def get_settings(service: RecognitionService = Depends(get_service)):
    return service.settings_store.current


@router.put("", response_model=AttendanceSettings)
def update_settings(settings: AttendanceSettings, service: RecognitionService = Depends(get_service)):
    return service.settings_store.save(settings)


@router.get("/export")
def export_settings(service: RecognitionService = Depends(get_service)):
    return JSONResponse(
        content=service.settings_store.export(),
        headers={"Content-Disposition": 'attachment; filename="attendance-settings.json"'},
    )


@router.post("/import", response_model=AttendanceSettings)
async def import_settings(file: UploadFile = File(...), service: RecognitionService = Depends(get_service)):
    try:
        settings = service.settings_store.parse(await file.read())
    except InvalidSettingsError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return service.settings_store.save(settings)
