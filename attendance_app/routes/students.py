from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from attendance_app.database import DuplicateEmailError, StorageError, StudentNotFoundError
from attendance_app.dependencies import get_service, require_data
from attendance_app.schemas import Message, StudentCreate, StudentOut, StudentSummary
from attendance_app.services.recognition import RecognitionService
from attendance_app.utils.image_utils import InvalidImageError, to_data_url

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("", response_model=List[StudentSummary])
def list_students(service: RecognitionService = Depends(require_data)):
    return [StudentSummary.from_student(s) for s in service.students]


@router.get("/{student_id}", response_model=StudentOut)
def get_student(student_id: str, service: RecognitionService = Depends(require_data)):
    student = service.find_student(student_id)
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@router.post("", response_model=StudentSummary, status_code=201)
async def register_student(
    name: str = Form(...),
    email: str = Form(...),
    student_id: Optional[str] = Form(None),
    department: Optional[str] = Form(None),
    year: Optional[str] = Form(None),
    photo: UploadFile = File(...),
    service: RecognitionService = Depends(get_service),
):
    """Registers a student. The reference photo is mandatory."""
    try:
        photo_url = to_data_url(await photo.read())
    except InvalidImageError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        fields = StudentCreate(
            name=name.strip(),
            email=email.strip().lower(),
            student_id=student_id or None,
            department=department or None,
            year=year or None,
            photo=photo_url,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    try:
        student = await service.register_student(fields)
    except DuplicateEmailError:
        raise HTTPException(status_code=409, detail="A student with this email is already registered")
    except StorageError:
        raise HTTPException(status_code=502, detail="Failed to add student")
    return StudentSummary.from_student(student)


@router.delete("/{student_id}", response_model=Message)
async def remove_student(student_id: str, service: RecognitionService = Depends(get_service)):
    try:
        await service.remove_student(student_id)
    except StudentNotFoundError:
        raise HTTPException(status_code=404, detail="Student not found")
    except StorageError:
        raise HTTPException(status_code=502, detail="Failed to remove student")
    return Message(message="Student removed")


@router.post("/{student_id}/toggle", response_model=StudentSummary)
async def toggle_student(student_id: str, service: RecognitionService = Depends(get_service)):
    try:
        student = await service.toggle_student_status(student_id)
    except StudentNotFoundError:
        raise HTTPException(status_code=404, detail="Student not found")
    except StorageError:
        raise HTTPException(status_code=502, detail="Failed to update student status")
    return StudentSummary.from_student(student)
