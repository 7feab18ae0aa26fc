from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from attendance_app.services.recognition import RecognitionService
from attendance_app.services.schedule import ScheduleBook

# Define security scheme
security = HTTPBearer()


def get_service(request: Request) -> RecognitionService:
    return request.app.state.service


def get_schedule(request: Request) -> ScheduleBook:
    return request.app.state.schedule


def require_data(service: RecognitionService = Depends(get_service)) -> RecognitionService:
    """Fails with 503 while the last fetch from storage is in error."""
    if service.last_error:
        raise HTTPException(status_code=503, detail=service.last_error)
    return service


def verify_admin(request: Request, token: HTTPAuthorizationCredentials = Depends(security)) -> bool:
    """Dependency to check if the provided token matches the ADMIN_SECRET."""
    secret = request.app.state.admin_secret
    if not secret:
        raise HTTPException(status_code=503, detail="Admin access not configured")
    if token.credentials != secret:
        raise HTTPException(status_code=403, detail="Forbidden: Invalid Admin Key")
    return True
