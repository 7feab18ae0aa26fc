from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from attendance_app import config
from attendance_app.database import create_storage
from attendance_app.dependencies import get_service
from attendance_app.routes.admin import router as admin_router
from attendance_app.routes.attendance import router as attendance_router
from attendance_app.routes.notifications import router as notifications_router
from attendance_app.routes.schedule import router as schedule_router
from attendance_app.routes.settings import router as settings_router
from attendance_app.routes.students import router as students_router
from attendance_app.services.recognition import RecognitionService
from attendance_app.services.schedule import ScheduleBook
from attendance_app.services.settings_store import SettingsStore
from attendance_app.utils.logger import logger


def create_app(service: Optional[RecognitionService] = None, admin_secret: str = config.ADMIN_SECRET) -> FastAPI:
    """Builds the API. Without a service, one is created from the environment at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Starting Smart Check-in API")
        if app.state.service is None:
            app.state.service = RecognitionService(
                storage=create_storage(),
                settings_store=SettingsStore(config.SETTINGS_PATH),
            )
        await app.state.service.refresh()
        yield
        await app.state.service.stop_session()
        logger.info("🛑 Shutting down")

    app = FastAPI(title="Smart Check-in Attendance", lifespan=lifespan)
    app.state.service = service
    app.state.schedule = ScheduleBook()
    app.state.admin_secret = admin_secret

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        return {"status": "online", "service": "Smart Check-in Attendance"}

    # Healthcheck endpoint; reports the storage connection error, if any.
    @app.get("/health")
    def health(service: RecognitionService = Depends(get_service)):
        return {
            "status": "ok" if not service.last_error else "degraded",
            "storage_error": service.last_error,
            "session_active": service.capture.active,
            "students": len(service.students),
            "records": len(service.records),
        }

    # User-triggered reload is the recovery path after a failed fetch.
    @app.post("/refresh")
    async def refresh(service: RecognitionService = Depends(get_service)):
        ok = await service.refresh()
        return {"status": "success" if ok else "error", "storage_error": service.last_error}

    app.include_router(students_router)
    app.include_router(attendance_router)
    app.include_router(settings_router)
    app.include_router(notifications_router)
    app.include_router(schedule_router)
    app.include_router(admin_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("attendance_app.main:app", host="0.0.0.0", port=config.PORT)
