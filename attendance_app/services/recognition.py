"""
Recognition service: ties the capture session, the simulated matcher, the
attendance policy, storage and notifications together.

One instance serves the whole process. It keeps the last fetched snapshot of
students and attendance records and refetches a collection in full after
every successful write to it.
"""
import asyncio
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

import numpy as np

from attendance_app import config
from attendance_app.database import AttendanceStorage, StorageError, StudentNotFoundError
from attendance_app.face_engine.simulated_engine import MatchResult, RandomSource, match
from attendance_app.schemas import (
    AttendanceRecordIn,
    AttendanceRecordOut,
    CaptureStatus,
    RecognitionOutcome,
    StudentCreate,
    StudentOut,
)
from attendance_app.services.attendance_policy import Classification, decide
from attendance_app.services.capture import CaptureSession
from attendance_app.services.notifications import NotificationCenter
from attendance_app.services.settings_store import SettingsStore
from attendance_app.utils.logger import get_logger

log = get_logger(__name__)


class RecognitionService:

    def __init__(
        self,
        storage: AttendanceStorage,
        settings_store: Optional[SettingsStore] = None,
        notifications: Optional[NotificationCenter] = None,
        capture: Optional[CaptureSession] = None,
        rng: Optional[RandomSource] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.now,
        auto_interval: float = config.AUTO_TRIGGER_INTERVAL,
        auto_probability: float = config.AUTO_TRIGGER_PROBABILITY,
        location: Optional[str] = config.DEFAULT_LOCATION,
    ):
        self.storage = storage
        self.settings_store = settings_store or SettingsStore()
        self.notifications = notifications or NotificationCenter()
        self.capture = capture or CaptureSession()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.sleep = sleep  # matcher processing delay
        self.clock = clock
        self.auto_interval = auto_interval
        self.auto_probability = auto_probability
        self.location = location

        self.students: List[StudentOut] = []
        self.records: List[AttendanceRecordOut] = []
        self.last_error: Optional[str] = None
        self.last_recognition: Optional[str] = None

        self._in_progress = False
        self._auto_task: Optional[asyncio.Task] = None

    # -----------------------------
    # Snapshots
    # -----------------------------
    @property
    def processing(self) -> bool:
        return self._in_progress

    async def refresh_students(self) -> bool:
        try:
            self.students = await self.storage.list_students()
        except StorageError as e:
            self.last_error = f"Failed to fetch students: {e}"
            log.error(self.last_error)
            return False
        return True

    async def refresh_records(self) -> bool:
        try:
            self.records = await self.storage.list_attendance_records()
        except StorageError as e:
            self.last_error = f"Failed to fetch records: {e}"
            log.error(self.last_error)
            return False
        return True

    async def refresh(self) -> bool:
        """Refetches both collections; clears the connection error on success."""
        students_ok, records_ok = await asyncio.gather(self.refresh_students(), self.refresh_records())
        if students_ok and records_ok:
            self.last_error = None
            return True
        return False

    def find_student(self, student_id: str) -> Optional[StudentOut]:
        return next((s for s in self.students if s.id == student_id), None)

    def candidates(self) -> List[StudentOut]:
        """Active students with a reference photo."""
        return [s for s in self.students if s.is_active and s.photo]

    # -----------------------------
    # Student management
    # -----------------------------
    async def register_student(self, fields: StudentCreate) -> StudentOut:
        try:
            student = await self.storage.create_student(fields)
        except StorageError:
            self.notifications.notify("error", "Error", "Failed to add student. Please try again.")
            raise
        await self.refresh_students()
        self.notifications.notify("success", "Student Added", f"{fields.name} has been successfully registered.")
        return student

    async def remove_student(self, student_id: str) -> None:
        student = self.find_student(student_id)
        try:
            await self.storage.delete_student(student_id)
        except StudentNotFoundError:
            raise
        except StorageError:
            self.notifications.notify("error", "Error", "Failed to remove student. Please try again.")
            raise
        # Records went with the student (cascade), so both collections are stale.
        await self.refresh_students()
        await self.refresh_records()
        if student:
            self.notifications.notify("info", "Student Removed", f"{student.name} has been removed from the system.")

    async def toggle_student_status(self, student_id: str) -> StudentOut:
        student = self.find_student(student_id)
        if student is None:
            raise StudentNotFoundError(student_id)
        try:
            await self.storage.set_student_active(student_id, not student.is_active)
        except StudentNotFoundError:
            raise
        except StorageError:
            self.notifications.notify("error", "Error", "Failed to update student status. Please try again.")
            raise
        await self.refresh_students()
        return self.find_student(student_id) or student.model_copy(update={"is_active": not student.is_active})

    # -----------------------------
    # Capture session
    # -----------------------------
    async def start_session(self) -> None:
        generation = self.capture.start()
        if self._auto_task is None or self._auto_task.done():
            self._auto_task = asyncio.create_task(self._auto_loop(generation))

    async def stop_session(self) -> None:
        self.capture.stop()
        task, self._auto_task = self._auto_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def status(self) -> CaptureStatus:
        return CaptureStatus(
            active=self.capture.active,
            has_frame=self.capture.capture_frame() is not None,
            processing=self._in_progress,
            auto_mode=self.settings_store.current.auto_marking_enabled,
            last_recognition=self.last_recognition,
        )

    async def _auto_loop(self, generation: int) -> None:
        log.info(f"Auto-marking loop running for session {generation}")
        while self.capture.is_current(generation):
            await asyncio.sleep(self.auto_interval)
            if not self.capture.is_current(generation):
                break
            if not self.settings_store.current.auto_marking_enabled or self._in_progress:
                continue
            if float(self.rng.random()) >= self.auto_probability:
                continue
            try:
                outcome = await self.trigger()
                log.debug(f"Auto attempt finished: {outcome.status}")
            except Exception:
                log.exception("Auto-marking attempt failed")

    # -----------------------------
    # Recognition
    # -----------------------------
    async def trigger(self, device_info: Optional[str] = None) -> RecognitionOutcome:
        """
        Runs one recognition attempt against the latest frame.

        Only one attempt may be in flight; a second caller gets `busy`
        back instead of starting another matcher run.
        """
        if not self.capture.active:
            return RecognitionOutcome(status="inactive", message="No active capture session")
        if self._in_progress:
            return RecognitionOutcome(status="busy", message="Recognition already in progress")

        self._in_progress = True
        try:
            frame = self.capture.capture_frame()
            if frame is None:
                return RecognitionOutcome(status="no_frame", message="No frame captured yet")

            generation = self.capture.generation
            threshold = self.settings_store.current.confidence_threshold
            result = await match(
                frame, self.candidates(), threshold,
                rng=self.rng, sleep=self.sleep, now=self.clock(),
            )

            if not self.capture.is_current(generation):
                log.info("Discarding recognition result from an ended session")
                return RecognitionOutcome(status="stale", message="Capture session ended")
            if result is None:
                return RecognitionOutcome(status="no_match", message="No face recognized")

            return await self.mark_attendance(result, frame, device_info)
        finally:
            self._in_progress = False

    async def mark_attendance(
        self, result: MatchResult, frame: Optional[str], device_info: Optional[str] = None
    ) -> RecognitionOutcome:
        student = result.student
        proposed = AttendanceRecordIn(
            student_id=student.id,
            student_name=student.name,
            timestamp=self.clock(),
            confidence=result.confidence,
            photo=frame,
            location=self.location,
            device_info=device_info,
        )
        base = dict(student_id=student.id, name=student.name, confidence=result.confidence)

        decision = decide(proposed, self.records, self.settings_store.current)
        if not decision.accepted:
            log.info(f"Rejected {student.id}: {decision.reason.value}")
            self.notifications.notify(
                "warning", "Already Marked", f"{student.name} has already marked attendance today."
            )
            return RecognitionOutcome(status="rejected", message=decision.reason.value, **base)

        try:
            record = await self.storage.create_attendance_record(proposed)
        except StorageError as e:
            log.error(f"Failed to record attendance for {student.id}: {e}")
            self.notifications.notify("error", "Error", "Failed to mark attendance. Please try again.")
            return RecognitionOutcome(status="error", message="Failed to mark attendance", **base)

        await self.refresh_records()
        self.last_recognition = student.name

        if decision.classification is Classification.NORMAL:
            self.notifications.notify(
                "success", "Attendance Marked", f"{student.name} attendance recorded successfully."
            )
            status = "accepted"
        else:
            self.notifications.notify(
                "warning", "Outside Working Hours", f"Attendance marked for {student.name} outside working hours."
            )
            status = "flagged"
        log.info(f"Attendance {status} for {student.id} ({result.confidence:.2f})")
        return RecognitionOutcome(status=status, record=record, **base)
