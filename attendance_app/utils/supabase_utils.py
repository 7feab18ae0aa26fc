from typing import Any, Dict, List

from starlette.concurrency import run_in_threadpool
from supabase import Client, create_client

from attendance_app.database import AttendanceStorage, DuplicateEmailError, StorageError, StudentNotFoundError
from attendance_app.schemas import AttendanceRecordIn, AttendanceRecordOut, StudentCreate, StudentOut
from attendance_app.utils.logger import get_logger

log = get_logger(__name__)

STUDENTS_TABLE = "students"
RECORDS_TABLE = "attendance_records"

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


def _normalize_rows(resp) -> List[dict]:
    """Ensures we get a list of row dicts regardless of SDK version."""
    if resp is None:
        return []
    data = getattr(resp, "data", resp)
    if isinstance(data, dict):
        for key in ("data", "rows"):
            if key in data and isinstance(data[key], list):
                return data[key]
        if "error" in data:
            return []
        return [data]
    if isinstance(data, list):
        return data
    return []


def _record_payload(fields: AttendanceRecordIn) -> Dict[str, Any]:
    payload = fields.model_dump()
    # Naive timestamps are local time; timestamptz needs the offset.
    payload["timestamp"] = fields.timestamp.astimezone().isoformat()
    return payload


class SupabaseStorage(AttendanceStorage):
    """Storage backed by the Supabase `students` / `attendance_records` tables.

    The supabase-py client is synchronous, so each call is pushed to the
    threadpool. The `ON DELETE CASCADE` foreign key on `attendance_records`
    takes care of removing a deleted student's records.
    """

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_credentials(cls, url: str, key: str) -> "SupabaseStorage":
        try:
            return cls(create_client(url, key))
        except Exception as e:
            raise StorageError(f"Failed to initialize Supabase client: {e}") from e

    async def _execute(self, query, action: str) -> List[dict]:
        try:
            resp = await run_in_threadpool(query.execute)
        except Exception as e:
            if getattr(e, "code", None) == UNIQUE_VIOLATION:
                raise DuplicateEmailError(str(e)) from e
            log.error(f"Supabase {action} failed: {e}")
            raise StorageError(f"Supabase {action} failed: {e}") from e
        return _normalize_rows(resp)

    async def list_students(self) -> List[StudentOut]:
        query = self.client.table(STUDENTS_TABLE).select("*").order("created_at", desc=True)
        rows = await self._execute(query, "list students")
        return [StudentOut.model_validate(r) for r in rows]

    async def create_student(self, fields: StudentCreate) -> StudentOut:
        payload = {**fields.model_dump(), "is_active": True}
        query = self.client.table(STUDENTS_TABLE).insert(payload)
        rows = await self._execute(query, "create student")
        if not rows:
            raise StorageError("Supabase returned no row for the new student")
        return StudentOut.model_validate(rows[0])

    async def delete_student(self, student_id: str) -> None:
        query = self.client.table(STUDENTS_TABLE).delete().eq("id", student_id)
        rows = await self._execute(query, "delete student")
        if not rows:
            raise StudentNotFoundError(student_id)

    async def set_student_active(self, student_id: str, active: bool) -> None:
        query = self.client.table(STUDENTS_TABLE).update({"is_active": active}).eq("id", student_id)
        rows = await self._execute(query, "update student")
        if not rows:
            raise StudentNotFoundError(student_id)

    async def list_attendance_records(self) -> List[AttendanceRecordOut]:
        query = self.client.table(RECORDS_TABLE).select("*").order("timestamp", desc=True)
        rows = await self._execute(query, "list attendance records")
        return [AttendanceRecordOut.model_validate(r) for r in rows]

    async def create_attendance_record(self, fields: AttendanceRecordIn) -> AttendanceRecordOut:
        query = self.client.table(RECORDS_TABLE).insert(_record_payload(fields))
        rows = await self._execute(query, "create attendance record")
        if not rows:
            raise StorageError("Supabase returned no row for the new attendance record")
        return AttendanceRecordOut.model_validate(rows[0])
