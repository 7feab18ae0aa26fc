"""
Storage collaborators for students and attendance records.

Both backends expose the same async interface (``AttendanceStorage``). The
SQLAlchemy backend runs its blocking session work in Starlette's threadpool,
the same way FastAPI runs sync endpoints.
"""
from abc import ABC, abstractmethod
from typing import Callable, List, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from attendance_app.models import AttendanceRecord, Base, Student
from attendance_app.schemas import AttendanceRecordIn, AttendanceRecordOut, StudentCreate, StudentOut
from attendance_app.utils.logger import get_logger

log = get_logger(__name__)

T = TypeVar("T")


# -----------------------------
# Errors
# -----------------------------
class StorageError(Exception):
    """Transport or validation failure reported by a storage backend."""


class DuplicateEmailError(StorageError):
    """A student with this email is already registered."""


class StudentNotFoundError(StorageError):
    pass


# -----------------------------
# Interface
# -----------------------------
class AttendanceStorage(ABC):

    @abstractmethod
    async def list_students(self) -> List[StudentOut]: ...

    @abstractmethod
    async def create_student(self, fields: StudentCreate) -> StudentOut: ...

    @abstractmethod
    async def delete_student(self, student_id: str) -> None:
        """Removes the student and, by cascade, all of their attendance records."""

    @abstractmethod
    async def set_student_active(self, student_id: str, active: bool) -> None: ...

    @abstractmethod
    async def list_attendance_records(self) -> List[AttendanceRecordOut]: ...

    @abstractmethod
    async def create_attendance_record(self, fields: AttendanceRecordIn) -> AttendanceRecordOut: ...


# -----------------------------
# SQLAlchemy backend
# -----------------------------
def make_engine(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(url, **kwargs)

    if engine.dialect.name == "sqlite":
        # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on.
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


class SqlStorage(AttendanceStorage):

    def __init__(self, engine: Engine):
        self.engine = engine
        self.SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "SqlStorage":
        storage = cls(make_engine(url, **kwargs))
        storage.create_tables()
        return storage

    def create_tables(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    async def _run(self, work: Callable[[Session], T]) -> T:
        def _in_session() -> T:
            with self.SessionLocal() as session:
                try:
                    return work(session)
                except SQLAlchemyError:
                    session.rollback()
                    raise
        try:
            return await run_in_threadpool(_in_session)
        except IntegrityError as e:
            raise StorageError(f"Constraint violated: {e.orig}") from e
        except SQLAlchemyError as e:
            log.error(f"Database error: {e}")
            raise StorageError(str(e)) from e

    async def list_students(self) -> List[StudentOut]:
        def work(session: Session):
            rows = session.query(Student).order_by(Student.created_at.desc()).all()
            return [StudentOut.model_validate(r) for r in rows]
        return await self._run(work)

    async def create_student(self, fields: StudentCreate) -> StudentOut:
        def work(session: Session):
            student = Student(**fields.model_dump(), is_active=True)
            session.add(student)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise DuplicateEmailError(f"Email already registered: {fields.email}") from e
            return StudentOut.model_validate(student)
        return await self._run(work)

    async def delete_student(self, student_id: str) -> None:
        def work(session: Session):
            student = session.get(Student, student_id)
            if student is None:
                raise StudentNotFoundError(student_id)
            session.delete(student)
            session.commit()
        await self._run(work)

    async def set_student_active(self, student_id: str, active: bool) -> None:
        def work(session: Session):
            student = session.get(Student, student_id)
            if student is None:
                raise StudentNotFoundError(student_id)
            student.is_active = active
            session.commit()
        await self._run(work)

    async def list_attendance_records(self) -> List[AttendanceRecordOut]:
        def work(session: Session):
            rows = session.query(AttendanceRecord).order_by(AttendanceRecord.timestamp.desc()).all()
            return [AttendanceRecordOut.model_validate(r) for r in rows]
        return await self._run(work)

    async def create_attendance_record(self, fields: AttendanceRecordIn) -> AttendanceRecordOut:
        def work(session: Session):
            record = AttendanceRecord(**fields.model_dump())
            session.add(record)
            session.commit()
            return AttendanceRecordOut.model_validate(record)
        return await self._run(work)


# -----------------------------
# Backend selection
# -----------------------------
def create_storage() -> AttendanceStorage:
    """Builds the backend chosen by USE_SUPABASE / DATABASE_URL."""
    from attendance_app import config

    if config.USE_SUPABASE:
        if not config.SUPABASE_URL or not config.SUPABASE_KEY:
            raise RuntimeError("Supabase credentials not found in environment variables.")
        from attendance_app.utils.supabase_utils import SupabaseStorage
        log.info("Using Supabase storage")
        return SupabaseStorage.from_credentials(config.SUPABASE_URL, config.SUPABASE_KEY)

    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    log.info(f"Using SQL storage at {config.DATABASE_URL}")
    return SqlStorage.from_url(config.DATABASE_URL)
