import os
import tempfile
from datetime import datetime, timedelta
from io import BytesIO

# Keep test runs from writing logs/settings into the working tree.
_TMP = tempfile.mkdtemp(prefix="attendance-tests-")
os.environ.setdefault("LOG_DIR", os.path.join(_TMP, "logs"))
os.environ.setdefault("DATA_DIR", os.path.join(_TMP, "data"))
os.environ["USE_SUPABASE"] = "false"

import pytest
from PIL import Image
from sqlalchemy.pool import StaticPool

from attendance_app.database import SqlStorage, make_engine
from attendance_app.models import Student
from attendance_app.schemas import AttendanceRecordOut, StudentOut

# A Monday, inside the default 09:00-17:00 window.
NOW = datetime(2025, 11, 10, 10, 30)


class ScriptedRandom:
    """Random source that replays fixed draws, in order."""

    def __init__(self, *values):
        self.values = list(values)
        self.calls = 0

    def random(self):
        if self.calls >= len(self.values):
            raise AssertionError("random source exhausted")
        value = self.values[self.calls]
        self.calls += 1
        return value


class FixedRandom:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    def random(self):
        self.calls += 1
        return self.value


class NoRandom:
    def random(self):
        raise AssertionError("random source should not be used")


async def no_sleep(seconds):
    return None


def make_student(name="Jane Doe", photo="data:image/png;base64,AAAA", created_at=None, **kwargs):
    fields = dict(
        id=kwargs.pop("id", name.lower().replace(" ", "-")),
        name=name,
        email=kwargs.pop("email", f"{name.lower().replace(' ', '.')}@example.com"),
        photo=photo,
        is_active=kwargs.pop("is_active", True),
        created_at=created_at or NOW - timedelta(days=60),
    )
    fields.update(kwargs)
    return StudentOut(**fields)


def make_record(student_id, timestamp, confidence=0.9, **kwargs):
    return AttendanceRecordOut(
        id=kwargs.pop("id", f"{student_id}-{timestamp.isoformat()}"),
        student_id=student_id,
        student_name=kwargs.pop("student_name", student_id),
        timestamp=timestamp,
        confidence=confidence,
        **kwargs,
    )


def seed_student(storage: SqlStorage, name, created_at, email=None, photo="data:image/png;base64,AAAA"):
    """Inserts a student directly, with a chosen registration time."""
    with storage.SessionLocal() as session:
        student = Student(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.com",
            photo=photo,
            is_active=True,
            created_at=created_at,
        )
        session.add(student)
        session.commit()
        return student.id


@pytest.fixture
def storage():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    store = SqlStorage(engine)
    store.create_tables()
    yield store
    engine.dispose()


@pytest.fixture
def png_bytes():
    buf = BytesIO()
    Image.new("RGB", (8, 8), color=(200, 120, 80)).save(buf, format="PNG")
    return buf.getvalue()
