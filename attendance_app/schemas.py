from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import List, Literal, Optional

# --- Student Schemas ---

class StudentCreate(BaseModel):
    """Schema for registering a new student (input validation)."""
    name: str = Field(..., min_length=1, examples=["Jane Doe"])
    email: str = Field(..., min_length=3, examples=["jane.doe@example.com"])
    student_id: Optional[str] = Field(None, examples=["2400102415"], description="External student number.")
    department: Optional[str] = Field(None, examples=["Computer Science"])
    year: Optional[str] = Field(None, examples=["2"])
    # Reference photo as a base64 data URL; registration requires one.
    photo: str = Field(..., min_length=1)


class StudentOut(BaseModel):
    """Full student data, as fetched from storage."""
    id: str
    name: str
    email: str
    student_id: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None
    photo: Optional[str] = None
    is_active: bool = True
    created_at: datetime  # Registration timestamp

    model_config = ConfigDict(from_attributes=True)


class StudentSummary(BaseModel):
    """Student listing without the (large) reference photo."""
    id: str
    name: str
    email: str
    student_id: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None
    has_photo: bool
    is_active: bool
    created_at: datetime

    @classmethod
    def from_student(cls, student: StudentOut) -> "StudentSummary":
        return cls(
            **student.model_dump(exclude={"photo"}),
            has_photo=bool(student.photo),
        )

# --- Attendance Schemas ---

class AttendanceRecordIn(BaseModel):
    """Fields of a proposed attendance event, before it is persisted."""
    student_id: str
    student_name: str
    timestamp: datetime
    confidence: float = Field(..., ge=0.0, le=1.0, description="Simulated recognition confidence.")
    photo: Optional[str] = None  # Captured frame
    location: Optional[str] = None
    device_info: Optional[str] = None


class AttendanceRecordOut(AttendanceRecordIn):
    """A persisted (immutable) attendance record."""
    id: str

    model_config = ConfigDict(from_attributes=True)

# --- Settings Schemas ---

class _CamelModel(BaseModel):
    # Settings files use the camelCase keys of the browser client.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WorkingHours(_CamelModel):
    start: str = Field("09:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    end: str = Field("17:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")


class NotificationChannels(_CamelModel):
    email: bool = False
    browser: bool = True


class BackupConfig(_CamelModel):
    auto_backup: bool = True
    frequency: Literal["daily", "weekly", "monthly"] = "daily"


class AttendanceSettings(_CamelModel):
    auto_marking_enabled: bool = True
    confidence_threshold: float = Field(0.75, ge=0.0, le=1.0)
    allow_multiple_marking: bool = False
    working_hours: WorkingHours = Field(default_factory=WorkingHours)
    notifications: NotificationChannels = Field(default_factory=NotificationChannels)
    backup: BackupConfig = Field(default_factory=BackupConfig)

    @field_validator("confidence_threshold")
    @classmethod
    def two_decimal_threshold(cls, v: float) -> float:
        # Matched confidences are reported with two decimals.
        if abs(v - round(v, 2)) > 1e-9:
            raise ValueError("confidence threshold must have at most two decimals")
        return round(v, 2)

# --- Notification Schemas ---

NotificationKind = Literal["success", "warning", "error", "info"]


class NotificationMessage(BaseModel):
    id: str
    type: NotificationKind
    title: str
    message: str
    timestamp: datetime
    read: bool = False

# --- Schedule Schemas ---

class ScheduleEventIn(BaseModel):
    title: str = Field(..., min_length=1, examples=["Morning Assembly"])
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", examples=["2025-11-08"])
    start_time: str = Field("09:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    end_time: str = Field("10:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    students: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    description: Optional[str] = None


class ScheduleEventOut(ScheduleEventIn):
    id: str


class EventAttendance(BaseModel):
    present: int
    total: int

# --- Recognition Schemas ---

RecognitionStatus = Literal[
    "accepted",   # persisted, inside working hours
    "flagged",    # persisted, outside working hours
    "rejected",   # already marked today
    "no_match",   # matcher returned nothing
    "busy",       # another attempt is in flight
    "inactive",   # no capture session
    "no_frame",   # session active but no frame uploaded yet
    "stale",      # session ended while the matcher was running
    "error",      # storage write failed
]


class RecognitionOutcome(BaseModel):
    status: RecognitionStatus
    student_id: Optional[str] = None
    name: Optional[str] = None
    confidence: Optional[float] = None
    record: Optional[AttendanceRecordOut] = None
    message: Optional[str] = None


class CaptureStatus(BaseModel):
    active: bool
    has_frame: bool
    processing: bool
    auto_mode: bool
    last_recognition: Optional[str] = None

# --- Stats Schemas ---

class DayStat(BaseModel):
    day: str
    present: int
    total: int


class MonthStat(BaseModel):
    month: str
    rate: int


class AttendanceStats(BaseModel):
    total_students: int
    present_today: int
    attendance_rate: float
    recent_records: List[AttendanceRecordOut]
    weekly_stats: List[DayStat]
    monthly_trend: List[MonthStat]


class DepartmentStat(BaseModel):
    name: str
    total: int
    present: int
    rate: int


class HourStat(BaseModel):
    hour: str
    count: int

# --- Utility Schemas ---

class Message(BaseModel):
    """Generic message schema for sending simple status responses."""
    message: str
