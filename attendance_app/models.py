import uuid
from sqlalchemy import Boolean, CheckConstraint, Column, String, DateTime, Float, ForeignKey, Text
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class Student(Base):
    """Student information."""
    __tablename__ = "students"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    student_id = Column(String, nullable=True)
    department = Column(String, nullable=True)
    year = Column(String, nullable=True)
    photo = Column(Text, nullable=True)  # base64 data URL
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.now)

    records = relationship(
        "AttendanceRecord",
        back_populates="student",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Student(id={self.id}, name={self.name})>"


class AttendanceRecord(Base):
    """Attendance records. Written once, removed only with their student."""
    __tablename__ = "attendance_records"
    __table_args__ = (
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_confidence_range"),
    )

    id = Column(String, primary_key=True, default=_new_id)
    student_id = Column(String, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    student_name = Column(String, nullable=False)
    timestamp = Column(DateTime, default=datetime.now, index=True)
    confidence = Column(Float, nullable=False)  # 0.0 to 1.0
    photo = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    device_info = Column(String, nullable=True)

    student = relationship("Student", back_populates="records")

    def __repr__(self):
        return f"<AttendanceRecord(student_id={self.student_id}, confidence={self.confidence})>"
