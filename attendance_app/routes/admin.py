from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from attendance_app.dependencies import require_data, verify_admin
from attendance_app.schemas import AttendanceStats, DepartmentStat, HourStat
from attendance_app.services import stats
from attendance_app.services.recognition import RecognitionService
from attendance_app.services.stats import Period
from attendance_app.utils import reports

# All routes defined below start with /admin and need the admin bearer token.
router = APIRouter(
    prefix="/admin",
    tags=["Admin & Reports"],
    dependencies=[Depends(verify_admin)],
)


def _csv(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

# --- STATISTICS ---

@router.get("/stats", response_model=AttendanceStats)
def get_stats(service: RecognitionService = Depends(require_data)):
    """Dashboard numbers: today, this week, last six months."""
    return stats.compute_stats(service.students, service.records, service.clock())


@router.get("/stats/departments", response_model=List[DepartmentStat])
def get_department_stats(period: Period = "month", service: RecognitionService = Depends(require_data)):
    records = stats.filter_records(service.records, period, service.clock())
    return stats.department_stats(service.students, records)


@router.get("/stats/time-distribution", response_model=List[HourStat])
def get_time_distribution(
    period: Period = "month",
    student_id: Optional[str] = None,
    service: RecognitionService = Depends(require_data),
):
    records = stats.filter_records(service.records, period, service.clock(), student_id)
    return stats.time_distribution(records)

# --- CSV EXPORTS ---

@router.get("/reports/attendance.csv")
def export_attendance(service: RecognitionService = Depends(require_data)):
    return _csv(reports.attendance_csv(service.records), reports.report_filename("attendance", service.clock()))


@router.get("/reports/detailed.csv")
def export_detailed(service: RecognitionService = Depends(require_data)):
    content = reports.detailed_csv(service.records, service.students)
    return _csv(content, reports.report_filename("detailed_attendance_report", service.clock()))


@router.get("/reports/summary.csv")
def export_summary(
    period: Period = "month",
    student_id: Optional[str] = None,
    service: RecognitionService = Depends(require_data),
):
    now = service.clock()
    records = stats.filter_records(service.records, period, now, student_id)
    content = reports.summary_csv(records, service.students, period, generated_at=now)
    return _csv(content, reports.report_filename(f"attendance_report_{period}", now))
