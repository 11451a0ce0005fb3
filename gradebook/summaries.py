"""
Student summaries: subject results plus attendance, without rank.
"""
import logging

from core.choices import AttendanceStatus
from .grading import grade_for_percent, mean_percent, round_percent
from .records import AttendanceSummary, StudentReport

logger = logging.getLogger(__name__)

# Conflicting entries for one date resolve to the earliest status listed
DUPLICATE_DAY_PRECEDENCE = (AttendanceStatus.ABSENT, AttendanceStatus.LATE, AttendanceStatus.PRESENT)


def attendance_summary(present_days=0, absent_days=0, late_days=0, total_days=None):
    """
    Build an AttendanceSummary from day counts.

    total_days defaults to the sum of the three counts. Late days are not
    counted as present when computing the rate.
    """
    if total_days is None:
        total_days = present_days + absent_days + late_days
    rate = round_percent(present_days / total_days * 100) if total_days > 0 else 0
    return AttendanceSummary(
        total_days=total_days,
        present_days=present_days,
        absent_days=absent_days,
        late_days=late_days,
        attendance_rate=rate,
    )


def _precedence(status):
    return DUPLICATE_DAY_PRECEDENCE.index(status)


def tally_attendance(records):
    """
    Count one student's attendance records into an AttendanceSummary.

    Only one record per date is counted. When a date carries conflicting
    entries the status is chosen by DUPLICATE_DAY_PRECEDENCE, so the result
    does not depend on input order.
    """
    records = list(records)
    by_date = {}
    for record in records:
        current = by_date.get(record.date)
        if current is None or _precedence(record.status) < _precedence(current):
            by_date[record.date] = record.status
    if len(by_date) != len(records):
        logger.debug(f'Dropped {len(records) - len(by_date)} duplicate attendance records')

    statuses = list(by_date.values())
    return attendance_summary(
        present_days=statuses.count(AttendanceStatus.PRESENT),
        absent_days=statuses.count(AttendanceStatus.ABSENT),
        late_days=statuses.count(AttendanceStatus.LATE),
        total_days=len(statuses),
    )


def build_student_report(student, subjects, attendance, is_annual=False):
    """
    Combine subject results and attendance into a StudentReport.

    Args:
        student: StudentMeta for the student
        subjects: sequence of SubjectResult
        attendance: AttendanceSummary
        is_annual: whether the subjects are annual composites

    Returns:
        StudentReport without rank data
    """
    subjects = tuple(subjects)
    average = mean_percent(s.percentage for s in subjects)
    return StudentReport(
        student_id=student.student_id,
        student_name=student.name,
        class_name=student.class_name,
        admission_number=student.admission_number,
        subjects=subjects,
        average_percent=average,
        overall_grade=grade_for_percent(average),
        attendance=attendance,
        is_annual=is_annual,
    )
