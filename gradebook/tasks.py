"""
Celery tasks for gradebook app.
Runs report generation asynchronously for callers that fan out report
requests, e.g. one task per class when preparing end-of-term reports.

Tasks take the raw record payload (see gradebook.forms.load_records) so a
worker never reads storage itself; the result is the generated report as
plain data, ready for the persistence collaborator.
"""
import logging

from celery import shared_task

from . import config
from .exceptions import EntityNotFound, ReportValidationError
from .forms import load_records
from .services import generate_class_report, generate_school_report, generate_student_report


logger = logging.getLogger(__name__)


def _failure(error):
    message = error.messages[0] if isinstance(error, ReportValidationError) else str(error)
    return {'success': False, 'error': message}


@shared_task(
    soft_time_limit=config.TASK_SOFT_TIME_LIMIT,
    time_limit=config.TASK_TIME_LIMIT,
)
def generate_student_report_task(payload, student_id, term='', report_type=None):
    """
    Generate one student's report from a raw payload.

    Args:
        payload: raw collections ('marks', 'attendance', 'exams', 'students',
            'classes')
        student_id: the student to report on
        term: term label or 'Annual'
        report_type: report type label

    Returns:
        dict: the generated report, or {'success': False, 'error': ...}
    """
    try:
        records = load_records(payload)
        report = generate_student_report(
            student_id,
            records.students,
            records.marks,
            records.attendance,
            exams=records.exams,
            term=term,
            report_type=report_type,
            classes=records.classes,
        )
    except (EntityNotFound, ReportValidationError) as e:
        logger.error(f"Student report for {student_id} failed: {e}")
        return _failure(e)

    return {'success': True, 'report': report.as_dict()}


@shared_task(
    soft_time_limit=config.TASK_SOFT_TIME_LIMIT,
    time_limit=config.TASK_TIME_LIMIT,
)
def generate_class_report_task(payload, class_id, term='', report_type=None):
    """Generate a class report from a raw payload."""
    try:
        records = load_records(payload)
        report = generate_class_report(
            class_id,
            records.classes,
            records.students,
            records.marks,
            records.attendance,
            exams=records.exams,
            term=term,
            report_type=report_type,
        )
    except (EntityNotFound, ReportValidationError) as e:
        logger.error(f"Class report for {class_id} failed: {e}")
        return _failure(e)

    return {'success': True, 'report': report.as_dict()}


@shared_task(
    soft_time_limit=config.TASK_SOFT_TIME_LIMIT,
    time_limit=config.TASK_TIME_LIMIT,
)
def generate_school_report_task(payload, term='', report_type=None, teacher_count=0):
    """Generate the school-wide rollup from a raw payload."""
    try:
        records = load_records(payload)
        report = generate_school_report(
            records.classes,
            records.students,
            records.marks,
            records.attendance,
            exams=records.exams,
            term=term,
            report_type=report_type,
            teacher_count=teacher_count,
        )
    except ReportValidationError as e:
        logger.error(f"School report failed: {e}")
        return _failure(e)

    return {'success': True, 'report': report.as_dict()}
