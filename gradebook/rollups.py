"""
Class and school rollups built from student summaries.
"""
import logging

from core.choices import ReportType
from . import config
from .exceptions import ReportValidationError
from .grading import mean_percent
from .ranking import rank_students
from .records import ClassReport, ClassSummary, SchoolReport

logger = logging.getLogger(__name__)

# Report types that already show the full roster with ranks
FULL_ROSTER_REPORT_TYPES = (ReportType.TERM_REPORT, ReportType.FULL_ACADEMIC)


def shows_top_students(report_type):
    """Whether a class report of this type carries a separate top-N table."""
    return report_type not in FULL_ROSTER_REPORT_TYPES


def validate_school_report_type(report_type):
    """School aggregation is an annual or full-academic rollup; term reports are rejected."""
    if report_type == ReportType.TERM_REPORT:
        raise ReportValidationError(
            'Term Report is not available for school scope.',
            code='unsupported_report_type',
        )


def class_averages(reports):
    """
    Return (class_average_marks, class_attendance_rate) for student reports.

    Both are rounded means of the per-student values, 0 for an empty class.
    """
    reports = list(reports)
    return (
        mean_percent(r.average_percent for r in reports),
        mean_percent(r.attendance.attendance_rate for r in reports),
    )


def build_class_report(class_meta, reports, term='', report_type=ReportType.TERM_REPORT,
                       is_annual=False, include_top_students=None, top_limit=None):
    """
    Build a ClassReport from the full cohort's student reports.

    Args:
        class_meta: ClassMeta for the class
        reports: StudentReports for every active student, in roster order
        term: term label the report covers
        report_type: ReportType label
        is_annual: aggregation mode the reports were built in
        include_top_students: overrides the report type's top-N rule when set
        top_limit: size of the top-N table (defaults to TOP_STUDENTS_LIMIT)
    """
    reports = list(reports)
    ranked = rank_students(reports)
    average_marks, attendance_rate = class_averages(reports)

    if include_top_students is None:
        include_top_students = shows_top_students(report_type)
    if top_limit is None:
        top_limit = config.TOP_STUDENTS_LIMIT
    top_students = tuple(ranked[:top_limit]) if include_top_students else ()

    return ClassReport(
        class_id=class_meta.class_id,
        class_name=class_meta.name,
        teacher_name=class_meta.teacher_display,
        term=term,
        report_type=report_type,
        is_annual=is_annual,
        students=tuple(ranked),
        class_average_marks=average_marks,
        class_attendance_rate=attendance_rate,
        top_students=top_students,
    )


def summarize_class(class_meta, reports):
    """Per-class line of a school report, aggregated the same way as ClassReport."""
    reports = list(reports)
    average_marks, attendance_rate = class_averages(reports)
    return ClassSummary(
        class_id=class_meta.class_id,
        class_name=class_meta.name,
        teacher_name=class_meta.teacher_display,
        students=len(reports),
        average_marks=average_marks,
        attendance_rate=attendance_rate,
    )


def build_school_report(class_summaries, reports, term='', report_type=ReportType.SCHOOL_REPORT,
                        is_annual=False, total_teachers=0, top_limit=None):
    """
    Build a SchoolReport.

    Args:
        class_summaries: ClassSummary per class
        reports: StudentReports for every active student in the school,
            regardless of class, in roster order
        term: term label
        report_type: ReportType label; Term Report is rejected
        is_annual: aggregation mode
        total_teachers: teacher head count supplied by the caller
        top_limit: size of the school-wide top-N (defaults to TOP_STUDENTS_LIMIT)
    """
    validate_school_report_type(report_type)
    reports = list(reports)
    class_summaries = tuple(class_summaries)
    if top_limit is None:
        top_limit = config.TOP_STUDENTS_LIMIT

    ranked = rank_students(reports)
    logger.debug(f'School rollup over {len(reports)} students in {len(class_summaries)} classes')

    return SchoolReport(
        term=term,
        report_type=report_type,
        is_annual=is_annual,
        total_students=len(reports),
        total_classes=len(class_summaries),
        total_teachers=total_teachers,
        classes=class_summaries,
        top_students=tuple(ranked[:top_limit]),
    )
