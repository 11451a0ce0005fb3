"""
Report generation over already-fetched record collections.

Each function takes the raw collections for its scope, scopes cohorts from
the student/class metadata, runs the aggregation layers and returns a
GeneratedReport envelope. Nothing here performs I/O; fetching the inputs and
persisting the result belong to the caller.
"""
from collections import defaultdict
import logging

from django.utils import timezone

from core.choices import ReportScope, ReportType
from . import config
from .aggregation import aggregate_subjects
from .exceptions import EntityNotFound, ReportValidationError
from .records import ClassMeta, GeneratedReport
from .rollups import (
    build_class_report, build_school_report, shows_top_students, summarize_class,
    validate_school_report_type,
)
from .ranking import class_rank_for
from .selectors import TermResolver
from .summaries import build_student_report, tally_attendance

logger = logging.getLogger(__name__)

# Student report types that omit the subject table
SUBJECT_TABLE_HIDDEN = (ReportType.PROGRESS_REPORT, ReportType.ATTENDANCE_REPORT)


# ============ Mode Selectors ============

def is_annual_term(term):
    """The literal 'Annual' term selects the three-term composite mode."""
    return str(term or '').strip().lower() == str(config.ANNUAL_TERM_LABEL).lower()


def resolve_report_type(report_type, default):
    """Validate a report type label, falling back to the scope's default."""
    if not report_type:
        return str(default)
    if report_type not in ReportType.values:
        raise ReportValidationError(
            f'Unknown report type: {report_type}',
            code='invalid_report_type',
        )
    return str(report_type)


def build_title(name, report_type, term):
    title = f'{name} - {report_type}'
    if term:
        title += f' ({term})'
    return title


# ============ Cohort Scoping ============

def _index_by_student(records):
    grouped = defaultdict(list)
    for record in records:
        grouped[record.student_id].append(record)
    return grouped


def _lookup(items, attr, key, entity):
    for item in items:
        if getattr(item, attr) == key:
            return item
    raise EntityNotFound(entity, key)


def class_roster(students, class_meta):
    """Active students of a class, ordered by admission number then id."""
    roster = [s for s in students if s.is_active and class_meta.includes(s)]
    return sorted(roster, key=lambda s: s.roster_key)


def class_for_student(student, classes):
    """
    The ClassMeta a student belongs to, or None for a student without a class.

    A student whose class is missing from the metadata gets a stand-in built
    from its own class reference so the cohort can still be scoped.
    """
    for class_meta in classes:
        if class_meta.includes(student):
            return class_meta
    if student.class_id or student.class_name:
        return ClassMeta(
            class_id=student.class_id,
            name=student.class_name or student.class_id,
        )
    return None


def _report_context(marks, attendance, exams, term):
    annual = is_annual_term(term)
    resolver = TermResolver.from_exams(exams) if annual else None
    return annual, resolver, _index_by_student(marks), _index_by_student(attendance)


def _student_report(student, annual, resolver, marks_by_student, attendance_by_student):
    subjects = aggregate_subjects(
        marks_by_student.get(student.student_id, []),
        annual=annual,
        resolver=resolver,
    )
    attendance = tally_attendance(attendance_by_student.get(student.student_id, []))
    return build_student_report(student, subjects, attendance, is_annual=annual)


def build_cohort_reports(roster, marks, attendance, exams=(), term=''):
    """StudentReports for a roster in one aggregation mode, in roster order."""
    annual, resolver, marks_by_student, attendance_by_student = _report_context(
        marks, attendance, exams, term
    )
    return [
        _student_report(s, annual, resolver, marks_by_student, attendance_by_student)
        for s in roster
    ]


# ============ Student Report ============

def generate_student_report(student_id, students, marks, attendance, exams=(), term='', report_type=None,
                            classes=()):
    """
    Generate a single student's report with class rank.

    The student's class cohort is computed in full with the same mode so the
    attached rank is consistent with the class report.

    Raises:
        EntityNotFound: the student is not in the supplied metadata
        ReportValidationError: unknown report type
    """
    report_type = resolve_report_type(report_type, ReportType.STUDENT_REPORT)
    student = _lookup(students, 'student_id', student_id, 'student')
    class_meta = class_for_student(student, classes)

    annual, resolver, marks_by_student, attendance_by_student = _report_context(
        marks, attendance, exams, term
    )
    report = _student_report(student, annual, resolver, marks_by_student, attendance_by_student)

    if class_meta is not None:
        cohort = [
            report if s.student_id == student.student_id
            else _student_report(s, annual, resolver, marks_by_student, attendance_by_student)
            for s in class_roster(students, class_meta)
        ]
        rank, size = class_rank_for(student.student_id, cohort)
        report = report.with_rank(rank, size)
        logger.info(
            f'Student report for {student.student_id}: class {class_meta.name}, '
            f'rank {rank}/{size}, annual={annual}'
        )
    else:
        logger.info(f'Student report for {student.student_id}: no class, annual={annual}')

    data = report.as_dict(include_subjects=report_type not in SUBJECT_TABLE_HIDDEN)
    data.update({'term': term or '', 'report_type': report_type})

    return GeneratedReport(
        scope=ReportScope.STUDENT.value,
        title=build_title(student.name, report_type, term),
        term=term or '',
        report_type=report_type,
        data=data,
        student_id=student.student_id,
        class_id=class_meta.class_id if class_meta is not None else '',
        generated_at=timezone.now(),
    )


# ============ Class Report ============

def generate_class_report(class_id, classes, students, marks, attendance, exams=(), term='', report_type=None):
    """
    Generate a class report: ranked roster, class averages and top students.

    Raises:
        EntityNotFound: the class is not in the supplied metadata
        ReportValidationError: unknown report type
    """
    # Only an explicitly requested full-roster type drops the top-N table
    include_top_students = shows_top_students(report_type) if report_type else True
    report_type = resolve_report_type(report_type, ReportType.TERM_REPORT)
    class_meta = _lookup(classes, 'class_id', class_id, 'class')

    roster = class_roster(students, class_meta)
    reports = build_cohort_reports(roster, marks, attendance, exams, term)
    class_report = build_class_report(
        class_meta,
        reports,
        term=term or '',
        report_type=report_type,
        is_annual=is_annual_term(term),
        include_top_students=include_top_students,
    )
    logger.info(
        f'Class report for {class_meta.name}: {len(roster)} students, '
        f'average {class_report.class_average_marks}%'
    )

    return GeneratedReport(
        scope=ReportScope.CLASS.value,
        title=build_title(class_meta.name, report_type, term),
        term=term or '',
        report_type=report_type,
        data=class_report.as_dict(),
        class_id=class_meta.class_id,
        generated_at=timezone.now(),
    )


# ============ School Report ============

def generate_school_report(classes, students, marks, attendance, exams=(), term='', report_type=None,
                           teacher_count=0):
    """
    Generate the school-wide rollup: per-class summaries and a top-N list.

    Raises:
        ReportValidationError: a school-wide Term Report was requested, or
            the report type is unknown
    """
    report_type = resolve_report_type(report_type, ReportType.SCHOOL_REPORT)
    validate_school_report_type(report_type)

    annual, resolver, marks_by_student, attendance_by_student = _report_context(
        marks, attendance, exams, term
    )
    active = sorted((s for s in students if s.is_active), key=lambda s: s.roster_key)
    reports = {
        s.student_id: _student_report(s, annual, resolver, marks_by_student, attendance_by_student)
        for s in active
    }

    # Classes are independent; each summary only reads its own roster
    class_summaries = []
    for class_meta in classes:
        roster = class_roster(active, class_meta)
        class_summaries.append(summarize_class(class_meta, [reports[s.student_id] for s in roster]))

    school_report = build_school_report(
        class_summaries,
        [reports[s.student_id] for s in active],
        term=term or '',
        report_type=report_type,
        is_annual=annual,
        total_teachers=teacher_count,
    )
    logger.info(
        f'School report: {school_report.total_students} students in '
        f'{school_report.total_classes} classes, annual={annual}'
    )

    return GeneratedReport(
        scope=ReportScope.SCHOOL.value,
        title=build_title('School', report_type, term),
        term=term or '',
        report_type=report_type,
        data=school_report.as_dict(),
        generated_at=timezone.now(),
    )
