import json
import os
import tempfile
from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, override_settings

from core.choices import AttendanceStatus, ReportType, StudentStatus, TermType
from .aggregation import aggregate_annual_subjects, aggregate_subjects, aggregate_term_subjects
from .exceptions import EntityNotFound, ReportValidationError
from .forms import MarkRecordForm, StudentMetaForm, load_records
from .grading import GRADE_ORDER, grade_for_percent, mean_percent, round_percent
from .ranking import class_rank_for, rank_students
from .records import (
    AttendanceRecord, ClassMeta, ExamMeta, MarkRecord, StudentMeta, SubjectResult,
)
from .rollups import build_class_report, build_school_report, summarize_class
from .selectors import TermResolver, latest_by_subject, select_latest
from .services import (
    generate_class_report, generate_school_report, generate_student_report, is_annual_term,
)
from .summaries import attendance_summary, build_student_report, tally_attendance
from .tasks import generate_class_report_task, generate_school_report_task, generate_student_report_task


BASE_TIME = datetime(2025, 1, 6, 8, 0, tzinfo=dt_timezone.utc)

EXAMS = (
    ExamMeta('E1', TermType.FIRST_TERM),
    ExamMeta('E2', TermType.SECOND_TERM),
    ExamMeta('E3', TermType.THIRD_TERM),
    ExamMeta('Q1', TermType.OTHER),
)


def make_mark(student_id, subject, marks, total=100, exam_id='E1', minutes=0,
              record_id=None, created_only=False, **kwargs):
    """Build a MarkRecord stamped `minutes` after BASE_TIME."""
    stamp = BASE_TIME + timedelta(minutes=minutes)
    return MarkRecord(
        record_id=record_id or f'{student_id}-{subject}-{exam_id}-{minutes}',
        student_id=student_id,
        subject_name=subject,
        exam_id=exam_id,
        marks_obtained=marks,
        total_marks=total,
        created_at=stamp,
        updated_at=None if created_only else stamp,
        **kwargs
    )


def make_attendance(student_id, present=0, absent=0, late=0):
    """One record per school day, starting on a fixed Monday."""
    statuses = (
        [AttendanceStatus.PRESENT] * present
        + [AttendanceStatus.ABSENT] * absent
        + [AttendanceStatus.LATE] * late
    )
    return [
        AttendanceRecord(student_id, date(2025, 1, 6) + timedelta(days=i), status)
        for i, status in enumerate(statuses)
    ]


def make_student(student_id, class_id='C1', admission_number=None, status=StudentStatus.ACTIVE):
    return StudentMeta(
        student_id=student_id,
        name=f'Student {student_id}',
        class_id=class_id,
        class_name=f'Class {class_id}' if class_id else '',
        admission_number=admission_number or f'A-{student_id}',
        status=status,
    )


def make_report(student_id, average, rate=0):
    subjects = (SubjectResult('math', 'Mathematics', average, grade_for_percent(average)),)
    return build_student_report(
        make_student(student_id),
        subjects,
        attendance_summary(present_days=rate, absent_days=100 - rate) if rate else attendance_summary(),
    )


# ============ Grade Bander ============

class GradeBanderTest(SimpleTestCase):
    """Tests for percentage to grade banding."""

    def test_band_boundaries(self):
        """Test each band boundary maps to its grade."""
        cases = [
            (100, 'A+'), (90, 'A+'), (89.99, 'A'), (80, 'A'), (79, 'B+'), (75, 'B+'),
            (74, 'B'), (70, 'B'), (69, 'C+'), (65, 'C+'), (64, 'C'), (60, 'C'),
            (59, 'D'), (50, 'D'), (49.99, 'F'), (0, 'F'),
        ]
        for percentage, expected in cases:
            with self.subTest(percentage=percentage):
                self.assertEqual(grade_for_percent(percentage), expected)

    def test_grade_monotonicity(self):
        """A higher percentage never receives a worse grade."""
        steps = [i / 2 for i in range(0, 201)]
        for low, high in zip(steps, steps[1:]):
            self.assertGreaterEqual(
                GRADE_ORDER.index(grade_for_percent(low)),
                GRADE_ORDER.index(grade_for_percent(high)),
            )

    def test_out_of_range_falls_back(self):
        """Test negative and missing percentages get the fail grade."""
        self.assertEqual(grade_for_percent(-5), 'F')
        self.assertEqual(grade_for_percent(None), 'F')

    def test_grade_order(self):
        """Test grades are listed best first."""
        self.assertEqual(GRADE_ORDER, ('A+', 'A', 'B+', 'B', 'C+', 'C', 'D', 'F'))

    def test_round_percent_half_up(self):
        """Test halves round up."""
        self.assertEqual(round_percent(72.5), 73)
        self.assertEqual(round_percent(2.5), 3)
        self.assertEqual(round_percent(67.49), 67)

    def test_round_percent_clamps(self):
        """Test rounding clamps to the 0-100 range."""
        self.assertEqual(round_percent(104), 100)
        self.assertEqual(round_percent(-3), 0)

    def test_mean_percent(self):
        """Test rounded mean of percentages."""
        self.assertEqual(mean_percent([80, 90, 70]), 80)
        self.assertEqual(mean_percent([70, 65]), 68)
        self.assertEqual(mean_percent([]), 0)


# ============ Latest-Record Selector / Term Resolver ============

class LatestRecordSelectorTest(SimpleTestCase):
    """Tests for picking the authoritative mark among re-entries."""

    def test_latest_updated_wins(self):
        """Test the most recently updated record wins."""
        old = make_mark('S1', 'Math', 50, minutes=0)
        new = make_mark('S1', 'Math', 75, minutes=30)
        self.assertEqual(select_latest([new, old]), new)
        self.assertEqual(select_latest([old, new]), new)

    def test_falls_back_to_created_at(self):
        """Test created_at is used when updated_at is missing."""
        updated = make_mark('S1', 'Math', 50, minutes=10)
        created_later = make_mark('S1', 'Math', 60, minutes=20, created_only=True)
        self.assertEqual(select_latest([updated, created_later]), created_later)

    def test_records_without_timestamps_are_oldest(self):
        """Test undated records lose to dated ones."""
        undated = MarkRecord('r0', 'S1', 'Math', 'E1', 90, 100)
        dated = make_mark('S1', 'Math', 40)
        self.assertEqual(select_latest([undated, dated]), dated)

    def test_ties_broken_by_record_id(self):
        """Test equal timestamps fall back to record id."""
        a = make_mark('S1', 'Math', 50, record_id='a')
        b = make_mark('S1', 'Math', 60, record_id='b')
        self.assertEqual(select_latest([a, b]), b)
        self.assertEqual(select_latest([b, a]), b)

    def test_empty_input_rejected(self):
        """Test selecting from nothing raises."""
        with self.assertRaises(ValueError):
            select_latest([])

    def test_latest_by_subject(self):
        """Test latest record chosen per subject."""
        marks = [
            make_mark('S1', 'Math', 50, minutes=0),
            make_mark('S1', 'Math', 70, minutes=5),
            make_mark('S1', 'Science', 40, minutes=1),
        ]
        latest = latest_by_subject(marks)
        self.assertEqual(latest['Math'].marks_obtained, 70)
        self.assertEqual(latest['Science'].marks_obtained, 40)

    def test_subject_id_preferred_as_key(self):
        """Test subject key prefers the subject id."""
        mark = make_mark('S1', 'Math', 50, subject_id='sub-1')
        self.assertEqual(mark.subject_key, 'sub-1')
        self.assertEqual(make_mark('S1', '', 50).subject_key, 'Unknown Subject')


class TermResolverTest(SimpleTestCase):
    """Tests for exam to term lookup."""

    def setUp(self):
        self.resolver = TermResolver.from_exams(EXAMS)

    def test_term_exams_resolve(self):
        """Test term exams map to their slot."""
        self.assertEqual(self.resolver.resolve('E1'), TermType.FIRST_TERM)
        self.assertEqual(self.resolver.resolve('E3'), TermType.THIRD_TERM)

    def test_non_term_exams_resolve_to_none(self):
        """Test quizzes and unknown exams have no slot."""
        self.assertIsNone(self.resolver.resolve('Q1'))
        self.assertIsNone(self.resolver.resolve('missing'))

    def test_source_spellings_normalized(self):
        """Test stored term spellings are normalized."""
        self.assertEqual(TermType.normalize('second_term'), TermType.SECOND_TERM)
        self.assertEqual(TermType.normalize('monthly_test'), TermType.OTHER)
        self.assertEqual(TermType.normalize(None), TermType.OTHER)

    def test_conflicting_classification_rejected(self):
        """Test an exam with two terms is rejected."""
        with self.assertRaises(ReportValidationError):
            TermResolver.from_exams([
                ExamMeta('E1', TermType.FIRST_TERM),
                ExamMeta('E1', TermType.THIRD_TERM),
            ])


# ============ Subject Aggregator ============

class SingleTermAggregationTest(SimpleTestCase):
    """Tests for single-term subject results."""

    def test_latest_mark_per_subject(self):
        """Test single-term results use the latest mark."""
        marks = [
            make_mark('S1', 'Math', 60, exam_id='E1', minutes=0),
            make_mark('S1', 'Math', 82, exam_id='Q1', minutes=10),
            make_mark('S1', 'Science', 39, total=50, exam_id='E1'),
        ]
        results = aggregate_term_subjects(marks)
        self.assertEqual([r.subject_name for r in results], ['Math', 'Science'])
        self.assertEqual(results[0].percentage, 82)
        self.assertEqual(results[0].grade, 'A')
        self.assertEqual(results[1].percentage, 78)
        self.assertEqual(results[1].grade, 'B+')
        self.assertFalse(results[0].is_annual)

    def test_stored_percentage_used_without_total(self):
        """Test stored percentage used when total is zero."""
        mark = make_mark('S1', 'Art', 0, total=0, percentage=66.5)
        self.assertEqual(mark.percent, 67)

    def test_no_total_and_no_percentage_is_zero(self):
        """Test mark with no total or percentage scores zero."""
        self.assertEqual(make_mark('S1', 'Art', 12, total=0).percent, 0)

    def test_no_marks_no_subjects(self):
        """Test no marks gives no subjects."""
        self.assertEqual(aggregate_subjects([], annual=False), ())


class AnnualAggregationTest(SimpleTestCase):
    """Tests for the annual three-term composite."""

    def setUp(self):
        self.resolver = TermResolver.from_exams(EXAMS)

    def test_three_term_composition(self):
        """Test annual percent averages three terms."""
        marks = [
            make_mark('S1', 'Math', 80, exam_id='E1'),
            make_mark('S1', 'Math', 90, exam_id='E2'),
            make_mark('S1', 'Math', 70, exam_id='E3'),
        ]
        (result,) = aggregate_annual_subjects(marks, self.resolver)
        self.assertTrue(result.is_annual)
        self.assertEqual((result.term1_percent, result.term2_percent, result.term3_percent), (80, 90, 70))
        self.assertEqual(result.percentage, 80)
        self.assertEqual(result.grade, 'A')

    def test_missing_term_is_none_not_zero(self):
        """Test a missing term is left empty."""
        marks = [
            make_mark('S1', 'History', 72, exam_id='E1'),
            make_mark('S1', 'History', 68, exam_id='E3'),
        ]
        (result,) = aggregate_annual_subjects(marks, self.resolver)
        self.assertIsNone(result.term2_percent)
        self.assertEqual(result.percentage, 70)

    def test_fallback_to_non_term_mark(self):
        """Test fallback to a non-term mark."""
        marks = [make_mark('S1', 'Music', 65, exam_id='Q1')]
        (result,) = aggregate_annual_subjects(marks, self.resolver)
        self.assertEqual(result.percentage, 65)
        self.assertEqual(result.grade, 'C+')
        self.assertIsNone(result.term1_percent)

    def test_fallback_uses_latest_of_any_exam(self):
        """Test fallback picks the latest mark of any exam."""
        marks = [
            make_mark('S1', 'Music', 40, exam_id='Q1', minutes=0),
            make_mark('S1', 'Music', 65, exam_id='unlisted', minutes=5),
        ]
        (result,) = aggregate_annual_subjects(marks, self.resolver)
        self.assertEqual(result.percentage, 65)

    def test_non_term_marks_ignored_when_term_marks_exist(self):
        """Test non-term marks ignored alongside term marks."""
        marks = [
            make_mark('S1', 'Math', 50, exam_id='E1', minutes=0),
            make_mark('S1', 'Math', 100, exam_id='Q1', minutes=60),
        ]
        (result,) = aggregate_annual_subjects(marks, self.resolver)
        self.assertEqual(result.percentage, 50)

    def test_latest_record_per_term(self):
        """Test latest record kept per term."""
        marks = [
            make_mark('S1', 'Math', 40, exam_id='E1', minutes=0),
            make_mark('S1', 'Math', 60, exam_id='E1', minutes=30),
            make_mark('S1', 'Math', 80, exam_id='E2'),
        ]
        (result,) = aggregate_annual_subjects(marks, self.resolver)
        self.assertEqual(result.term1_percent, 60)
        self.assertEqual(result.percentage, 70)

    def test_without_exam_metadata_every_subject_falls_back(self):
        """Test missing exam metadata falls back."""
        marks = [make_mark('S1', 'Math', 77, exam_id='E1')]
        (result,) = aggregate_subjects(marks, annual=True)
        self.assertEqual(result.percentage, 77)

    def test_annual_result_serialization_carries_term_columns(self):
        """Test annual results serialize term columns."""
        marks = [make_mark('S1', 'Math', 80, exam_id='E1')]
        (result,) = aggregate_annual_subjects(marks, self.resolver)
        data = result.as_dict()
        self.assertEqual(data['term1_percent'], 80)
        self.assertIsNone(data['term2_percent'])


# ============ Student Summary Builder ============

class StudentSummaryTest(SimpleTestCase):
    """Tests for student summaries."""

    def test_single_term_scenario(self):
        """Test single-term student summary."""
        marks = [
            make_mark('S1', 'Math', 82),
            make_mark('S1', 'Science', 78),
        ]
        attendance = tally_attendance(make_attendance('S1', present=18, absent=2))
        report = build_student_report(make_student('S1'), aggregate_term_subjects(marks), attendance)
        self.assertEqual(report.average_percent, 80)
        self.assertEqual(report.overall_grade, 'A')
        self.assertEqual(report.attendance.attendance_rate, 90)
        self.assertEqual(report.attendance.total_days, 20)
        self.assertIsNone(report.class_rank)

    def test_no_subjects_gives_zero_report(self):
        """Test empty student summary."""
        report = build_student_report(make_student('S1'), (), tally_attendance([]))
        self.assertEqual(report.average_percent, 0)
        self.assertEqual(report.overall_grade, 'F')
        self.assertEqual(report.attendance.attendance_rate, 0)

    def test_adding_subject_at_average_keeps_average(self):
        """Test adding a subject at the average keeps it."""
        subjects = aggregate_term_subjects([
            make_mark('S1', 'Math', 82),
            make_mark('S1', 'Science', 78),
        ])
        extra = SubjectResult('art', 'Art', 80, grade_for_percent(80))
        before = build_student_report(make_student('S1'), subjects, attendance_summary())
        after = build_student_report(make_student('S1'), subjects + (extra,), attendance_summary())
        self.assertEqual(before.average_percent, after.average_percent)

    def test_late_days_not_counted_present(self):
        """Test late days lower the attendance rate."""
        summary = tally_attendance(make_attendance('S1', present=3, absent=0, late=1))
        self.assertEqual(summary.late_days, 1)
        self.assertEqual(summary.attendance_rate, 75)

    def test_duplicate_dates_counted_once(self):
        """Test one school day counted once."""
        records = make_attendance('S1', present=2)
        records.append(AttendanceRecord('S1', records[0].date, AttendanceStatus.ABSENT))
        summary = tally_attendance(records)
        self.assertEqual(summary.total_days, 2)
        self.assertEqual(summary.absent_days, 1)
        self.assertEqual(summary.present_days, 1)

    def test_conflicting_duplicates_ignore_input_order(self):
        """Test a conflicting day resolves the same way in any order."""
        day = date(2025, 1, 6)
        entries = [
            AttendanceRecord('S1', day, AttendanceStatus.PRESENT),
            AttendanceRecord('S1', day, AttendanceStatus.LATE),
        ]
        forward = tally_attendance(entries)
        backward = tally_attendance(list(reversed(entries)))
        self.assertEqual(forward, backward)
        self.assertEqual((forward.late_days, forward.present_days), (1, 0))

    def test_with_rank_returns_copy(self):
        """Test attaching rank leaves the original untouched."""
        report = make_report('S1', 70)
        ranked = report.with_rank(2, 5)
        self.assertIsNone(report.class_rank)
        self.assertEqual((ranked.class_rank, ranked.class_size), (2, 5))


# ============ Class Rank Engine ============

class ClassRankTest(SimpleTestCase):
    """Tests for class ranking."""

    def test_ranks_follow_average(self):
        """Test ranks follow average percent."""
        reports = [make_report('S1', 90), make_report('S2', 70), make_report('S3', 80)]
        ranks = {r.report.student_id: r.rank for r in rank_students(reports)}
        self.assertEqual(ranks, {'S1': 1, 'S2': 3, 'S3': 2})

    def test_rank_bounds(self):
        """Test ranks run 1..N with the top average first."""
        reports = [make_report(f'S{i}', (i * 37) % 101) for i in range(12)]
        ranked = rank_students(reports)
        self.assertEqual(sorted(r.rank for r in ranked), list(range(1, 13)))
        top = max(reports, key=lambda r: r.average_percent)
        self.assertEqual(ranked[0].report.student_id, top.student_id)
        self.assertTrue(all(r.report.class_size == 12 for r in ranked))

    def test_ties_get_sequential_ranks_in_roster_order(self):
        """Test tied averages rank in roster order."""
        reports = [make_report('S1', 75), make_report('S2', 88), make_report('S3', 88)]
        ranked = rank_students(reports)
        self.assertEqual(
            [(r.report.student_id, r.rank) for r in ranked],
            [('S2', 1), ('S3', 2), ('S1', 3)],
        )

    def test_duplicate_students_rejected(self):
        """Test duplicate students are rejected."""
        with self.assertRaises(ReportValidationError):
            rank_students([make_report('S1', 50), make_report('S1', 60)])

    def test_mixed_modes_rejected(self):
        """Test a cohort mixing term and annual reports is rejected."""
        annual = build_student_report(make_student('S2'), (), attendance_summary(), is_annual=True)
        with self.assertRaises(ReportValidationError) as ctx:
            rank_students([make_report('S1', 50), annual])
        self.assertEqual(ctx.exception.code, 'mixed_mode')

    def test_class_rank_for_single_student(self):
        """Test rank lookup for one student."""
        reports = [make_report('S1', 90), make_report('S2', 70), make_report('S3', 80)]
        self.assertEqual(class_rank_for('S3', reports), (2, 3))
        self.assertEqual(class_rank_for('S9', reports), (None, 3))

    def test_empty_cohort(self):
        """Test empty cohort."""
        self.assertEqual(rank_students([]), [])


# ============ Rollup Builders ============

class RollupTest(SimpleTestCase):
    """Tests for class and school rollups."""

    def setUp(self):
        self.class_meta = ClassMeta('C1', 'JHS 1', '')
        self.reports = [make_report('S1', 90, 100), make_report('S2', 70, 50), make_report('S3', 80)]

    def test_class_rollup_scenario(self):
        """Test class averages and ordering."""
        report = build_class_report(self.class_meta, self.reports, report_type=ReportType.PROGRESS_REPORT)
        self.assertEqual(report.class_average_marks, 80)
        self.assertEqual(report.class_attendance_rate, 50)
        self.assertEqual([s.report.student_id for s in report.students], ['S1', 'S3', 'S2'])
        self.assertEqual(report.teacher_name, 'Not assigned')
        self.assertEqual(len(report.top_students), 3)

    def test_full_roster_report_types_omit_top_students(self):
        """Test full-roster report types drop top students."""
        for report_type in (ReportType.TERM_REPORT, ReportType.FULL_ACADEMIC):
            with self.subTest(report_type=report_type):
                report = build_class_report(self.class_meta, self.reports, report_type=report_type)
                self.assertEqual(report.top_students, ())
                self.assertEqual(len(report.students), 3)

    def test_explicit_top_students_flag(self):
        """Test explicit top students flag."""
        report = build_class_report(
            self.class_meta, self.reports,
            report_type=ReportType.TERM_REPORT,
            include_top_students=True,
            top_limit=2,
        )
        self.assertEqual([s.rank for s in report.top_students], [1, 2])

    @override_settings(GRADEBOOK_TOP_STUDENTS_LIMIT=1)
    def test_top_limit_from_settings(self):
        """Test top-N size read from settings."""
        report = build_class_report(self.class_meta, self.reports, report_type=ReportType.PROGRESS_REPORT)
        self.assertEqual(len(report.top_students), 1)

    def test_empty_class(self):
        """Test empty class."""
        report = build_class_report(self.class_meta, [])
        self.assertEqual((report.class_average_marks, report.class_attendance_rate), (0, 0))
        self.assertEqual(report.students, ())

    def test_class_summary(self):
        """Test class summary line."""
        summary = summarize_class(self.class_meta, self.reports)
        self.assertEqual((summary.students, summary.average_marks, summary.attendance_rate), (3, 80, 50))

    def test_school_term_report_rejected(self):
        """Test school Term Report is rejected."""
        with self.assertRaises(ReportValidationError):
            build_school_report([], [], report_type=ReportType.TERM_REPORT)

    def test_school_top_students_across_classes(self):
        """Test school top students span classes."""
        summaries = [summarize_class(self.class_meta, self.reports)]
        school = build_school_report(summaries, self.reports + [make_report('S4', 95)], top_limit=3)
        self.assertEqual([s.report.student_id for s in school.top_students], ['S4', 'S1', 'S3'])
        self.assertEqual(school.total_students, 4)
        self.assertEqual(school.top_students[0].as_dict()['overall_grade'], 'A+')


# ============ Report Generation Service ============

# Class documents carry generated ids; students store the class name
CLASS_NAME_PAYLOAD = {
    'classes': [
        {'id': 'k8Xq2', 'name': 'Grade 6-A', 'classTeacherName': 'Mr. Addo'},
    ],
    'students': [
        {'id': 'u1', 'fullName': 'Esi Quaye', 'classId': 'Grade 6-A', 'className': 'Grade 6-A',
         'admissionNumber': '101', 'status': 'active'},
        {'id': 'u2', 'fullName': 'Yaw Darko', 'classId': 'Grade 6-A', 'className': 'Grade 6-A',
         'admissionNumber': '102', 'status': 'active'},
    ],
    'marks': [
        {'id': 'm1', 'studentId': 'u1', 'subjectName': 'Math', 'examId': 'E1',
         'marks': 60, 'totalMarks': 100, 'updatedAt': '2025-01-10T08:00:00Z'},
        {'id': 'm2', 'studentId': 'u2', 'subjectName': 'Math', 'examId': 'E1',
         'marks': 80, 'totalMarks': 100, 'updatedAt': '2025-01-10T08:00:00Z'},
    ],
}

class ReportServiceTest(SimpleTestCase):
    """Tests for report generation over full record sets."""

    def setUp(self):
        self.classes = (ClassMeta('C1', 'JHS 1', 'Mr. Mensah'), ClassMeta('C2', 'JHS 2'))
        self.students = (
            make_student('S1', admission_number='001'),
            make_student('S2', admission_number='002'),
            make_student('S3', admission_number='003'),
            make_student('S4', class_id='C2', admission_number='004'),
            make_student('S5', class_id='C2', admission_number='005', status=StudentStatus.INACTIVE),
            make_student('S6', class_id='', admission_number='006'),
        )
        self.marks = (
            make_mark('S1', 'Math', 90),
            make_mark('S2', 'Math', 70),
            make_mark('S3', 'Math', 80),
            make_mark('S4', 'Math', 95),
            make_mark('S5', 'Math', 100),
            make_mark('S6', 'Math', 55),
        )
        self.attendance = tuple(
            make_attendance('S1', present=10) + make_attendance('S2', present=5, absent=5)
        )

    def test_is_annual_term(self):
        """Test annual term detection."""
        self.assertTrue(is_annual_term('Annual'))
        self.assertTrue(is_annual_term(' annual '))
        self.assertFalse(is_annual_term('First Term'))
        self.assertFalse(is_annual_term(''))

    def test_student_report_with_class_rank(self):
        """Test student report carries class rank."""
        report = generate_student_report('S3', self.students, self.marks, self.attendance, term='First Term')
        marks = report.data['marks']
        self.assertEqual((marks['class_rank'], marks['class_size']), (2, 3))
        self.assertEqual(marks['average_percent'], 80)
        self.assertEqual(report.title, 'Student S3 - Student Report (First Term)')
        self.assertEqual(report.scope, 'student')

    def test_student_without_class_has_no_rank(self):
        """Test student without a class has no rank."""
        report = generate_student_report('S6', self.students, self.marks, self.attendance)
        self.assertIsNone(report.data['marks']['class_rank'])
        self.assertEqual(report.title, 'Student S6 - Student Report')

    def test_inactive_student_not_ranked(self):
        """Test inactive student is left out of the ranking."""
        report = generate_student_report('S5', self.students, self.marks, self.attendance)
        self.assertIsNone(report.data['marks']['class_rank'])
        self.assertEqual(report.data['marks']['class_size'], 1)

    def test_unknown_student_raises(self):
        """Test unknown student raises."""
        with self.assertRaises(EntityNotFound) as ctx:
            generate_student_report('S99', self.students, self.marks, self.attendance)
        self.assertEqual(ctx.exception.entity_id, 'S99')

    def test_progress_report_hides_subject_table(self):
        """Test Progress Report hides subjects."""
        report = generate_student_report(
            'S1', self.students, self.marks, self.attendance,
            report_type=ReportType.PROGRESS_REPORT,
        )
        self.assertEqual(report.data['marks']['subjects'], [])
        self.assertEqual(report.data['marks']['average_percent'], 90)
        self.assertEqual(report.data['marks']['subjects_count'], 1)

    def test_unknown_report_type_rejected(self):
        """Test unknown report type is rejected."""
        with self.assertRaises(ReportValidationError):
            generate_student_report('S1', self.students, self.marks, self.attendance, report_type='Weekly')

    def test_annual_student_report(self):
        """Test annual student report."""
        marks = (
            make_mark('S1', 'History', 72, exam_id='E1'),
            make_mark('S1', 'History', 68, exam_id='E3'),
            make_mark('S1', 'Music', 65, exam_id='Q1'),
        )
        report = generate_student_report('S1', self.students, marks, (), exams=EXAMS, term='Annual')
        data = report.data['marks']
        self.assertTrue(report.data['is_annual'])
        history = next(s for s in data['subjects'] if s['subject_name'] == 'History')
        self.assertIsNone(history['term2_percent'])
        self.assertEqual(history['percentage'], 70)
        self.assertEqual(data['average_percent'], 68)
        self.assertEqual(data['overall_grade'], 'C+')

    def test_class_report(self):
        """Test class report without a report type."""
        report = generate_class_report('C1', self.classes, self.students, self.marks, self.attendance)
        data = report.data
        self.assertEqual(data['class']['teacher'], 'Mr. Mensah')
        self.assertEqual(data['class']['student_count'], 3)
        self.assertEqual(data['summary']['class_average_marks'], 80)
        self.assertEqual(data['summary']['class_attendance_rate'], 50)
        self.assertEqual([(s['student_id'], s['rank']) for s in data['students']],
                         [('S1', 1), ('S3', 2), ('S2', 3)])
        self.assertEqual(len(data['top_students']), 3)
        self.assertEqual(report.title, 'JHS 1 - Term Report')

    def test_explicit_term_report_omits_top_students(self):
        """Test an explicitly requested Term Report drops the top-N table."""
        report = generate_class_report(
            'C1', self.classes, self.students, self.marks, self.attendance,
            report_type=ReportType.TERM_REPORT,
        )
        self.assertEqual(report.data['top_students'], [])
        self.assertEqual(len(report.data['students']), 3)

    def test_students_matched_by_class_name(self):
        """Test students that reference their class by name join its cohort."""
        records = load_records(CLASS_NAME_PAYLOAD)

        report = generate_class_report(
            'k8Xq2', records.classes, records.students, records.marks, records.attendance,
        )
        self.assertEqual(report.data['class']['student_count'], 2)
        self.assertEqual(report.data['summary']['class_average_marks'], 70)

        school = generate_school_report(
            records.classes, records.students, records.marks, records.attendance,
        )
        (summary,) = school.data['classes']
        self.assertEqual((summary['students'], summary['average_marks']), (2, 70))

        student = generate_student_report(
            'u2', records.students, records.marks, records.attendance,
            classes=records.classes,
        )
        marks = student.data['marks']
        self.assertEqual((marks['class_rank'], marks['class_size']), (1, 2))
        self.assertEqual(student.class_id, 'k8Xq2')

    def test_class_membership(self):
        """Test class membership by id, class reference or class name."""
        class_meta = ClassMeta('k8Xq2', 'Grade 6-A')
        self.assertTrue(class_meta.includes(StudentMeta('S1', class_id='k8Xq2')))
        self.assertTrue(class_meta.includes(StudentMeta('S2', class_id='Grade 6-A')))
        self.assertTrue(class_meta.includes(StudentMeta('S3', class_name='Grade 6-A')))
        self.assertFalse(class_meta.includes(StudentMeta('S4', class_id='Grade 6-B')))
        self.assertFalse(ClassMeta('C1').includes(StudentMeta('S5')))

    def test_class_report_excludes_inactive_students(self):
        """Test class report skips inactive students."""
        report = generate_class_report('C2', self.classes, self.students, self.marks, self.attendance)
        self.assertEqual([s['student_id'] for s in report.data['students']], ['S4'])

    def test_unknown_class_raises(self):
        """Test unknown class raises."""
        with self.assertRaises(EntityNotFound):
            generate_class_report('C9', self.classes, self.students, self.marks, self.attendance)

    def test_school_report(self):
        """Test school report."""
        report = generate_school_report(
            self.classes, self.students, self.marks, self.attendance,
            term='Annual', report_type=ReportType.FULL_ACADEMIC, teacher_count=7,
        )
        data = report.data
        self.assertEqual(data['summary'], {'total_students': 5, 'total_classes': 2, 'total_teachers': 7})
        self.assertEqual([s['student_id'] for s in data['top_students']][:4], ['S4', 'S1', 'S3', 'S2'])
        c2 = next(c for c in data['classes'] if c['class_id'] == 'C2')
        self.assertEqual((c2['students'], c2['average_marks']), (1, 95))
        self.assertEqual(report.title, 'School - Full Academic Report (Annual)')

    def test_school_term_report_rejected(self):
        """Test school Term Report is rejected."""
        with self.assertRaises(ReportValidationError):
            generate_school_report(
                self.classes, self.students, self.marks, self.attendance,
                report_type=ReportType.TERM_REPORT,
            )

    def test_reports_are_deterministic(self):
        """Test identical inputs give identical reports."""
        shuffled = tuple(reversed(self.marks))
        first = generate_class_report('C1', self.classes, self.students, self.marks, self.attendance)
        second = generate_class_report('C1', self.classes, self.students, shuffled, self.attendance)
        self.assertEqual(json.dumps(first.data), json.dumps(second.data))

        first = generate_school_report(self.classes, self.students, self.marks, self.attendance, term='Annual')
        second = generate_school_report(self.classes, self.students, self.marks, self.attendance, term='Annual')
        self.assertEqual(json.dumps(first.data), json.dumps(second.data))


# ============ Boundary Validation ============

RAW_PAYLOAD = {
    'classes': [
        {'id': 'C1', 'name': 'JHS 1', 'classTeacherName': 'Mrs. Owusu'},
    ],
    'students': [
        {'id': 'S1', 'fullName': 'Ama Boateng', 'classId': 'C1', 'className': 'JHS 1',
         'admissionNumber': '001', 'status': 'active'},
        {'id': 'S2', 'fullName': 'Kofi Asare', 'classId': 'C1', 'className': 'JHS 1',
         'admissionNumber': '002'},
    ],
    'exams': [
        {'id': 'E1', 'name': 'First Term Exam', 'type': 'first_term'},
        {'id': 'E3', 'name': 'Third Term Exam', 'type': 'third-term'},
        {'id': 'Q1', 'name': 'Quiz 1', 'type': 'quiz'},
    ],
    'marks': [
        {'id': 'm1', 'studentId': 'S1', 'subjectName': 'History', 'examId': 'E1',
         'marks': 72, 'totalMarks': 100, 'updatedAt': '2025-01-10T08:00:00Z'},
        {'id': 'm2', 'studentId': 'S1', 'subjectName': 'History', 'examId': 'E3',
         'marks': 68, 'totalMarks': 100, 'updatedAt': '2025-04-10T08:00:00Z'},
        {'id': 'm3', 'studentId': 'S2', 'subjectName': 'History', 'examId': 'Q1',
         'marks': 13, 'totalMarks': 20, 'createdAt': '2025-02-01T08:00:00Z'},
    ],
    'attendance': [
        {'studentId': 'S1', 'date': '2025-01-06', 'status': 'present'},
        {'studentId': 'S1', 'date': '2025-01-07', 'status': 'Late'},
        {'studentId': 'S2', 'date': '2025-01-06', 'status': 'absent'},
    ],
}


class BoundaryValidationTest(SimpleTestCase):
    """Tests for loading raw document-store rows."""

    def test_load_records(self):
        """Test loading a raw payload."""
        records = load_records(RAW_PAYLOAD)
        self.assertEqual(len(records.marks), 3)
        self.assertEqual(records.exams[0].term_type, TermType.FIRST_TERM)
        self.assertEqual(records.exams[2].term_type, TermType.OTHER)
        self.assertEqual(records.students[0].name, 'Ama Boateng')
        self.assertIsNone(records.students[1].status)
        self.assertTrue(records.students[1].is_active)
        self.assertEqual(records.classes[0].teacher_name, 'Mrs. Owusu')
        self.assertEqual(records.attendance[1].status, AttendanceStatus.LATE)
        self.assertEqual(records.marks[2].percent, 65)
        self.assertIsInstance(records.marks[0].marks_obtained, Decimal)
        self.assertEqual(records.marks[0].total_marks, Decimal('100'))

    def test_missing_collections_are_empty(self):
        """Test missing collections load empty."""
        records = load_records({})
        self.assertEqual(records.marks, ())
        self.assertEqual(records.students, ())

    def test_marks_above_total_rejected(self):
        """Test marks above total are rejected."""
        form = MarkRecordForm({'studentId': 'S1', 'marks': 120, 'totalMarks': 100})
        self.assertFalse(form.is_valid())
        self.assertIn('cannot exceed total marks', str(form.errors))

    def test_negative_marks_rejected(self):
        """Test negative marks are rejected."""
        form = MarkRecordForm({'studentId': 'S1', 'marks': -1, 'totalMarks': 100})
        self.assertFalse(form.is_valid())

    def test_generated_record_id(self):
        """Test record id generated when missing."""
        form = MarkRecordForm({'studentId': 'S1', 'marks': 5, 'totalMarks': 10})
        self.assertTrue(form.is_valid())
        self.assertEqual(form.to_record(3).record_id, 'mark-000003')

    def test_unknown_student_status_rejected(self):
        """Test unknown student status is rejected."""
        form = StudentMetaForm({'id': 'S1', 'status': 'expelled'})
        self.assertFalse(form.is_valid())

    def test_invalid_row_names_collection_and_index(self):
        """Test errors name the collection and row."""
        payload = {'attendance': [
            {'studentId': 'S1', 'date': '2025-01-06', 'status': 'present'},
            {'studentId': 'S1', 'date': 'not-a-date', 'status': 'present'},
        ]}
        with self.assertRaises(ReportValidationError) as ctx:
            load_records(payload)
        self.assertIn('attendance[1]', ctx.exception.messages[0])

    def test_non_object_payload_rejected(self):
        """Test non-object payload is rejected."""
        with self.assertRaises(ReportValidationError):
            load_records([])


# ============ Tasks ============

class ReportTaskTest(SimpleTestCase):
    """Tests for the report generation tasks, run eagerly."""

    def test_student_report_task(self):
        """Test student report task."""
        result = generate_student_report_task.apply(args=(RAW_PAYLOAD, 'S1', 'Annual')).get()
        self.assertTrue(result['success'])
        marks = result['report']['data']['marks']
        self.assertEqual(marks['average_percent'], 70)
        self.assertEqual((marks['class_rank'], marks['class_size']), (1, 2))

    def test_class_report_task(self):
        """Test class report task."""
        result = generate_class_report_task.apply(
            args=(RAW_PAYLOAD, 'C1'),
            kwargs={'term': 'Annual', 'report_type': 'Progress Report'},
        ).get()
        self.assertTrue(result['success'])
        data = result['report']['data']
        self.assertEqual(data['summary']['class_average_marks'], 68)
        self.assertEqual(len(data['top_students']), 2)
        json.dumps(result)

    def test_missing_class_reported_as_failure(self):
        """Test missing class returns a failure result."""
        result = generate_class_report_task.apply(args=(RAW_PAYLOAD, 'C9')).get()
        self.assertFalse(result['success'])
        self.assertIn('C9', result['error'])

    def test_school_term_report_task_rejected(self):
        """Test school Term Report task fails."""
        result = generate_school_report_task.apply(
            args=(RAW_PAYLOAD,), kwargs={'report_type': 'Term Report'},
        ).get()
        self.assertFalse(result['success'])
        self.assertIn('not available for school scope', result['error'])


# ============ Management Command ============

class GenerateReportCommandTest(SimpleTestCase):
    """Tests for the generate_report management command."""

    def setUp(self):
        handle, self.path = tempfile.mkstemp(suffix='.json')
        with os.fdopen(handle, 'w', encoding='utf-8') as f:
            json.dump(RAW_PAYLOAD, f)
        self.addCleanup(os.remove, self.path)

    def _run(self, *args):
        out = StringIO()
        call_command('generate_report', *args, '--input', self.path, stdout=out, stderr=StringIO())
        return json.loads(out.getvalue())

    def test_class_report(self):
        """Test class report command."""
        result = self._run('class', '--class', 'C1', '--term', 'Annual')
        self.assertEqual(result['scope'], 'class')
        self.assertEqual(result['data']['class']['name'], 'JHS 1')

    def test_school_report(self):
        """Test school report command."""
        result = self._run('school', '--term', 'Annual', '--teachers', '3')
        self.assertEqual(result['data']['summary']['total_teachers'], 3)

    def test_student_scope_requires_student(self):
        """Test student scope needs --student."""
        with self.assertRaises(CommandError):
            self._run('student')

    def test_unknown_student(self):
        """Test unknown student fails the command."""
        with self.assertRaises(CommandError):
            self._run('student', '--student', 'S99')
