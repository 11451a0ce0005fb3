"""
Immutable value types for the report engine.

Raw records (marks, attendance, exam/student/class metadata) are validated
once by gradebook.forms and handed to the aggregation layers as these frozen
dataclasses. Derived entities (subject results, student/class/school reports)
are built fresh for every report request and never mutated afterwards.
"""
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple

from core.choices import AttendanceStatus, StudentStatus, TermType
from . import config
from .grading import round_percent


# ============ Raw Records ============

@dataclass(frozen=True)
class MarkRecord:
    record_id: str
    student_id: str
    subject_name: str
    exam_id: str
    marks_obtained: Decimal
    total_marks: Decimal
    subject_id: str = ''
    exam_name: str = ''
    percentage: Optional[Decimal] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def subject_key(self):
        return self.subject_id or self.subject_name or config.UNKNOWN_SUBJECT_LABEL

    @property
    def display_subject(self):
        return self.subject_name or self.subject_id or config.UNKNOWN_SUBJECT_LABEL

    @property
    def timestamp(self):
        """Ordering timestamp: updated_at, falling back to created_at."""
        return self.updated_at or self.created_at

    @property
    def percent(self):
        """
        Integer percentage for this mark.

        Computed from marks/total when the total is positive; otherwise the
        stored percentage is used, and 0 when neither is available.
        """
        if self.total_marks and self.total_marks > 0:
            marks = Decimal(str(self.marks_obtained))
            total = Decimal(str(self.total_marks))
            return round_percent(marks / total * 100)
        if self.percentage is not None:
            return round_percent(self.percentage)
        return 0


@dataclass(frozen=True)
class AttendanceRecord:
    student_id: str
    date: date
    status: AttendanceStatus


@dataclass(frozen=True)
class ExamMeta:
    exam_id: str
    term_type: TermType = TermType.OTHER
    name: str = ''


@dataclass(frozen=True)
class StudentMeta:
    student_id: str
    name: str = ''
    class_id: str = ''
    class_name: str = ''
    admission_number: str = ''
    status: Optional[StudentStatus] = None

    @property
    def is_active(self):
        return self.status is None or self.status == StudentStatus.ACTIVE

    @property
    def roster_key(self):
        return (str(self.admission_number), self.student_id)


@dataclass(frozen=True)
class ClassMeta:
    class_id: str
    name: str = ''
    teacher_name: str = ''

    @property
    def teacher_display(self):
        return self.teacher_name or config.DEFAULT_TEACHER_NAME

    def includes(self, student):
        """
        Whether a student belongs to this class.

        Student documents may reference their class by id or by class name.
        """
        if student.class_id and student.class_id == self.class_id:
            return True
        if not self.name:
            return False
        return self.name in (student.class_id, student.class_name)


@dataclass(frozen=True)
class RecordSet:
    """All raw collections for one report request, as loaded at the boundary."""
    marks: Tuple[MarkRecord, ...] = ()
    attendance: Tuple[AttendanceRecord, ...] = ()
    exams: Tuple[ExamMeta, ...] = ()
    students: Tuple[StudentMeta, ...] = ()
    classes: Tuple[ClassMeta, ...] = ()


# ============ Derived Entities ============

@dataclass(frozen=True)
class SubjectResult:
    subject_key: str
    subject_name: str
    percentage: int
    grade: str
    exam_name: str = ''
    is_annual: bool = False
    term1_percent: Optional[int] = None
    term2_percent: Optional[int] = None
    term3_percent: Optional[int] = None

    def as_dict(self):
        data = {
            'subject_key': self.subject_key,
            'subject_name': self.subject_name,
            'exam_name': self.exam_name,
            'percentage': self.percentage,
            'grade': self.grade,
            'is_annual': self.is_annual,
        }
        if self.is_annual:
            data.update({
                'term1_percent': self.term1_percent,
                'term2_percent': self.term2_percent,
                'term3_percent': self.term3_percent,
            })
        return data


@dataclass(frozen=True)
class AttendanceSummary:
    total_days: int = 0
    present_days: int = 0
    absent_days: int = 0
    late_days: int = 0
    attendance_rate: int = 0

    def as_dict(self):
        return {
            'total_days': self.total_days,
            'present_days': self.present_days,
            'absent_days': self.absent_days,
            'late_days': self.late_days,
            'attendance_rate': self.attendance_rate,
        }


@dataclass(frozen=True)
class StudentReport:
    student_id: str
    student_name: str
    class_name: str
    subjects: Tuple[SubjectResult, ...]
    average_percent: int
    overall_grade: str
    attendance: AttendanceSummary
    admission_number: str = ''
    is_annual: bool = False
    class_rank: Optional[int] = None
    class_size: Optional[int] = None

    @property
    def subjects_count(self):
        return len(self.subjects)

    def with_rank(self, rank, size):
        """Return a copy carrying the class rank; the original is untouched."""
        return replace(self, class_rank=rank, class_size=size)

    def as_dict(self, include_subjects=True):
        return {
            'student': {
                'id': self.student_id,
                'name': self.student_name,
                'admission_number': self.admission_number,
                'class_name': self.class_name,
            },
            'is_annual': self.is_annual,
            'attendance': self.attendance.as_dict(),
            'marks': {
                'subjects': [s.as_dict() for s in self.subjects] if include_subjects else [],
                'subjects_count': self.subjects_count,
                'average_percent': self.average_percent,
                'overall_grade': self.overall_grade,
                'class_rank': self.class_rank,
                'class_size': self.class_size,
            },
        }


@dataclass(frozen=True)
class RankedStudent:
    rank: int
    report: StudentReport

    def as_dict(self):
        return {
            'rank': self.rank,
            'student_id': self.report.student_id,
            'student_name': self.report.student_name,
            'admission_number': self.report.admission_number,
            'class_name': self.report.class_name,
            'average_percent': self.report.average_percent,
            'overall_grade': self.report.overall_grade,
            'subjects_count': self.report.subjects_count,
            'attendance': self.report.attendance.as_dict(),
        }


@dataclass(frozen=True)
class ClassReport:
    class_id: str
    class_name: str
    teacher_name: str
    term: str
    report_type: str
    is_annual: bool
    students: Tuple[RankedStudent, ...]
    class_average_marks: int
    class_attendance_rate: int
    top_students: Tuple[RankedStudent, ...] = ()

    @property
    def student_count(self):
        return len(self.students)

    def as_dict(self):
        return {
            'class': {
                'id': self.class_id,
                'name': self.class_name,
                'teacher': self.teacher_name,
                'student_count': self.student_count,
            },
            'term': self.term,
            'report_type': self.report_type,
            'is_annual': self.is_annual,
            'summary': {
                'class_attendance_rate': self.class_attendance_rate,
                'class_average_marks': self.class_average_marks,
            },
            'students': [s.as_dict() for s in self.students],
            'top_students': [s.as_dict() for s in self.top_students],
        }


@dataclass(frozen=True)
class ClassSummary:
    class_id: str
    class_name: str
    teacher_name: str
    students: int
    average_marks: int
    attendance_rate: int

    def as_dict(self):
        return {
            'class_id': self.class_id,
            'class_name': self.class_name,
            'teacher': self.teacher_name,
            'students': self.students,
            'average_marks': self.average_marks,
            'attendance_rate': self.attendance_rate,
        }


@dataclass(frozen=True)
class SchoolReport:
    term: str
    report_type: str
    is_annual: bool
    total_students: int
    total_classes: int
    classes: Tuple[ClassSummary, ...]
    top_students: Tuple[RankedStudent, ...]
    total_teachers: int = 0

    def as_dict(self):
        return {
            'term': self.term,
            'report_type': self.report_type,
            'is_annual': self.is_annual,
            'summary': {
                'total_students': self.total_students,
                'total_classes': self.total_classes,
                'total_teachers': self.total_teachers,
            },
            'classes': [c.as_dict() for c in self.classes],
            'top_students': [s.as_dict() for s in self.top_students],
        }


@dataclass(frozen=True)
class GeneratedReport:
    """Envelope handed to the persistence collaborator as an immutable snapshot."""
    scope: str
    title: str
    term: str
    report_type: str
    data: dict = field(default_factory=dict)
    student_id: str = ''
    class_id: str = ''
    generated_at: Optional[datetime] = None

    def as_dict(self):
        return {
            'scope': self.scope,
            'status': 'completed',
            'title': self.title,
            'term': self.term,
            'report_type': self.report_type,
            'student_id': self.student_id or None,
            'class_id': self.class_id or None,
            'generated_at': self.generated_at.isoformat() if self.generated_at else None,
            'data': self.data,
        }
