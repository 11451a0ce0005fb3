"""
Boundary validation for raw records supplied by the storage layer.

Each raw collection row is a dict as stored in the document store (camelCase
keys). Rows are bound to a form, cleaned once, and converted to the frozen
record types the aggregation layers consume.
"""
from django import forms

from core.choices import AttendanceStatus, StudentStatus, TermType
from .exceptions import ReportValidationError
from .records import (
    AttendanceRecord, ClassMeta, ExamMeta, MarkRecord, RecordSet, StudentMeta,
)


class RecordForm(forms.Form):
    """Base form mapping document-store keys onto form field names."""

    # {source key: field name}
    aliases = {}

    def __init__(self, row, *args, **kwargs):
        super().__init__(self.normalize(row), *args, **kwargs)

    @classmethod
    def normalize(cls, row):
        data = {}
        for key, value in dict(row).items():
            name = cls.aliases.get(key, key)
            # First spelling wins when a row carries several aliases
            if name not in data or data[name] in (None, ''):
                data[name] = value
        return data

    def to_record(self, index):
        raise NotImplementedError


class MarkRecordForm(RecordForm):
    """A single mark entry for one student, subject and exam."""
    aliases = {
        'id': 'record_id',
        'studentId': 'student_id',
        'subjectId': 'subject_id',
        'subjectName': 'subject_name',
        'examId': 'exam_id',
        'examName': 'exam_name',
        'marks': 'marks_obtained',
        'marksObtained': 'marks_obtained',
        'totalMarks': 'total_marks',
        'createdAt': 'created_at',
        'updatedAt': 'updated_at',
    }

    record_id = forms.CharField(required=False)
    student_id = forms.CharField()
    subject_id = forms.CharField(required=False)
    subject_name = forms.CharField(required=False)
    exam_id = forms.CharField(required=False)
    exam_name = forms.CharField(required=False)
    marks_obtained = forms.DecimalField(min_value=0)
    total_marks = forms.DecimalField(min_value=0, required=False)
    percentage = forms.DecimalField(min_value=0, max_value=100, required=False)
    created_at = forms.DateTimeField(required=False)
    updated_at = forms.DateTimeField(required=False)

    def clean(self):
        cleaned_data = super().clean()
        marks = cleaned_data.get('marks_obtained')
        total = cleaned_data.get('total_marks')

        if marks is not None and total:
            if marks > total:
                raise forms.ValidationError(
                    f'Marks obtained ({marks}) cannot exceed total marks ({total}).'
                )

        return cleaned_data

    def to_record(self, index):
        data = self.cleaned_data
        return MarkRecord(
            record_id=data['record_id'] or f'mark-{index:06d}',
            student_id=data['student_id'],
            subject_id=data['subject_id'],
            subject_name=data['subject_name'],
            exam_id=data['exam_id'],
            exam_name=data['exam_name'],
            marks_obtained=data['marks_obtained'],
            total_marks=data['total_marks'] or 0,
            percentage=data['percentage'],
            created_at=data['created_at'],
            updated_at=data['updated_at'],
        )


class AttendanceRecordForm(RecordForm):
    """One student's attendance status for one school day."""
    aliases = {
        'studentId': 'student_id',
    }

    student_id = forms.CharField()
    date = forms.DateField()
    status = forms.ChoiceField(choices=AttendanceStatus.choices)

    @classmethod
    def normalize(cls, row):
        data = super().normalize(row)
        if isinstance(data.get('status'), str):
            data['status'] = data['status'].strip().lower()
        return data

    def to_record(self, index):
        data = self.cleaned_data
        return AttendanceRecord(
            student_id=data['student_id'],
            date=data['date'],
            status=AttendanceStatus(data['status']),
        )


class ExamMetaForm(RecordForm):
    """Exam metadata; only the term classification matters to the engine."""
    aliases = {
        'id': 'exam_id',
        'examId': 'exam_id',
        'type': 'term_type',
        'termType': 'term_type',
    }

    exam_id = forms.CharField()
    term_type = forms.CharField(required=False)
    name = forms.CharField(required=False)

    def clean_term_type(self):
        return TermType.normalize(self.cleaned_data.get('term_type'))

    def to_record(self, index):
        data = self.cleaned_data
        return ExamMeta(
            exam_id=data['exam_id'],
            term_type=data['term_type'],
            name=data['name'],
        )


class StudentMetaForm(RecordForm):
    """Student metadata used to scope class and school cohorts."""
    aliases = {
        'id': 'student_id',
        'studentId': 'student_id',
        'fullName': 'name',
        'classId': 'class_id',
        'className': 'class_name',
        'admissionNumber': 'admission_number',
        'admissionNo': 'admission_number',
    }

    student_id = forms.CharField()
    name = forms.CharField(required=False)
    class_id = forms.CharField(required=False)
    class_name = forms.CharField(required=False)
    admission_number = forms.CharField(required=False)
    status = forms.CharField(required=False)

    def clean_status(self):
        status = (self.cleaned_data.get('status') or '').strip().lower()
        if not status:
            return None
        if status not in StudentStatus.values:
            raise forms.ValidationError(f'Unknown student status: {status}')
        return StudentStatus(status)

    def to_record(self, index):
        data = self.cleaned_data
        return StudentMeta(
            student_id=data['student_id'],
            name=data['name'],
            class_id=data['class_id'],
            class_name=data['class_name'],
            admission_number=data['admission_number'],
            status=data['status'],
        )


class ClassMetaForm(RecordForm):
    """Class metadata."""
    aliases = {
        'id': 'class_id',
        'classId': 'class_id',
        'classTeacherName': 'teacher_name',
        'classTeacher': 'teacher_name',
    }

    class_id = forms.CharField()
    name = forms.CharField(required=False)
    teacher_name = forms.CharField(required=False)

    def to_record(self, index):
        data = self.cleaned_data
        return ClassMeta(
            class_id=data['class_id'],
            name=data['name'],
            teacher_name=data['teacher_name'],
        )


COLLECTION_FORMS = {
    'marks': MarkRecordForm,
    'attendance': AttendanceRecordForm,
    'exams': ExamMetaForm,
    'students': StudentMetaForm,
    'classes': ClassMetaForm,
}


def _format_errors(form):
    return '; '.join(
        f"{field}: {' '.join(messages)}" for field, messages in form.errors.items()
    )


def load_collection(name, rows):
    """
    Validate one raw collection and return a tuple of records.

    Raises:
        ReportValidationError: naming the collection and row index of the
            first invalid row
    """
    form_class = COLLECTION_FORMS[name]
    records = []
    for index, row in enumerate(rows or []):
        if not isinstance(row, dict):
            raise ReportValidationError(
                f'{name}[{index}]: expected an object, got {type(row).__name__}',
                code='invalid_record',
            )
        form = form_class(row)
        if not form.is_valid():
            raise ReportValidationError(
                f'{name}[{index}]: {_format_errors(form)}',
                code='invalid_record',
            )
        records.append(form.to_record(index))
    return tuple(records)


def load_records(payload):
    """
    Validate a raw payload into a RecordSet.

    Args:
        payload: mapping with optional 'marks', 'attendance', 'exams',
            'students' and 'classes' lists of raw rows

    Returns:
        RecordSet of frozen records
    """
    if not isinstance(payload, dict):
        raise ReportValidationError('Report payload must be an object.', code='invalid_payload')
    return RecordSet(**{
        name: load_collection(name, payload.get(name))
        for name in COLLECTION_FORMS
    })
