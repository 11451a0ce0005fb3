from django.db import models
from django.utils.translation import gettext_lazy as _


class TermType(models.TextChoices):
    FIRST_TERM = 'first-term', _('First Term')
    SECOND_TERM = 'second-term', _('Second Term')
    THIRD_TERM = 'third-term', _('Third Term')
    OTHER = 'other', _('Other')

    @classmethod
    def normalize(cls, value):
        """
        Map an exam type string to a TermType.

        Accepts both 'first-term' and 'first_term' spellings. Monthly tests,
        quizzes, assignments and anything unrecognised become OTHER.
        """
        if isinstance(value, cls):
            return value
        key = str(value or '').strip().lower().replace('_', '-')
        if key in cls.values:
            return cls(key)
        return cls.OTHER


class AttendanceStatus(models.TextChoices):
    PRESENT = 'present', _('Present')
    ABSENT = 'absent', _('Absent')
    LATE = 'late', _('Late')


class StudentStatus(models.TextChoices):
    ACTIVE = 'active', _('Active')
    INACTIVE = 'inactive', _('Inactive')
    GRADUATED = 'graduated', _('Graduated')
    TRANSFERRED = 'transferred', _('Transferred')


class ReportType(models.TextChoices):
    TERM_REPORT = 'Term Report', _('Term Report')
    PROGRESS_REPORT = 'Progress Report', _('Progress Report')
    ATTENDANCE_REPORT = 'Attendance Report', _('Attendance Report')
    FULL_ACADEMIC = 'Full Academic Report', _('Full Academic Report')
    STUDENT_REPORT = 'Student Report', _('Student Report')
    SCHOOL_REPORT = 'School Report', _('School Report')


class ReportScope(models.TextChoices):
    STUDENT = 'student', _('Student')
    CLASS = 'class', _('Class')
    SCHOOL = 'school', _('School')
