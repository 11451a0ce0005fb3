from django.test import SimpleTestCase

from core.choices import AttendanceStatus, ReportScope, ReportType, StudentStatus, TermType


class TermTypeTests(SimpleTestCase):
    """Tests for exam term classification."""

    def test_hyphenated_values(self):
        """Test hyphenated term values."""
        self.assertEqual(TermType.normalize('first-term'), TermType.FIRST_TERM)
        self.assertEqual(TermType.normalize('third-term'), TermType.THIRD_TERM)

    def test_underscore_spelling(self):
        """Test underscore term spelling."""
        self.assertEqual(TermType.normalize('second_term'), TermType.SECOND_TERM)

    def test_case_and_whitespace_ignored(self):
        """Test case and whitespace are ignored."""
        self.assertEqual(TermType.normalize('  First_Term '), TermType.FIRST_TERM)

    def test_non_term_exams(self):
        """Test non-term exams map to other."""
        for value in ('monthly_test', 'quiz', 'assignment', '', None, 'mid-term'):
            with self.subTest(value=value):
                self.assertEqual(TermType.normalize(value), TermType.OTHER)

    def test_member_passes_through(self):
        """Test a member passes through unchanged."""
        self.assertIs(TermType.normalize(TermType.SECOND_TERM), TermType.SECOND_TERM)


class ChoicesTests(SimpleTestCase):
    """Tests for the report enumerations."""

    def test_attendance_statuses(self):
        """Test attendance statuses."""
        self.assertEqual(AttendanceStatus.values, ['present', 'absent', 'late'])

    def test_student_statuses(self):
        """Test student statuses."""
        self.assertIn('active', StudentStatus.values)

    def test_report_type_labels(self):
        """Test report type labels."""
        self.assertEqual(ReportType.TERM_REPORT, 'Term Report')
        self.assertEqual(ReportType.FULL_ACADEMIC, 'Full Academic Report')

    def test_report_scopes(self):
        """Test report scopes."""
        self.assertEqual(ReportScope.values, ['student', 'class', 'school'])
