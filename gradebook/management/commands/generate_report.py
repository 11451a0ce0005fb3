"""
Management command to generate a student, class or school report from a
JSON export of raw records.

Usage:
    python manage.py generate_report student --input records.json --student S1 --term Annual
    python manage.py generate_report class --input records.json --class C1 --report-type "Progress Report"
    python manage.py generate_report school --input records.json --term Annual

The input file holds 'marks', 'attendance', 'exams', 'students' and
'classes' lists as exported from the document store. The generated report
is written to stdout as JSON.
"""
import json

from django.core.management.base import BaseCommand, CommandError

from core.choices import ReportScope
from gradebook.exceptions import EntityNotFound, ReportValidationError
from gradebook.forms import load_records
from gradebook.services import generate_class_report, generate_school_report, generate_student_report


class Command(BaseCommand):
    help = 'Generate a student, class or school report from a JSON record export'

    def add_arguments(self, parser):
        parser.add_argument(
            'scope',
            choices=ReportScope.values,
            help='Report scope',
        )
        parser.add_argument(
            '--input',
            required=True,
            help='Path to the JSON record export',
        )
        parser.add_argument(
            '--student',
            help='Student id (student scope)',
        )
        parser.add_argument(
            '--class',
            dest='class_id',
            help='Class id (class scope)',
        )
        parser.add_argument(
            '--term',
            default='',
            help='Term label, or "Annual" for the three-term composite',
        )
        parser.add_argument(
            '--report-type',
            help='Report type label, e.g. "Term Report"',
        )
        parser.add_argument(
            '--teachers',
            type=int,
            default=0,
            help='Teacher head count for the school summary',
        )
        parser.add_argument(
            '--indent',
            type=int,
            default=2,
            help='JSON indentation',
        )

    def handle(self, *args, **options):
        scope = options['scope']
        payload = self._read_payload(options['input'])

        try:
            records = load_records(payload)
            if scope == ReportScope.STUDENT:
                if not options.get('student'):
                    raise CommandError('--student is required for student reports')
                report = generate_student_report(
                    options['student'],
                    records.students,
                    records.marks,
                    records.attendance,
                    exams=records.exams,
                    term=options['term'],
                    report_type=options.get('report_type'),
                    classes=records.classes,
                )
            elif scope == ReportScope.CLASS:
                if not options.get('class_id'):
                    raise CommandError('--class is required for class reports')
                report = generate_class_report(
                    options['class_id'],
                    records.classes,
                    records.students,
                    records.marks,
                    records.attendance,
                    exams=records.exams,
                    term=options['term'],
                    report_type=options.get('report_type'),
                )
            else:
                report = generate_school_report(
                    records.classes,
                    records.students,
                    records.marks,
                    records.attendance,
                    exams=records.exams,
                    term=options['term'],
                    report_type=options.get('report_type'),
                    teacher_count=options['teachers'],
                )
        except EntityNotFound as e:
            raise CommandError(str(e))
        except ReportValidationError as e:
            raise CommandError('; '.join(e.messages))

        self.stdout.write(json.dumps(report.as_dict(), indent=options['indent']))
        self.stderr.write(self.style.SUCCESS(f'Generated: {report.title}'))

    def _read_payload(self, path):
        try:
            with open(path, encoding='utf-8') as f:
                return json.load(f)
        except OSError as e:
            raise CommandError(f'Could not read {path}: {e}')
        except json.JSONDecodeError as e:
            raise CommandError(f'Invalid JSON in {path}: {e}')
