"""
Record selection helpers: latest-record choice and exam term lookup.
"""
from collections import defaultdict
import logging

from core.choices import TermType
from .exceptions import ReportValidationError

logger = logging.getLogger(__name__)


# Term slots in report column order
TERM_SLOTS = (TermType.FIRST_TERM, TermType.SECOND_TERM, TermType.THIRD_TERM)


def _recency_key(record):
    # Records without any timestamp sort oldest; record_id breaks ties
    ts = record.timestamp
    return (ts is not None, ts.timestamp() if ts is not None else 0.0, str(record.record_id))


def select_latest(records):
    """
    Pick the authoritative mark record from a group of re-entries.

    The record with the greatest updated_at (or created_at when updated_at is
    missing) wins. Ties are broken by record_id so the result does not depend
    on input order.
    """
    records = list(records)
    if not records:
        raise ValueError('select_latest() requires at least one record')
    return max(records, key=_recency_key)


def group_by_subject(records):
    """Group mark records by subject key, preserving input order within a group."""
    grouped = defaultdict(list)
    for record in records:
        grouped[record.subject_key].append(record)
    return dict(grouped)


def latest_by_subject(records):
    """Return {subject_key: latest MarkRecord} for a student's marks."""
    return {
        subject_key: select_latest(subject_records)
        for subject_key, subject_records in group_by_subject(records).items()
    }


class TermResolver:
    """
    Maps exam ids to term slots.

    Built once per aggregation run from the exam metadata collection. Exams
    that are not classified as a term exam, or are missing from the metadata,
    resolve to None.
    """

    def __init__(self, exam_terms=None):
        self._exam_terms = dict(exam_terms or {})

    @classmethod
    def from_exams(cls, exams):
        exam_terms = {}
        for exam in exams:
            term_type = TermType.normalize(exam.term_type)
            existing = exam_terms.get(exam.exam_id)
            if existing is not None and existing != term_type:
                raise ReportValidationError(
                    f'Exam {exam.exam_id} is classified as both {existing} and {term_type}.',
                    code='conflicting_term',
                )
            exam_terms[exam.exam_id] = term_type
        logger.debug(f'Term resolver built from {len(exam_terms)} exams')
        return cls(exam_terms)

    def resolve(self, exam_id):
        term_type = self._exam_terms.get(exam_id)
        if term_type in TERM_SLOTS:
            return term_type
        return None

    def __len__(self):
        return len(self._exam_terms)
