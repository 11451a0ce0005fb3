"""
Subject aggregation: one SubjectResult per subject for a student.

Single-term reports use the latest mark per subject across every exam
supplied. Annual reports average up to three term-exam percentages per
subject and fall back to the latest mark of any exam when a subject has no
term-exam marks at all.
"""
from collections import defaultdict
import logging

from .grading import grade_for_percent, mean_percent
from .records import SubjectResult
from .selectors import (
    TERM_SLOTS, TermResolver, group_by_subject, latest_by_subject, select_latest,
)

logger = logging.getLogger(__name__)


def _ordered(results):
    return tuple(sorted(results, key=lambda r: (r.subject_name, r.subject_key)))


def aggregate_term_subjects(marks):
    """Single-term mode: latest mark per subject, graded."""
    results = []
    for subject_key, latest in latest_by_subject(marks).items():
        percent = latest.percent
        results.append(SubjectResult(
            subject_key=subject_key,
            subject_name=latest.display_subject,
            percentage=percent,
            grade=grade_for_percent(percent),
            exam_name=latest.exam_name,
        ))
    return _ordered(results)


def latest_by_term(subject_marks, resolver):
    """
    Partition one subject's marks by term slot, keeping the latest per term.

    Returns {TermType: MarkRecord} holding only the slots that have a
    term-exam record.
    """
    by_term = defaultdict(list)
    for mark in subject_marks:
        term_type = resolver.resolve(mark.exam_id)
        if term_type is not None:
            by_term[term_type].append(mark)
    return {term_type: select_latest(records) for term_type, records in by_term.items()}


def annual_subject_result(subject_key, subject_marks, resolver):
    """Build the annual SubjectResult for one subject's marks."""
    term_marks = latest_by_term(subject_marks, resolver)
    term_percents = [
        term_marks[slot].percent if slot in term_marks else None
        for slot in TERM_SLOTS
    ]
    present = [p for p in term_percents if p is not None]

    latest = select_latest(subject_marks)
    if present:
        annual_percent = mean_percent(present)
    else:
        # No term exams for this subject; use the latest mark of any exam
        annual_percent = latest.percent
        logger.debug(f'No term-exam marks for {subject_key}, using latest mark {latest.record_id}')

    p1, p2, p3 = term_percents
    return SubjectResult(
        subject_key=subject_key,
        subject_name=latest.display_subject,
        percentage=annual_percent,
        grade=grade_for_percent(annual_percent),
        exam_name='Annual',
        is_annual=True,
        term1_percent=p1,
        term2_percent=p2,
        term3_percent=p3,
    )


def aggregate_annual_subjects(marks, resolver=None):
    """Annual mode: term composite per subject with fallback."""
    resolver = resolver or TermResolver()
    results = [
        annual_subject_result(subject_key, subject_marks, resolver)
        for subject_key, subject_marks in group_by_subject(marks).items()
    ]
    return _ordered(results)


def aggregate_subjects(marks, annual=False, resolver=None):
    """Dispatch to single-term or annual aggregation."""
    if annual:
        return aggregate_annual_subjects(marks, resolver)
    return aggregate_term_subjects(marks)
