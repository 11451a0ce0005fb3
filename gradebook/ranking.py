"""
Class rank engine.

Students are ranked by average percent, highest first, with strictly
sequential ranks: students on the same average receive consecutive ranks in
roster order rather than a shared position. Ranks are only correct when the
whole cohort is supplied in one call.
"""
import logging

from .exceptions import ReportValidationError
from .records import RankedStudent

logger = logging.getLogger(__name__)


def rank_students(reports):
    """
    Rank a full class cohort.

    Args:
        reports: StudentReports for every active student in the class, in
            roster order, all built in the same aggregation mode

    Returns:
        list of RankedStudent ordered by rank (1..N)
    """
    reports = list(reports)
    seen = set()
    for report in reports:
        if report.student_id in seen:
            raise ReportValidationError(
                f'Student {report.student_id} appears more than once in the cohort.',
                code='duplicate_student',
            )
        seen.add(report.student_id)
    if len({report.is_annual for report in reports}) > 1:
        raise ReportValidationError(
            'Cohort mixes single-term and annual reports.',
            code='mixed_mode',
        )

    # sorted() is stable, so ties keep roster order
    ordered = sorted(reports, key=lambda r: r.average_percent, reverse=True)
    size = len(ordered)
    return [
        RankedStudent(rank=i, report=report.with_rank(i, size))
        for i, report in enumerate(ordered, 1)
    ]


def class_rank_for(student_id, reports):
    """
    Rank the full cohort and extract one student's position.

    Returns:
        tuple: (rank or None if the student is not in the cohort, class size)
    """
    ranked = rank_students(reports)
    for entry in ranked:
        if entry.report.student_id == student_id:
            return entry.rank, len(ranked)
    logger.debug(f'Student {student_id} is not part of the ranked cohort')
    return None, len(ranked)
