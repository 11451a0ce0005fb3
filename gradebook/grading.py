"""
Grade banding and percentage arithmetic.

All percentages handled by the report engine are integers in [0, 100],
rounded half up.
"""
from decimal import Decimal, ROUND_HALF_UP


# (minimum percentage, label), evaluated from highest to lowest
GRADE_BANDS = (
    (Decimal('90'), 'A+'),
    (Decimal('80'), 'A'),
    (Decimal('75'), 'B+'),
    (Decimal('70'), 'B'),
    (Decimal('65'), 'C+'),
    (Decimal('60'), 'C'),
    (Decimal('50'), 'D'),
    (Decimal('0'), 'F'),
)

FAIL_GRADE = 'F'

# Best first
GRADE_ORDER = tuple(label for _, label in GRADE_BANDS)


def round_percent(value):
    """Round half up to an integer and clamp to [0, 100]."""
    if value is None:
        return 0
    rounded = int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))
    return max(0, min(100, rounded))


def mean_percent(values):
    """Rounded arithmetic mean of a sequence of percentages, 0 when empty."""
    values = list(values)
    if not values:
        return 0
    total = sum(Decimal(str(v)) for v in values)
    return round_percent(total / len(values))


def grade_for_percent(percentage):
    """Map a percentage to its letter grade. First matching band wins."""
    if percentage is None:
        return FAIL_GRADE
    score = Decimal(str(percentage))
    for min_percentage, label in GRADE_BANDS:
        if score >= min_percentage:
            return label
    return FAIL_GRADE

