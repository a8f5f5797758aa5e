"""
Score aggregation.

Pure functions from the per-examiner scores to the overall mark, grade,
percentage, UMS and level. No I/O; the same input always produces the same output.
"""

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from essay_grader.catalog import ExaminerCatalog
from essay_grader.models import ExaminerScore


class Aggregate(NamedTuple):
    """Totals derived from a list of examiner scores."""

    total_score: float
    max_total_score: float
    overall_score: float
    percentage: int
    ums: int
    grade: str
    grade_description: str
    level: str | None


def _round_half_up(value: float, exponent: str) -> float:
    return float(Decimal(repr(value)).quantize(Decimal(exponent), rounding=ROUND_HALF_UP))


def round_one_decimal(value: float) -> float:
    """Round half up to one decimal place (6.25 -> 6.3)."""
    return _round_half_up(value, "0.1")


def overall_score(total_score: float, max_total_score: float) -> float:
    """Normalise a raw total onto the 0-10 scale."""
    if max_total_score <= 0:
        raise ValueError("max_total_score must be positive")
    return round_one_decimal(total_score * 10 / max_total_score)


def percentage_of(total_score: float, max_total_score: float) -> int:
    """Whole-number percentage, rounded half up."""
    if max_total_score <= 0:
        raise ValueError("max_total_score must be positive")
    return int(_round_half_up(total_score * 100 / max_total_score, "1"))


# (minimum percentage, UMS at that minimum, UMS per percentage point)
_UMS_SEGMENTS = (
    (90, 80, 0.2),
    (80, 70, 1.0),
    (70, 60, 1.0),
    (60, 50, 1.0),
    (50, 40, 1.0),
    (40, 30, 1.0),
    (0, 0, 0.75),
)


def ums_score(total_score: float, max_total_score: float) -> int:
    """
    Convert a raw total to Edexcel's uniform mark scale (simplified).

    Each grade boundary maps to a fixed UMS value and marks above it are
    interpolated linearly; the top segment is compressed so full marks
    give 82.
    """
    if max_total_score <= 0:
        raise ValueError("max_total_score must be positive")

    percentage = total_score * 100 / max_total_score
    for floor, base, rate in _UMS_SEGMENTS:
        if percentage >= floor:
            return int(_round_half_up(base + (percentage - floor) * rate, "1"))
    return 0


def aggregate(
    scores: Sequence[ExaminerScore],
    catalog: ExaminerCatalog,
    question_type: str,
) -> Aggregate:
    """
    Aggregate examiner scores.

    The overall score depends only on the ratio of the summed scores to
    the summed maxima, so the scale does not change with panel size.

    Args:
        scores: One entry per examiner.
        catalog: Supplies grade boundaries and level descriptors.
        question_type: Label used to look up the level descriptor.

    Returns:
        Aggregate totals, percentage, UMS, grade and level.

    Raises:
        ValueError: If ``scores`` is empty.
    """
    if not scores:
        raise ValueError("Cannot aggregate an empty score list")

    total = sum(s.score for s in scores)
    max_total = sum(s.max_score for s in scores)
    band = catalog.grade_for(total, max_total)

    level = None
    qt_config = catalog.question_type(question_type)
    if qt_config is not None:
        marks = _round_half_up(total * qt_config.total_marks / max_total, "1")
        mark_band = catalog.mark_band(question_type, marks)
        level = mark_band.level if mark_band else None

    return Aggregate(
        total_score=total,
        max_total_score=max_total,
        overall_score=overall_score(total, max_total),
        percentage=percentage_of(total, max_total),
        ums=ums_score(total, max_total),
        grade=band.grade,
        grade_description=band.description,
        level=level,
    )
