"""Combine per-dimension scores into one weighted mark, grade and confidence."""

import statistics
from dataclasses import dataclass
from typing import Iterable, List

from .models import DimensionResult, MarkBand, QuestionTypeConfig
from .normalizer import round_half_up
from .rubric_config import BOTTOM_GRADE, GRADE_THRESHOLDS, select_mark_band

BASE_CONFIDENCE = 0.9
FAILURE_PENALTY = 0.15
SPREAD_PENALTY = 0.1
MIN_CONFIDENCE = 0.3
MAX_CONFIDENCE = 0.98

# (lower percentage bound, UMS at that bound, UMS per percentage point)
UMS_SEGMENTS = (
    (90, 80, 0.2),
    (80, 70, 1.0),
    (70, 60, 1.0),
    (60, 50, 1.0),
    (50, 40, 1.0),
    (40, 30, 1.0),
)
UMS_BOTTOM_SLOPE = 0.75


@dataclass(frozen=True)
class AggregateScore:
    overall_score: float
    max_score: int
    percentage: int
    grade: str
    ums: int
    band: str
    confidence: float


def weighted_overall(results: Iterable[DimensionResult], question_config: QuestionTypeConfig) -> float:
    """Sum of each dimension's proportion times its mark allocation, to one decimal.

    Dimensions without a result add nothing; the ceiling stays at total marks.
    """
    total = 0.0
    for result in results:
        allocation = question_config.max_marks_for(result.dimension)
        if allocation > 0:
            total += result.score / result.max_score * allocation
    return round_half_up(total, 1)


def calculate_grade(percentage: float) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if percentage >= threshold:
            return grade
    return BOTTOM_GRADE


def calculate_ums(percentage: float) -> int:
    """Uniform mark scale via a piecewise linear table."""
    for lower, base, slope in UMS_SEGMENTS:
        if percentage >= lower:
            return int(round_half_up(base + (percentage - lower) * slope))
    return int(round_half_up(percentage * UMS_BOTTOM_SLOPE))


def score_spread(results: List[DimensionResult]) -> float:
    """Population standard deviation of normalized scores (0 for fewer than two)."""
    if len(results) < 2:
        return 0.0
    return statistics.pstdev([r.normalized_score for r in results])


def calculate_confidence(results: List[DimensionResult], failed_count: int) -> float:
    confidence = BASE_CONFIDENCE - FAILURE_PENALTY * failed_count - SPREAD_PENALTY * score_spread(results)
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, confidence))


def aggregate_scores(results: List[DimensionResult], question_config: QuestionTypeConfig,
                     mark_bands: List[MarkBand], failed_count: int) -> AggregateScore:
    """
    Aggregate successful dimension results.

    Args:
        results: Successful dimension results (any order)
        question_config: Question type with the mark allocation
        mark_bands: Band table for the question type
        failed_count: Number of dimensions that produced no result

    Returns:
        AggregateScore with overall mark, grade, UMS, band and confidence
    """
    overall = min(weighted_overall(results, question_config), float(question_config.total_marks))
    max_score = question_config.total_marks
    exact_percentage = overall / max_score * 100
    percentage = int(round_half_up(exact_percentage))
    mark_band = select_mark_band(mark_bands, overall)

    return AggregateScore(
        overall_score=overall,
        max_score=max_score,
        percentage=percentage,
        grade=calculate_grade(percentage),
        ums=calculate_ums(exact_percentage),
        band=mark_band.level if mark_band else "L1",
        confidence=calculate_confidence(results, failed_count),
    )
