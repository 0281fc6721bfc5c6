"""Tests for weighted aggregation, grades, UMS and confidence."""

import itertools
import pytest

from examiner_panel.tools.essay_grading.aggregator import (
    MAX_CONFIDENCE,
    MIN_CONFIDENCE,
    aggregate_scores,
    calculate_confidence,
    calculate_grade,
    calculate_ums,
    score_spread,
    weighted_overall,
)
from examiner_panel.tools.essay_grading.models import Dimension, DimensionResult
from examiner_panel.tools.essay_grading.rubric_config import DEFAULT_MARK_BANDS, default_rubric_config


def _result(dimension, score, max_score):
    return DimensionResult(
        dimension=dimension,
        examiner_id=dimension.value.lower(),
        examiner_name=f"{dimension.value} Examiner",
        score=score,
        max_score=max_score,
        band="L2",
        feedback="ok",
    )


@pytest.fixture
def fourteen_mark():
    return default_rubric_config().get_question_type("14-mark")


@pytest.fixture
def partial_results():
    """AO1 2/2, AO2 2/3, AO3 failed, AO4 4/5."""
    return [
        _result(Dimension.AO1, 2, 2),
        _result(Dimension.AO2, 2, 3),
        _result(Dimension.AO4, 4, 5),
    ]


class TestWorkedExample:
    """14-mark question with the analysis examiner failing."""

    def test_overall_and_grade(self, partial_results, fourteen_mark):
        aggregate = aggregate_scores(partial_results, fourteen_mark, DEFAULT_MARK_BANDS["14-mark"], failed_count=1)

        assert aggregate.overall_score == 8.0
        assert aggregate.max_score == 14
        assert aggregate.percentage == 57
        assert aggregate.grade == "D"
        assert aggregate.band == "L2"
        assert aggregate.ums == 47

    def test_confidence(self, partial_results, fourteen_mark):
        aggregate = aggregate_scores(partial_results, fourteen_mark, DEFAULT_MARK_BANDS["14-mark"], failed_count=1)
        # 0.9 - 0.15 * 1 - 0.1 * pstdev(1.0, 0.667, 0.8)
        assert aggregate.confidence == pytest.approx(0.7363, abs=1e-4)

    def test_completion_order_does_not_matter(self, partial_results, fourteen_mark):
        outcomes = {
            aggregate_scores(list(order), fourteen_mark, DEFAULT_MARK_BANDS["14-mark"], failed_count=1)
            for order in itertools.permutations(partial_results)
        }
        assert len(outcomes) == 1


class TestWeightedOverall:

    def test_rescales_to_allocation(self, fourteen_mark):
        """A result reported on a different scale is weighted by its proportion."""
        results = [_result(Dimension.AO4, 3, 6)]
        assert weighted_overall(results, fourteen_mark) == 2.5

    def test_unallocated_dimension_adds_nothing(self):
        four_mark = default_rubric_config().get_question_type("4-mark")
        results = [_result(Dimension.AO1, 2, 2), _result(Dimension.AO4, 5, 5)]
        assert weighted_overall(results, four_mark) == 2.0

    def test_rounds_to_one_decimal(self, fourteen_mark):
        results = [_result(Dimension.AO2, 1, 3)]
        assert weighted_overall(results, fourteen_mark) == 1.0

    def test_full_marks(self, fourteen_mark):
        results = [_result(d, fourteen_mark.max_marks_for(d), fourteen_mark.max_marks_for(d)) for d in Dimension]
        aggregate = aggregate_scores(results, fourteen_mark, DEFAULT_MARK_BANDS["14-mark"], failed_count=0)
        assert aggregate.overall_score == 14
        assert aggregate.percentage == 100
        assert aggregate.grade == "A*"
        assert aggregate.band == "L3"
        assert aggregate.ums == 82


@pytest.mark.parametrize("percentage,grade", [
    (100, "A*"), (90, "A*"), (89, "A"), (80, "A"), (70, "B"), (60, "C"),
    (57, "D"), (50, "D"), (40, "E"), (39, "U"), (0, "U"),
])
def test_calculate_grade(percentage, grade):
    assert calculate_grade(percentage) == grade


@pytest.mark.parametrize("percentage,ums", [
    (100, 82), (90, 80), (85, 75), (80, 70), (65, 55), (40, 30), (20, 15), (0, 0),
])
def test_calculate_ums(percentage, ums):
    assert calculate_ums(percentage) == ums


class TestConfidence:

    def test_single_result_has_no_spread(self):
        assert score_spread([_result(Dimension.AO1, 1, 2)]) == 0.0

    def test_identical_scores_have_no_spread(self):
        results = [_result(Dimension.AO1, 1, 2), _result(Dimension.AO3, 2, 4)]
        assert score_spread(results) == 0.0
        assert calculate_confidence(results, 0) == pytest.approx(0.9)

    def test_each_failure_lowers_confidence(self, partial_results):
        values = [calculate_confidence(partial_results, failed) for failed in range(4)]
        assert values == sorted(values, reverse=True)
        assert values[0] > values[1]

    def test_clamped(self):
        results = [_result(Dimension.AO1, 0, 2), _result(Dimension.AO2, 3, 3)]
        assert calculate_confidence(results, 4) == MIN_CONFIDENCE
        assert calculate_confidence(results, 10) == MIN_CONFIDENCE
        assert MIN_CONFIDENCE <= calculate_confidence(results, 0) <= MAX_CONFIDENCE
