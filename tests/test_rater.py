"""Tests for the per-dimension rater."""

import pytest

from examiner_panel.libs.llm import InferenceError
from examiner_panel.tools.essay_grading.models import Dimension, DimensionFailure, DimensionResult
from examiner_panel.tools.essay_grading.rater import DimensionRater
from examiner_panel.tools.essay_grading.rubric_config import default_rubric_config


@pytest.fixture
def rubric():
    return default_rubric_config()


@pytest.fixture
def evaluation_examiner(rubric):
    return rubric.get_examiners("economics")[3]


@pytest.mark.asyncio
async def test_rate_success(fake_client_class, make_reply, sample_request, rubric, evaluation_examiner):
    client = fake_client_class(replies={"AO4": make_reply(4, band="L3")})
    rater = DimensionRater(client, timeout=1, temperature=0.2, max_tokens=1500)

    outcome = await rater.rate(evaluation_examiner, sample_request, rubric.get_question_type("14-mark"))

    assert isinstance(outcome, DimensionResult)
    assert outcome.dimension == Dimension.AO4
    assert outcome.score == 4
    assert outcome.max_score == 5

    call = client.calls[0]
    assert call["timeout"] == 1
    assert call["temperature"] == 0.2
    assert call["max_tokens"] == 1500
    assert "Maximum 5 marks" in call["system_prompt"]
    assert sample_request.essay in call["user_content"]


@pytest.mark.asyncio
async def test_max_score_follows_question_type(fake_client_class, make_reply, sample_request,
                                               rubric, evaluation_examiner):
    client = fake_client_class(replies={"AO4": make_reply(6)})
    rater = DimensionRater(client)

    outcome = await rater.rate(evaluation_examiner, sample_request, rubric.get_question_type("10-mark"))

    assert outcome.max_score == 2
    assert outcome.score == 2


@pytest.mark.asyncio
async def test_timeout_becomes_failure(fake_client_class, sample_request, rubric, evaluation_examiner):
    client = fake_client_class(delays={"AO4": 1})
    rater = DimensionRater(client, timeout=0.05)

    outcome = await rater.rate(evaluation_examiner, sample_request, rubric.get_question_type("14-mark"))

    assert isinstance(outcome, DimensionFailure)
    assert outcome.dimension == Dimension.AO4
    assert outcome.examiner_name == "Evaluation Examiner"
    assert "timed out" in outcome.reason


@pytest.mark.asyncio
async def test_service_error_becomes_failure(fake_client_class, sample_request, rubric, evaluation_examiner):
    client = fake_client_class(replies={"AO4": InferenceError("Empty response from inference service")})
    rater = DimensionRater(client)

    outcome = await rater.rate(evaluation_examiner, sample_request, rubric.get_question_type("14-mark"))

    assert isinstance(outcome, DimensionFailure)
    assert outcome.reason == "Empty response from inference service"


@pytest.mark.asyncio
async def test_unparseable_reply_is_degraded_not_failed(fake_client_class, sample_request, rubric,
                                                        evaluation_examiner):
    client = fake_client_class(replies={"AO4": "I would give this essay a score: 3 out of 5."})
    rater = DimensionRater(client)

    outcome = await rater.rate(evaluation_examiner, sample_request, rubric.get_question_type("14-mark"))

    assert isinstance(outcome, DimensionResult)
    assert outcome.degraded is True
    assert outcome.score == 3


def test_from_configs_reads_dimension_settings(fake_client_class, sample_config):
    rater = DimensionRater.from_configs(fake_client_class(), sample_config)
    assert rater.timeout == 1
    assert rater.temperature == 0.2
    assert rater.max_tokens == 1500


def test_from_configs_defaults(fake_client_class):
    rater = DimensionRater.from_configs(fake_client_class(), {})
    assert rater.timeout == 25.0
    assert rater.max_tokens == 1500
