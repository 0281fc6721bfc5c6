"""Grading orchestrator: fan out one examiner per dimension, then aggregate."""

import asyncio
import logging
import time
from typing import List, Optional, Tuple

from examiner_panel.libs.config_loader import ConfigType, get_config
from examiner_panel.libs.llm import InferenceClient
from .aggregator import aggregate_scores
from .annotations import DEFAULT_ANNOTATION_LIMIT, scan_annotations
from .consensus import ConsensusSynthesizer
from .errors import ErrorCode, GradingError
from .feedback import diagram_feedback
from .models import (
    DimensionFailure,
    DimensionResult,
    GradingMetadata,
    GradingRequest,
    GradingResult,
    QuestionTypeConfig,
    RubricDimension,
)
from .rater import CompletionClient, DimensionRater
from .rubric_config import RubricConfig, default_rubric_config

LOG = logging.getLogger(__name__)

DEFAULT_MAX_ESSAY_CHARS = 10000
DEFAULT_DEADLINE = 40.0


def validate_grading_request(request: GradingRequest, rubric: RubricConfig,
                             max_essay_chars: int = DEFAULT_MAX_ESSAY_CHARS) -> List[str]:
    """Return every problem with a request (empty list when it can be graded)."""
    errors = []

    if not request.question.strip():
        errors.append("Question is required")

    if not request.essay.strip():
        errors.append("Essay is required")

    if len(request.essay) > max_essay_chars:
        errors.append(f"Essay exceeds maximum length of {max_essay_chars} characters")

    if rubric.get_question_type(request.question_type) is None:
        errors.append(f"Invalid question type: {request.question_type}")

    if rubric.get_examiners(request.subject) is None:
        errors.append(f"Invalid subject: {request.subject}")

    return errors


class GradingOrchestrator:
    """Grade essays with a panel of concurrent examiners."""

    def __init__(self, configs: ConfigType,
                 rubric: Optional[RubricConfig] = None,
                 client: Optional[CompletionClient] = None,
                 model: Optional[str] = None):
        """
        Initialize the orchestrator.

        Args:
            configs: Configuration dictionary (required)
            rubric: Rubric tables (defaults to the built-in Edexcel rubric)
            client: Inference client; built lazily from configs when omitted
            model: Model to use (overrides config value)
        """
        self.configs = configs
        self.rubric = rubric or default_rubric_config()
        self.model_name = model
        self._client = client

        self.max_essay_chars = get_config("grading.max_essay_chars", configs, default=DEFAULT_MAX_ESSAY_CHARS)
        self.deadline = get_config("grading.deadline", configs, default=DEFAULT_DEADLINE)
        self.annotation_limit = get_config("grading.annotations.limit", configs, default=DEFAULT_ANNOTATION_LIMIT)

    def _get_client(self) -> CompletionClient:
        if self._client is None:
            try:
                self._client = InferenceClient.from_configs(self.configs, model=self.model_name)
            except (KeyError, ValueError) as e:
                raise GradingError(f"Inference service is not configured: {e}", ErrorCode.CONFIG_ERROR) from e
        return self._client

    async def run_examiners(self, rater: DimensionRater, examiners: List[RubricDimension],
                            request: GradingRequest,
                            question_config: QuestionTypeConfig) -> Tuple[List[DimensionResult], List[DimensionFailure]]:
        """
        Run every examiner concurrently and wait for all of them to settle.

        A failing or slow examiner never cancels the others. Only the outer
        deadline (``grading.deadline``) cancels calls still in flight; those
        count as failures and everything already settled is kept.

        Returns:
            (successes, failures), both in examiner order
        """
        tasks = [
            asyncio.create_task(rater.rate(examiner, request, question_config), name=f"examiner-{examiner.id}")
            for examiner in examiners
        ]
        try:
            _, pending = await asyncio.wait(tasks, timeout=self.deadline)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        if pending:
            LOG.warning(f"Grading deadline of {self.deadline}s reached with {len(pending)} examiner(s) still running")
            await asyncio.gather(*pending, return_exceptions=True)

        successes: List[DimensionResult] = []
        failures: List[DimensionFailure] = []
        for examiner, task in zip(examiners, tasks):
            if task.cancelled():
                failures.append(DimensionFailure(
                    dimension=examiner.dimension,
                    examiner_name=examiner.name,
                    reason=f"exceeded grading deadline of {self.deadline}s",
                ))
                continue
            error = task.exception()
            if error is not None:
                LOG.error(f"Examiner {examiner.name} raised unexpectedly: {error}")
                failures.append(DimensionFailure(
                    dimension=examiner.dimension,
                    examiner_name=examiner.name,
                    reason=str(error) or type(error).__name__,
                ))
                continue
            outcome = task.result()
            if isinstance(outcome, DimensionResult):
                successes.append(outcome)
            else:
                failures.append(outcome)
        return successes, failures

    async def grade_submission(self, request: GradingRequest) -> GradingResult:
        """
        Grade one essay.

        Args:
            request: The essay and its question

        Returns:
            GradingResult, possibly with fewer dimensions and lower confidence
            when some examiners failed

        Raises:
            GradingError: CONFIG_ERROR, VALIDATION_ERROR, or GRADING_ERROR when
                every examiner failed
        """
        start_time = time.monotonic()
        client = self._get_client()

        errors = validate_grading_request(request, self.rubric, self.max_essay_chars)
        if errors:
            raise GradingError("; ".join(errors), ErrorCode.VALIDATION_ERROR, {"errors": errors})

        question_config = self.rubric.get_question_type(request.question_type)
        examiners = [
            examiner for examiner in self.rubric.get_examiners(request.subject)
            if question_config.max_marks_for(examiner.dimension) > 0
        ]
        if not examiners:
            raise GradingError(
                f"No examiners carry marks for {request.question_type} in {request.subject}",
                ErrorCode.CONFIG_ERROR,
            )

        LOG.info(f"Grading {request.question_type} {request.subject} essay with {len(examiners)} examiners")
        rater = DimensionRater.from_configs(client, self.configs)
        successes, failures = await self.run_examiners(rater, examiners, request, question_config)

        failed_names = [f.examiner_name for f in failures]
        if not successes:
            raise GradingError(
                f"All examiners failed to grade the essay: {', '.join(failed_names)}",
                ErrorCode.GRADING_ERROR,
                {"failed_dimensions": [f.dimension.value for f in failures],
                 "reasons": {f.examiner_name: f.reason for f in failures}},
            )
        if failures:
            LOG.warning(f"{len(failures)} examiner(s) failed: {', '.join(failed_names)}")

        aggregate = aggregate_scores(
            successes,
            question_config,
            self.rubric.mark_bands.get(request.question_type, []),
            failed_count=len(failures),
        )

        synthesizer = ConsensusSynthesizer.from_configs(client, self.configs)
        consensus = await synthesizer.synthesize(successes, request)

        annotations = scan_annotations(request.essay, self.annotation_limit)

        result = GradingResult(
            overall_score=aggregate.overall_score,
            max_score=aggregate.max_score,
            percentage=aggregate.percentage,
            grade=aggregate.grade,
            ums=aggregate.ums,
            band=aggregate.band,
            dimension_results=successes,
            summary=consensus.summary,
            key_strengths=consensus.key_strengths,
            priority_improvements=consensus.priority_improvements,
            annotations=annotations,
            confidence=aggregate.confidence,
            diagram_feedback=diagram_feedback(question_config, request.has_diagram),
            time_estimate=(f"{question_config.time_allocation} minutes recommended"
                           if question_config.time_allocation else None),
            word_count=len(request.essay.split()),
            metadata=GradingMetadata(
                question_type=request.question_type,
                unit=request.unit,
                subject=request.subject,
                processing_time=round(time.monotonic() - start_time, 3),
                model_used=getattr(client, "model_name", "unknown"),
                confidence=aggregate.confidence,
                failed_count=len(failures),
                failed_dimensions=failed_names,
            ),
        )
        LOG.info(f"Graded essay: {result.overall_score:g}/{result.max_score:g} "
                 f"({result.grade}, confidence {result.confidence:.2f})")
        return result

    def grade(self, request: GradingRequest) -> GradingResult:
        """Synchronous wrapper for grade_submission."""
        return asyncio.run(self.grade_submission(request))


async def grade_submission(request: GradingRequest, configs: ConfigType,
                           rubric: Optional[RubricConfig] = None,
                           client: Optional[CompletionClient] = None) -> GradingResult:
    """Grade one essay with a one-off orchestrator."""
    return await GradingOrchestrator(configs, rubric=rubric, client=client).grade_submission(request)
