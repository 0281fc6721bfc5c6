"""Dimension rater: one bounded inference call per examiner."""

import asyncio
import logging
from typing import Optional, Protocol, Union

from examiner_panel.libs.config_loader import ConfigType, get_config
from .models import (
    DimensionFailure,
    DimensionResult,
    GradingRequest,
    QuestionTypeConfig,
    RubricDimension,
)
from .normalizer import normalize_response
from .prompts import build_examiner_prompt, build_user_content

LOG = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 25.0
DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 1500

RaterOutcome = Union[DimensionResult, DimensionFailure]


class CompletionClient(Protocol):
    """Anything that can run one role-tagged completion (see libs.llm.InferenceClient)."""

    model_name: str

    async def complete(self, system_prompt: str, user_content: str, *,
                       max_tokens: Optional[int] = None,
                       temperature: Optional[float] = None,
                       timeout: Optional[float] = None) -> str:
        ...


class DimensionRater:
    """Score a single dimension of an essay with its own examiner prompt."""

    def __init__(self, client: CompletionClient,
                 timeout: float = DEFAULT_TIMEOUT,
                 temperature: float = DEFAULT_TEMPERATURE,
                 max_tokens: int = DEFAULT_MAX_TOKENS):
        self.client = client
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_configs(cls, client: CompletionClient, configs: ConfigType) -> "DimensionRater":
        return cls(
            client,
            timeout=get_config("grading.dimension.timeout", configs, default=DEFAULT_TIMEOUT),
            temperature=get_config("grading.dimension.temperature", configs, default=DEFAULT_TEMPERATURE),
            max_tokens=get_config("grading.dimension.max_tokens", configs, default=DEFAULT_MAX_TOKENS),
        )

    async def rate(self, examiner: RubricDimension, request: GradingRequest,
                   question_config: QuestionTypeConfig) -> RaterOutcome:
        """
        Ask one examiner for a score.

        Args:
            examiner: Examiner (dimension) to run
            request: The essay being graded
            question_config: Question type, used for the dimension's mark allocation

        Returns:
            DimensionResult on success, DimensionFailure on timeout or service error.
            Never raises for service problems.
        """
        max_score = question_config.max_marks_for(examiner.dimension)
        system_prompt = build_examiner_prompt(examiner, request, question_config, max_score)
        user_content = build_user_content(request)

        try:
            raw = await self.client.complete(
                system_prompt,
                user_content,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            LOG.error(f"Examiner {examiner.name} timed out after {self.timeout}s")
            return DimensionFailure(
                dimension=examiner.dimension,
                examiner_name=examiner.name,
                reason=f"timed out after {self.timeout}s",
            )
        except Exception as e:
            LOG.error(f"Examiner {examiner.name} failed: {e}")
            return DimensionFailure(
                dimension=examiner.dimension,
                examiner_name=examiner.name,
                reason=str(e) or type(e).__name__,
            )

        result = normalize_response(raw, examiner, max_score)
        LOG.debug(f"{examiner.name} ({examiner.dimension.value}): {result.score}/{result.max_score} {result.band}")
        return result
