"""Second-stage consensus: one narrative summary built from all examiner results."""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from examiner_panel.libs.config_loader import ConfigType, get_config
from .models import DimensionResult, GradingRequest
from .normalizer import extract_json_object, round_half_up
from .prompts import CONSENSUS_SYSTEM_PROMPT, build_consensus_prompt
from .rater import CompletionClient

LOG = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_TEMPERATURE = 0.4
DEFAULT_MAX_TOKENS = 600
PROMPT_ITEM_LIMIT = 6
TOP_ITEM_LIMIT = 3


@dataclass(frozen=True)
class ConsensusFeedback:
    summary: str
    key_strengths: List[str] = field(default_factory=list)
    priority_improvements: List[str] = field(default_factory=list)
    from_fallback: bool = False


def deduplicate(items: List[str], limit: Optional[int] = None) -> List[str]:
    """Drop blanks and case-insensitive duplicates; first occurrence wins."""
    seen = set()
    unique = []
    for item in items:
        normalized = item.strip().lower()
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        unique.append(item.strip())
    return unique[:limit] if limit is not None else unique


def _join(labels: List[str]) -> str:
    return " and ".join(labels)


def fallback_summary(results: List[DimensionResult]) -> str:
    """Deterministic narrative from the mean normalized score.

    Names the dimensions above and below the mean; when every dimension sits on
    the mean they are all named together.
    """
    mean = sum(r.normalized_score for r in results) / len(results)
    percentage = round_half_up(mean * 100)
    above = [r.dimension.value for r in results if r.normalized_score > mean]
    below = [r.dimension.value for r in results if r.normalized_score < mean]
    everyone = [r.dimension.value for r in results]

    if percentage >= 75:
        summary = ("This is a strong response demonstrating excellent understanding "
                   "across the assessment objectives.")
        if above:
            summary += f" The student shows particularly strong {_join(above)} skills."
        else:
            summary += f" Performance is consistently strong across {_join(everyone)}."
    elif percentage >= 50:
        summary = "This is a competent response showing good understanding with room for development."
        if above and below:
            summary += (f" The student demonstrates solid {_join(above)}, while "
                        f"{_join(below)} could be further developed.")
        else:
            summary += f" Performance is even across {_join(everyone)}, each of which could be developed further."
    else:
        summary = ("This response shows developing understanding with significant room "
                   "for improvement.")
        summary += f" Focus should be placed on strengthening {_join(below or everyone)} skills."
    return summary


def _coerce_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    items = [str(v).strip() for v in value if v is not None and str(v).strip()]
    return items or None


class ConsensusSynthesizer:
    """Ask a chief examiner for a consensus summary, falling back to templates."""

    def __init__(self, client: CompletionClient,
                 timeout: float = DEFAULT_TIMEOUT,
                 temperature: float = DEFAULT_TEMPERATURE,
                 max_tokens: int = DEFAULT_MAX_TOKENS):
        self.client = client
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_configs(cls, client: CompletionClient, configs: ConfigType) -> "ConsensusSynthesizer":
        return cls(
            client,
            timeout=get_config("grading.consensus.timeout", configs, default=DEFAULT_TIMEOUT),
            temperature=get_config("grading.consensus.temperature", configs, default=DEFAULT_TEMPERATURE),
            max_tokens=get_config("grading.consensus.max_tokens", configs, default=DEFAULT_MAX_TOKENS),
        )

    async def synthesize(self, results: List[DimensionResult], request: GradingRequest) -> ConsensusFeedback:
        """
        Build the consensus feedback for a set of successful results.

        Args:
            results: Successful dimension results (at least one)
            request: The grading request

        Returns:
            ConsensusFeedback; never raises, falls back to templates per field
        """
        strengths = deduplicate([s for r in results for s in r.strengths])
        improvements = deduplicate([s for r in results for s in r.improvements])
        prompt_strengths = strengths[:PROMPT_ITEM_LIMIT]
        prompt_improvements = improvements[:PROMPT_ITEM_LIMIT]

        score_lines = [
            f"{r.examiner_name} ({r.dimension.value}): {r.score:g}/{r.max_score:g} - {r.band}"
            for r in results
        ]
        prompt = build_consensus_prompt(score_lines, prompt_strengths, prompt_improvements, request.question)

        try:
            raw = await self.client.complete(
                CONSENSUS_SYSTEM_PROMPT,
                prompt,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                timeout=self.timeout,
            )
            data = extract_json_object(raw)
            if data is None:
                raise ValueError("Consensus reply was not a JSON object")
        except Exception as e:
            LOG.error(f"Consensus generation error: {str(e) or type(e).__name__}")
            return ConsensusFeedback(
                summary=fallback_summary(results),
                key_strengths=prompt_strengths[:TOP_ITEM_LIMIT],
                priority_improvements=prompt_improvements[:TOP_ITEM_LIMIT],
                from_fallback=True,
            )

        summary = data.get("summary")
        if not isinstance(summary, str) or not summary.strip():
            LOG.warning("Consensus reply had no summary, using template")
            summary = fallback_summary(results)

        key_strengths = _coerce_list(data.get("keyStrengths"))
        priority_improvements = _coerce_list(data.get("priorityImprovements"))

        return ConsensusFeedback(
            summary=summary.strip(),
            key_strengths=(key_strengths or prompt_strengths)[:TOP_ITEM_LIMIT],
            priority_improvements=(priority_improvements or prompt_improvements)[:TOP_ITEM_LIMIT],
        )
