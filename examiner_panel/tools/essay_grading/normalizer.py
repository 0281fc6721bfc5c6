"""Turn raw examiner replies into validated DimensionResults.

Two strategies, both pure: a structured JSON parse and a regex fallback for
replies that are not JSON. ``normalize_response`` always returns a result.
"""

import json
import logging
import math
import re
from typing import Any, Dict, List, Optional

from .models import (
    AnalysisMetadata,
    ApplicationMetadata,
    Dimension,
    DimensionResult,
    EvaluationMetadata,
    KnowledgeMetadata,
    RubricDimension,
)

LOG = logging.getLogger(__name__)

FEEDBACK_CHAR_LIMIT = 500
UNPARSED_IMPROVEMENT = "Could not parse the examiner's detailed response - please try again for more detailed feedback"

# Longer digit runs are capped; they are out of range for any question type
_MAX_SCORE_DIGITS = 6
_SCORE_PATTERN = re.compile(r'score[\s:=]+(\d+)', re.IGNORECASE)
_FENCE_PATTERN = re.compile(r'```(?:json)?\s*(.*?)```', re.DOTALL | re.IGNORECASE)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a person would (2.5 -> 3), not banker's rounding."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def band_from_score(score: float, max_score: float) -> str:
    """Level band from fixed percentage cutoffs."""
    percentage = score / max_score * 100 if max_score > 0 else 0
    if percentage >= 75:
        return "L3"
    if percentage >= 40:
        return "L2"
    return "L1"


def clamp_score(value: Any, max_score: int) -> int:
    """Coerce an upstream score into an integer in [0, max_score].

    Anything non-numeric counts as 0. Oversized values clamp to max_score.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return min(max(value, 0), max_score)
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    if math.isnan(number):
        return 0
    # clamp before rounding so infinities never reach math.floor
    number = min(max(number, 0.0), float(max_score))
    return int(min(round_half_up(number), max_score))


def extract_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """Find a JSON object in a reply, tolerating code fences and prose around it."""
    candidates = [raw.strip()]
    fence_match = _FENCE_PATTERN.search(raw)
    if fence_match:
        candidates.append(fence_match.group(1).strip())
    brace_match = re.search(r'{.*}', raw, re.DOTALL)
    if brace_match:
        candidates.append(brace_match.group())

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(data, dict):
            return data
    return None


def extract_score_from_text(text: str) -> Optional[int]:
    """Best-effort score recovery from free text such as 'Score: 3'."""
    match = _SCORE_PATTERN.search(text)
    if match:
        digits = match.group(1).lstrip("0") or "0"
        if len(digits) > _MAX_SCORE_DIGITS:
            digits = "9" * _MAX_SCORE_DIGITS
        return int(digits)
    return None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _optional_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return int(number)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_metadata(dimension: Dimension, data: Dict[str, Any]):
    """Pick the dimension-specific fields out of a reply."""
    if dimension == Dimension.AO1:
        return KnowledgeMetadata(
            key_terms_used=_string_list(data.get("keyTermsUsed")),
            key_terms_missing=_string_list(data.get("keyTermsMissing")),
        )
    if dimension == Dimension.AO2:
        return ApplicationMetadata(
            examples_used=_string_list(data.get("examplesUsed")),
            contextual_references=_string_list(data.get("contextualReferences")),
        )
    if dimension == Dimension.AO3:
        return AnalysisMetadata(
            chains_of_reasoning=_optional_int(data.get("chainsOfReasoning")),
            diagram_quality=_optional_str(data.get("diagramQuality")),
            diagram_feedback=_optional_str(data.get("diagramFeedback")),
        )
    return EvaluationMetadata(
        evaluative_comments=_optional_int(data.get("evaluativeComments")),
        balance_score=_optional_str(data.get("balanceScore")),
        judgment_quality=_optional_str(data.get("judgmentQuality")),
    )


def parse_structured(raw: str, examiner: RubricDimension, max_score: int) -> Optional[DimensionResult]:
    """Primary strategy. Returns None when the reply holds no JSON object."""
    data = extract_json_object(raw)
    if data is None:
        return None

    score = clamp_score(data.get("score"), max_score)
    band = data.get("band")
    if not isinstance(band, str) or not band.strip():
        band = band_from_score(score, max_score)

    feedback = data.get("feedback")
    if not isinstance(feedback, str) or not feedback.strip():
        feedback = "No feedback provided"

    return DimensionResult(
        dimension=examiner.dimension,
        examiner_id=examiner.id,
        examiner_name=examiner.name,
        score=score,
        max_score=max_score,
        band=band.strip(),
        feedback=feedback.strip(),
        strengths=_string_list(data.get("strengths")),
        improvements=_string_list(data.get("improvements")),
        metadata=parse_metadata(examiner.dimension, data),
    )


def parse_fallback(raw: str, examiner: RubricDimension, max_score: int) -> DimensionResult:
    """Secondary strategy for replies that are not JSON. Marked as degraded."""
    extracted = extract_score_from_text(raw)
    if extracted is not None:
        score = clamp_score(extracted, max_score)
    else:
        score = max_score // 2

    feedback = raw.strip()[:FEEDBACK_CHAR_LIMIT] or "Unable to parse detailed feedback"

    return DimensionResult(
        dimension=examiner.dimension,
        examiner_id=examiner.id,
        examiner_name=examiner.name,
        score=score,
        max_score=max_score,
        band=band_from_score(score, max_score),
        feedback=feedback,
        strengths=[],
        improvements=[UNPARSED_IMPROVEMENT],
        degraded=True,
    )


def normalize_response(raw: str, examiner: RubricDimension, max_score: int) -> DimensionResult:
    """
    Produce a DimensionResult from raw reply text.

    Args:
        raw: Reply text from the examiner
        examiner: Examiner that produced the reply
        max_score: Marks available for this dimension on the question type

    Returns:
        A valid DimensionResult; never raises for malformed replies
    """
    raw = raw if isinstance(raw, str) else ("" if raw is None else str(raw))
    result = parse_structured(raw, examiner, max_score)
    if result is not None:
        return result

    LOG.warning(f"Could not parse structured response from {examiner.name}, using text fallback")
    return parse_fallback(raw, examiner, max_score)
