"""Rubric configuration: marks per question type, mark bands and examiners.

A RubricConfig is an immutable value built once and passed to the
orchestrator, so alternate rubrics can be swapped in for tests or other
exam boards.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, model_validator

from .models import Dimension, MarkBand, QuestionTypeConfig, RubricDimension
from .prompts import default_examiners

LOG = logging.getLogger(__name__)

# (minimum percentage, grade), checked top down
GRADE_THRESHOLDS: Tuple[Tuple[int, str], ...] = (
    (90, "A*"),
    (80, "A"),
    (70, "B"),
    (60, "C"),
    (50, "D"),
    (40, "E"),
)
BOTTOM_GRADE = "U"


def _question_type(type_: str, total: int, allocation: Tuple[int, int, int, int],
                   requires_diagram: bool, length: str, minutes: int,
                   description: str) -> QuestionTypeConfig:
    return QuestionTypeConfig(
        type=type_,
        total_marks=total,
        mark_allocation=dict(zip(Dimension, allocation)),
        requires_diagram=requires_diagram,
        recommended_length=length,
        time_allocation=minutes,
        description=description,
    )


DEFAULT_QUESTION_TYPES: Dict[str, QuestionTypeConfig] = {
    q.type: q for q in [
        _question_type("4-mark", 4, (2, 2, 0, 0), False, "100-150 words", 5,
                       "Knowledge and application question - define and apply concepts"),
        _question_type("6-mark", 6, (2, 2, 2, 0), False, "150-200 words", 8,
                       "Knowledge, application and basic analysis"),
        _question_type("8-mark", 8, (2, 2, 4, 0), True, "200-250 words", 10,
                       "Analysis-focused with diagram requirement"),
        _question_type("10-mark", 10, (2, 2, 4, 2), True, "250-300 words", 12,
                       "Full analysis with introductory evaluation"),
        _question_type("12-mark", 12, (2, 2, 4, 4), True, "300-400 words", 15,
                       "Evaluation question with balanced judgment"),
        _question_type("14-mark", 14, (2, 3, 4, 5), True, "400-500 words", 18,
                       "Extended evaluation with context application"),
        _question_type("16-mark", 16, (3, 3, 5, 5), True, "500-600 words", 20,
                       "Full essay with comprehensive evaluation"),
        _question_type("20-mark", 20, (4, 4, 6, 6), True, "600-800 words", 25,
                       "Synoptic essay requiring multiple perspectives"),
    ]
}


def _bands(l1: Tuple[int, int], l2: Tuple[int, int], l3: Tuple[int, int],
           characteristics: Tuple[List[str], List[str], List[str]],
           descriptions: Tuple[str, str, str] = ("Limited", "Developing", "Strong")) -> List[MarkBand]:
    return [
        MarkBand(min_score=lo, max_score=hi, level=level, description=desc, characteristics=chars)
        for (lo, hi), level, desc, chars in zip((l1, l2, l3), ("L1", "L2", "L3"), descriptions, characteristics)
    ]


_EXTENDED_CHARACTERISTICS = (
    ["Basic knowledge", "Weak application", "Limited analysis and evaluation"],
    ["Good knowledge", "Clear application", "Some developed analysis and evaluation"],
    ["Full knowledge", "Full contextual application", "Developed analysis and evaluation with supported judgment"],
)

DEFAULT_MARK_BANDS: Dict[str, List[MarkBand]] = {
    "4-mark": _bands((0, 1), (2, 3), (4, 4), (
        ["Basic definitions", "Minimal context"],
        ["Clear definitions", "Relevant application"],
        ["Precise definitions", "Full contextual application"],
    ), descriptions=("Limited knowledge", "Good knowledge and application", "Excellent understanding")),
    "6-mark": _bands((0, 2), (3, 4), (5, 6), (
        ["Basic knowledge", "Weak application"],
        ["Good knowledge", "Some application", "Basic analysis"],
        ["Full knowledge", "Clear application", "Developed analysis"],
    )),
    "8-mark": _bands((0, 2), (3, 5), (6, 8), (
        ["Basic knowledge", "Weak chains of reasoning"],
        ["Good knowledge", "Some chains of reasoning", "Diagram present"],
        ["Full knowledge", "Clear chains of reasoning", "Accurate diagram"],
    )),
    "10-mark": _bands((0, 3), (4, 6), (7, 10), (
        ["Basic knowledge", "Weak analysis", "Little evaluation"],
        ["Good knowledge", "Some analysis", "Basic evaluation"],
        ["Full knowledge", "Clear analysis", "Developed evaluation"],
    )),
    "12-mark": _bands((0, 4), (5, 8), (9, 12), (
        ["Basic knowledge", "Weak analysis", "Limited evaluation"],
        ["Good knowledge", "Clear analysis", "Some evaluation with judgment"],
        ["Full knowledge", "Developed analysis", "Balanced evaluation with supported judgment"],
    )),
    "14-mark": _bands((0, 5), (6, 9), (10, 14), _EXTENDED_CHARACTERISTICS),
    "16-mark": _bands((0, 5), (6, 10), (11, 16), _EXTENDED_CHARACTERISTICS),
    "20-mark": _bands((0, 6), (7, 13), (14, 20), _EXTENDED_CHARACTERISTICS),
}


class RubricConfig(BaseModel):
    """Immutable lookup tables for one family of rubrics."""
    model_config = ConfigDict(frozen=True)

    question_types: Dict[str, QuestionTypeConfig]
    mark_bands: Dict[str, List[MarkBand]]
    examiners: Dict[str, List[RubricDimension]]

    @model_validator(mode="after")
    def _check_consistency(self) -> "RubricConfig":
        for type_id, config in self.question_types.items():
            allocated = sum(config.mark_allocation.values())
            if allocated != config.total_marks:
                raise ValueError(
                    f"Mark allocation for {type_id} sums to {allocated}, expected {config.total_marks}"
                )
            bands = self.mark_bands.get(type_id)
            if not bands:
                raise ValueError(f"No mark bands configured for {type_id}")
            previous_max = None
            for band in bands:
                if band.min_score > band.max_score:
                    raise ValueError(f"Mark band {band.level} for {type_id} has min above max")
                if previous_max is not None and band.min_score <= previous_max:
                    raise ValueError(f"Mark bands for {type_id} overlap or are out of order at {band.level}")
                previous_max = band.max_score
        for subject, examiners in self.examiners.items():
            dimensions = [e.dimension for e in examiners]
            if len(set(dimensions)) != len(dimensions):
                raise ValueError(f"Subject {subject} has more than one examiner per dimension")
        return self

    def get_question_type(self, type_id: str) -> Optional[QuestionTypeConfig]:
        return self.question_types.get(type_id)

    def get_examiners(self, subject: str) -> Optional[List[RubricDimension]]:
        return self.examiners.get(subject)

    def get_mark_band(self, type_id: str, score: float) -> Optional[MarkBand]:
        return select_mark_band(self.mark_bands.get(type_id, []), score)


def select_mark_band(bands: List[MarkBand], score: float) -> Optional[MarkBand]:
    """Return the highest band whose lower bound the score reaches.

    Bands hold whole marks while weighted scores can be fractional
    (9.5 on a 14-mark question), so the gap between bands belongs to the
    lower band.
    """
    selected = None
    for band in bands:
        if score >= band.min_score:
            selected = band
    return selected


def default_rubric_config() -> RubricConfig:
    """The Edexcel-aligned rubric used when nothing else is configured."""
    return RubricConfig(
        question_types=DEFAULT_QUESTION_TYPES,
        mark_bands=DEFAULT_MARK_BANDS,
        examiners=default_examiners(),
    )


def load_rubric_config(path: Path) -> RubricConfig:
    """
    Load question types and mark bands from a YAML file.

    The file may define ``question_types`` and ``mark_bands`` keyed by question
    type; entries replace the defaults with the same key. Examiners always come
    from the defaults.

    Raises:
        ValueError: If the file cannot be read or the tables are inconsistent
    """
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ValueError(f"Could not read rubric file: {e}")

    if not isinstance(data, dict):
        raise ValueError(f"Rubric file {path} must contain a mapping")

    raw_types = data.get("question_types") or {}
    raw_band_table = data.get("mark_bands") or {}
    if not isinstance(raw_types, dict) or not isinstance(raw_band_table, dict):
        raise ValueError(f"question_types and mark_bands in {path} must be mappings")

    question_types = dict(DEFAULT_QUESTION_TYPES)
    for type_id, raw in raw_types.items():
        if not isinstance(raw, dict):
            raise ValueError(f"Question type '{type_id}' in {path} must be a mapping")
        question_types[type_id] = QuestionTypeConfig(type=type_id, **raw)

    mark_bands = dict(DEFAULT_MARK_BANDS)
    for type_id, raw_bands in raw_band_table.items():
        if not isinstance(raw_bands, list) or not all(isinstance(band, dict) for band in raw_bands):
            raise ValueError(f"Mark bands for '{type_id}' in {path} must be a list of mappings")
        mark_bands[type_id] = [MarkBand(**band) for band in raw_bands]

    LOG.info(f"Loaded rubric from {path} with {len(question_types)} question types")
    return RubricConfig(
        question_types=question_types,
        mark_bands=mark_bands,
        examiners=default_examiners(),
    )
