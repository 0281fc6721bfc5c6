"""Deterministic study feedback derived from a GradingResult."""

import math
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .consensus import deduplicate
from .models import Dimension, DimensionResult, GradingResult, QuestionTypeConfig
from .normalizer import round_half_up
from .rubric_config import GRADE_THRESHOLDS

Priority = Literal["high", "medium", "low"]

GRADE_DESCRIPTIONS: Dict[str, str] = {
    "A*": "Exceptional performance with comprehensive understanding",
    "A": "Excellent performance with strong understanding",
    "B": "Good performance with sound understanding",
    "C": "Satisfactory performance with adequate understanding",
    "D": "Basic performance with limited understanding",
    "E": "Minimal performance with weak understanding",
    "U": "Unclassified - significant improvement needed",
}

_DIMENSION_COMMENTS: Dict[Dimension, Dict[str, str]] = {
    Dimension.AO1: {
        "excellent": "Excellent knowledge and understanding with precise terminology.",
        "good": "Good knowledge demonstrated with accurate use of terms.",
        "developing": "Developing knowledge - focus on accuracy of definitions.",
        "limited": "Limited knowledge shown - review key concepts and terminology.",
    },
    Dimension.AO2: {
        "excellent": "Excellent application to context with relevant, specific examples.",
        "good": "Good application with appropriate examples.",
        "developing": "Developing application - use more specific examples.",
        "limited": "Limited application - ensure you address the specific context.",
    },
    Dimension.AO3: {
        "excellent": "Excellent analysis with clear chains of reasoning throughout.",
        "good": "Good analysis with some developed chains of reasoning.",
        "developing": "Developing analysis - extend your chains of reasoning.",
        "limited": "Limited analysis - focus on cause and effect relationships.",
    },
    Dimension.AO4: {
        "excellent": "Excellent evaluation with balanced arguments and supported judgment.",
        "good": "Good evaluation with some balanced discussion.",
        "developing": "Developing evaluation - include more counter-arguments.",
        "limited": "Limited evaluation - practice using evaluative language.",
    },
}

_FOCUS_AREAS: Dict[Dimension, str] = {
    Dimension.AO1: "memorizing precise definitions and key concepts",
    Dimension.AO2: "applying knowledge to specific contexts with relevant examples",
    Dimension.AO3: "developing clear chains of reasoning with cause and effect",
    Dimension.AO4: "building balanced arguments with evaluative language",
}

_RESOURCES: Dict[Dimension, str] = {
    Dimension.AO1: "Key terms glossary and definition practice",
    Dimension.AO2: "Contextual application exercises and case studies",
    Dimension.AO3: "Chain of reasoning practice questions",
    Dimension.AO4: "Evaluation framework and balanced argument templates",
}

EVALUATION_HEAVY_TYPES = ("12-mark", "14-mark", "16-mark", "20-mark")


class DimensionFeedback(BaseModel):
    dimension: Dimension
    score: float
    max_score: float
    percentage: int
    comment: str
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)


class ActionItem(BaseModel):
    priority: Priority
    action: str
    resource: Optional[str] = None
    estimated_time: Optional[str] = None


class DetailedFeedback(BaseModel):
    overall_comment: str
    dimension_breakdown: List[DimensionFeedback]
    specific_strengths: List[str]
    priority_improvements: List[str]
    action_plan: List[ActionItem]
    next_steps: List[str]
    estimated_grade_boundary: str


class Milestone(BaseModel):
    score: int
    description: str
    achieved: bool


class ProgressTracker(BaseModel):
    current_score: float
    target_score: float
    progress_percentage: int
    milestones: List[Milestone]


def grade_description(grade: str) -> str:
    return GRADE_DESCRIPTIONS.get(grade, "Grade not recognized")


def improvement_priority(score: float, max_score: float) -> Priority:
    percentage = score / max_score * 100
    if percentage < 50:
        return "high"
    if percentage < 75:
        return "medium"
    return "low"


def diagram_feedback(question_config: QuestionTypeConfig, has_diagram: bool) -> Optional[str]:
    """Reminder about diagrams for question types that expect one."""
    if not question_config.requires_diagram:
        return None
    if not has_diagram:
        return (f"Diagram Missing: For {question_config.type} questions, a diagram is typically required. "
                "Consider including an appropriate diagram to support your analysis and maximize your AO3 marks.")
    return "Diagram Present: Ensure your diagram is accurately labeled with correct axes, curves, and equilibrium points."


def _percent(result: DimensionResult) -> int:
    return int(round_half_up(result.normalized_score * 100))


def dimension_comment(dimension: Dimension, percentage: float) -> str:
    if percentage >= 75:
        level = "excellent"
    elif percentage >= 50:
        level = "good"
    elif percentage >= 30:
        level = "developing"
    else:
        level = "limited"
    return _DIMENSION_COMMENTS[dimension][level]


def _metadata_value(result: DimensionResult, field_name: str):
    return getattr(result.metadata, field_name, None) if result.metadata else None


def build_action_plan(results: List[DimensionResult], question_config: QuestionTypeConfig) -> List[ActionItem]:
    actions: List[ActionItem] = []

    if results:
        weakest = min(results, key=lambda r: r.normalized_score)
        if weakest.normalized_score < 0.5:
            actions.append(ActionItem(
                priority="high",
                action=f"Focus on improving {weakest.dimension.value}: {_FOCUS_AREAS[weakest.dimension]}",
                resource=_RESOURCES[weakest.dimension],
                estimated_time="2-3 hours per week",
            ))

    by_dimension = {r.dimension: r for r in results}

    if question_config.requires_diagram and Dimension.AO3 in by_dimension:
        quality = _metadata_value(by_dimension[Dimension.AO3], "diagram_quality")
        if quality and quality.lower() in ("poor", "missing"):
            actions.append(ActionItem(
                priority="high",
                action="Practice drawing and labeling diagrams accurately",
                resource="Diagram practice worksheets",
                estimated_time="1 hour per week",
            ))

    if question_config.type in EVALUATION_HEAVY_TYPES and Dimension.AO4 in by_dimension:
        if by_dimension[Dimension.AO4].normalized_score < 0.6:
            actions.append(ActionItem(
                priority="medium",
                action="Practice using evaluative phrases and building balanced arguments",
                resource="Evaluation phrase bank and practice questions",
                estimated_time="1-2 hours per week",
            ))

    actions.append(ActionItem(
        priority="medium",
        action="Review and memorize key definitions and concepts",
        resource="Key terms flashcards",
        estimated_time="30 minutes daily",
    ))
    return actions


def next_steps(percentage: float, question_type: str) -> List[str]:
    if percentage >= 80:
        steps = [
            "Continue practicing with more challenging questions",
            "Focus on timing to complete questions within exam conditions",
            "Review synoptic connections between topics",
        ]
    elif percentage >= 60:
        steps = [
            "Practice questions of the same type to build consistency",
            "Focus on the weakest assessment objective identified",
            "Review mark schemes to understand examiner expectations",
        ]
    elif percentage >= 40:
        steps = [
            "Review the relevant topic content thoroughly",
            "Practice basic definitions and concepts",
            "Work through example answers with examiner commentary",
            "Focus on one assessment objective at a time",
        ]
    else:
        steps = [
            "Start with foundational knowledge - review key definitions",
            "Work through textbook explanations of core concepts",
            "Practice simple application questions first",
            "Seek additional support from your teacher",
            "Use flashcards to memorize key terms",
        ]

    if question_type == "20-mark":
        steps.append("Practice integrating knowledge from multiple topics")
    return steps[:5]


def estimate_grade_boundary(percentage: float, total_marks: int) -> str:
    """Marks still needed to reach the next grade up."""
    current_marks = round_half_up(percentage / 100 * total_marks)
    for threshold, grade in reversed(GRADE_THRESHOLDS):
        boundary = math.ceil(total_marks * threshold / 100)
        if current_marks < boundary:
            needed = int(boundary - current_marks)
            return f"{needed} mark{'s' if needed > 1 else ''} needed for grade {grade}"
    return "Achieved maximum grade boundary"


def overall_comment(result: GradingResult) -> str:
    question_type = result.metadata.question_type
    comment = (f"This {question_type} response achieved {result.overall_score:g}/{result.max_score:g} marks "
               f"({result.percentage}%), equivalent to grade {result.grade}. ")

    if result.dimension_results:
        ordered = sorted(result.dimension_results, key=lambda r: r.normalized_score, reverse=True)
        strongest, weakest = ordered[0], ordered[-1]
        comment += (f"Your strongest area is {strongest.dimension.value} "
                    f"({strongest.score:g}/{strongest.max_score:g}), while {weakest.dimension.value} "
                    f"({weakest.score:g}/{weakest.max_score:g}) offers the most potential for improvement. ")

    if result.percentage >= 80:
        comment += ("This is an excellent response demonstrating strong understanding across all assessment "
                    "objectives. To achieve full marks, add more sophistication to your evaluation and make "
                    "sure every point is fully developed.")
    elif result.percentage >= 60:
        comment += ("This is a good response showing solid understanding. Focus on developing your weaker "
                    "areas to push into the top grade boundaries.")
    elif result.percentage >= 40:
        comment += ("This response shows developing understanding with room for improvement. Work on "
                    "strengthening your knowledge base and practicing application to different contexts.")
    else:
        comment += ("This response needs significant development. Focus on building foundational knowledge "
                    "and understanding the basic requirements of this question type.")
    return comment


def generate_detailed_feedback(result: GradingResult, question_config: QuestionTypeConfig) -> DetailedFeedback:
    """
    Expand a grading result into a per-objective breakdown and study plan.

    Args:
        result: Completed grading result
        question_config: Question type the essay was graded against

    Returns:
        DetailedFeedback
    """
    breakdown = [
        DimensionFeedback(
            dimension=r.dimension,
            score=r.score,
            max_score=r.max_score,
            percentage=_percent(r),
            comment=dimension_comment(r.dimension, _percent(r)),
            strengths=r.strengths[:3],
            improvements=r.improvements[:3],
        )
        for r in result.dimension_results
    ]

    return DetailedFeedback(
        overall_comment=overall_comment(result),
        dimension_breakdown=breakdown,
        specific_strengths=deduplicate([s for r in result.dimension_results for s in r.strengths], 5),
        priority_improvements=deduplicate([s for r in result.dimension_results for s in r.improvements], 5),
        action_plan=build_action_plan(result.dimension_results, question_config),
        next_steps=next_steps(result.percentage, question_config.type),
        estimated_grade_boundary=estimate_grade_boundary(result.percentage, question_config.total_marks),
    )


def generate_progress_tracker(current_score: float, target_score: float,
                              question_config: QuestionTypeConfig) -> ProgressTracker:
    """Progress towards a target mark with grade milestones from E to A*."""
    max_score = question_config.total_marks
    progress = min(100, int(round_half_up(current_score / target_score * 100))) if target_score > 0 else 0

    milestones = []
    for threshold, grade in reversed(GRADE_THRESHOLDS):
        needed = math.ceil(max_score * threshold / 100)
        label = "Pass grade (E)" if grade == "E" else f"Grade {grade}"
        milestones.append(Milestone(score=needed, description=label, achieved=current_score >= needed))

    return ProgressTracker(
        current_score=current_score,
        target_score=target_score,
        progress_percentage=progress,
        milestones=milestones,
    )
