"""Pydantic models for multi-examiner essay grading."""

from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Dimension(str, Enum):
    """Assessment objectives scored independently by one examiner each."""
    AO1 = "AO1"  # Knowledge and understanding
    AO2 = "AO2"  # Application
    AO3 = "AO3"  # Analysis
    AO4 = "AO4"  # Evaluation


class RubricDimension(BaseModel):
    """One examiner: the dimension it scores and how it is prompted."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Examiner identifier, e.g. 'knowledge'")
    name: str = Field(description="Display name of the examiner")
    description: str = Field(description="What this examiner assesses")
    dimension: Dimension = Field(description="Assessment objective scored by this examiner")
    criteria: List[str] = Field(default_factory=list, description="Assessment criteria for the subject")
    prompt_template: str = Field(description="Examiner instructions, formatted with max_score")


class GradingRequest(BaseModel):
    """A single essay to grade. Immutable once constructed."""
    model_config = ConfigDict(frozen=True)

    question: str = Field(description="Question the essay answers")
    essay: str = Field(description="Student response text")
    question_type: str = Field(default="14-mark", description="Submission type, e.g. '14-mark'")
    subject: str = Field(default="economics", description="Rubric variant, e.g. 'economics'")
    unit: str = Field(default="WEC11", description="Exam unit code")
    has_diagram: bool = Field(default=False, description="Whether a supporting diagram was provided")
    context_data: Optional[str] = Field(default=None, description="Data or context given with the question")
    extract_info: Optional[str] = Field(default=None, description="Extract text given with the question")


class KnowledgeMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["knowledge"] = "knowledge"
    key_terms_used: List[str] = Field(default_factory=list)
    key_terms_missing: List[str] = Field(default_factory=list)


class ApplicationMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["application"] = "application"
    examples_used: List[str] = Field(default_factory=list)
    contextual_references: List[str] = Field(default_factory=list)


class AnalysisMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["analysis"] = "analysis"
    chains_of_reasoning: Optional[int] = None
    diagram_quality: Optional[str] = None
    diagram_feedback: Optional[str] = None


class EvaluationMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["evaluation"] = "evaluation"
    evaluative_comments: Optional[int] = None
    balance_score: Optional[str] = None
    judgment_quality: Optional[str] = None


DimensionMetadata = Annotated[
    Union[KnowledgeMetadata, ApplicationMetadata, AnalysisMetadata, EvaluationMetadata],
    Field(discriminator="kind"),
]


class DimensionResult(BaseModel):
    """Score and feedback from one examiner."""
    model_config = ConfigDict(frozen=True)

    dimension: Dimension = Field(description="Assessment objective that was scored")
    examiner_id: str = Field(description="Examiner identifier")
    examiner_name: str = Field(description="Examiner display name")
    score: float = Field(ge=0, description="Marks awarded, clamped to [0, max_score]")
    max_score: float = Field(gt=0, description="Marks available for this dimension and question type")
    band: str = Field(description="Level band, e.g. 'L2'")
    feedback: str = Field(description="Short explanation of the score")
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    metadata: Optional[DimensionMetadata] = Field(default=None, description="Dimension-specific detail")
    degraded: bool = Field(default=False, description="True when the reply could not be parsed as JSON")

    @property
    def normalized_score(self) -> float:
        return self.score / self.max_score


class DimensionFailure(BaseModel):
    """A dimension whose examiner call did not produce a result."""
    model_config = ConfigDict(frozen=True)

    dimension: Dimension
    examiner_name: str
    reason: str


class AnnotationCategory(str, Enum):
    EVALUATION = "evaluation"
    ANALYSIS = "analysis"
    CONCLUSION = "conclusion"
    EXAMPLE = "example"


class Annotation(BaseModel):
    """Commentary attached to a span of the essay (text[start:end])."""
    model_config = ConfigDict(frozen=True)

    id: str
    category: AnnotationCategory
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    message: str
    suggestion: Optional[str] = None


class QuestionTypeConfig(BaseModel):
    """Marks and expectations for one submission type."""
    model_config = ConfigDict(frozen=True)

    type: str
    total_marks: int = Field(gt=0)
    mark_allocation: Dict[Dimension, int]
    requires_diagram: bool = False
    recommended_length: str = ""
    time_allocation: int = Field(default=0, description="Recommended minutes")
    description: str = ""

    def max_marks_for(self, dimension: Dimension) -> int:
        return self.mark_allocation.get(dimension, 0)


class MarkBand(BaseModel):
    """Qualitative level for a range of total marks."""
    model_config = ConfigDict(frozen=True)

    min_score: int = Field(ge=0)
    max_score: int = Field(ge=0)
    level: str
    description: str = ""
    characteristics: List[str] = Field(default_factory=list)


class GradingMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_type: str
    unit: str
    subject: str
    processing_time: float = Field(description="Elapsed seconds")
    model_used: str
    confidence: float
    failed_count: int = 0
    failed_dimensions: List[str] = Field(default_factory=list)


class GradingResult(BaseModel):
    """Complete grading outcome. Built once per request and never mutated."""
    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(ge=0, description="Weighted marks awarded")
    max_score: float = Field(gt=0, description="Total marks for the question type")
    percentage: int
    grade: str
    ums: Optional[int] = Field(default=None, description="Uniform mark scale value")
    band: str
    dimension_results: List[DimensionResult]
    summary: str
    key_strengths: List[str] = Field(default_factory=list)
    priority_improvements: List[str] = Field(default_factory=list)
    annotations: List[Annotation] = Field(default_factory=list)
    confidence: float = Field(ge=0, le=1)
    diagram_feedback: Optional[str] = None
    time_estimate: Optional[str] = None
    word_count: int = 0
    metadata: GradingMetadata

    def to_yaml_dict(self) -> dict:
        """Convert to dictionary suitable for YAML serialization."""
        return self.model_dump(mode="json", exclude_none=True)
