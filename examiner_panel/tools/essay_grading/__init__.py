"""Multi-examiner essay grading with concurrent LLM calls per assessment objective."""

from .orchestrator import GradingOrchestrator, grade_submission, validate_grading_request
from .models import GradingRequest, GradingResult, DimensionResult, Dimension, Annotation
from .errors import GradingError, ErrorCode
from .rubric_config import RubricConfig, default_rubric_config, load_rubric_config
from .feedback import generate_detailed_feedback, generate_progress_tracker
from .batch_grader import BatchGrader, BatchGradingResult

__all__ = [
    'GradingOrchestrator',
    'grade_submission',
    'validate_grading_request',
    'GradingRequest',
    'GradingResult',
    'DimensionResult',
    'Dimension',
    'Annotation',
    'GradingError',
    'ErrorCode',
    'RubricConfig',
    'default_rubric_config',
    'load_rubric_config',
    'generate_detailed_feedback',
    'generate_progress_tracker',
    'BatchGrader',
    'BatchGradingResult'
]
