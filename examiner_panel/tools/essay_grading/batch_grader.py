"""Batch grader for grading a manifest of essays concurrently using async/await."""

import asyncio
import logging
import yaml
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple
from dataclasses import dataclass
from datetime import datetime

from pydantic import ValidationError
from tqdm.asyncio import tqdm

from examiner_panel.libs.config_loader import ConfigType, get_config
from .errors import GradingError
from .models import GradingRequest, GradingResult
from .orchestrator import GradingOrchestrator
from .rater import CompletionClient
from .rubric_config import RubricConfig

LOG = logging.getLogger(__name__)

REQUEST_FIELDS = ("question", "essay", "question_type", "subject", "unit",
                  "has_diagram", "context_data", "extract_info")


@dataclass
class BatchGradingResult:
    """Result for one essay in a batch."""
    essay_id: str
    overall_score: float
    max_score: float
    success: bool
    grade: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    grading_result: Optional[GradingResult] = None
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for YAML serialization."""
        data = {
            'essay_id': self.essay_id,
            'overall_score': self.overall_score,
            'max_score': self.max_score,
            'success': self.success,
            'timestamp': self.timestamp
        }
        if self.grade:
            data['grade'] = self.grade
        if self.error_code:
            data['error_code'] = self.error_code
        if self.error_message:
            data['error_message'] = self.error_message
        if self.grading_result:
            data['percentage'] = self.grading_result.percentage
            data['confidence'] = self.grading_result.confidence
            data['dimensions'] = {
                r.dimension.value: {'score': r.score, 'max_score': r.max_score, 'band': r.band}
                for r in self.grading_result.dimension_results
            }
            data['failed_dimensions'] = self.grading_result.metadata.failed_dimensions
        return data


def load_manifest(manifest_path: Path) -> List[Tuple[str, GradingRequest]]:
    """
    Load essays to grade from a YAML manifest.

    The manifest has an ``essays`` list and optional ``defaults`` applied to
    every entry. Each entry needs an ``id``, a ``question`` and either inline
    ``essay`` text or an ``essay_file`` relative to the manifest.

    Args:
        manifest_path: Path to the manifest file

    Returns:
        List of (essay id, GradingRequest) in manifest order

    Raises:
        ValueError: If the manifest is malformed
    """
    with open(manifest_path, 'r') as f:
        manifest = yaml.safe_load(f) or {}

    if not isinstance(manifest, dict) or not isinstance(manifest.get('essays'), list):
        raise ValueError(f"Manifest {manifest_path} must contain an 'essays' list")

    defaults = manifest.get('defaults') or {}
    entries = []
    seen_ids = set()
    for i, entry in enumerate(manifest['essays']):
        if not isinstance(entry, dict):
            raise ValueError(f"Essay entry {i} in {manifest_path} is not a mapping")

        essay_id = str(entry.get('id') or f"essay_{i + 1}")
        if essay_id in seen_ids:
            raise ValueError(f"Duplicate essay id in manifest: {essay_id}")
        seen_ids.add(essay_id)

        fields = {k: v for k, v in {**defaults, **entry}.items() if k in REQUEST_FIELDS}
        if 'essay_file' in entry:
            essay_path = manifest_path.parent / entry['essay_file']
            fields['essay'] = essay_path.read_text(encoding='utf-8')

        try:
            entries.append((essay_id, GradingRequest(**fields)))
        except ValidationError as e:
            raise ValueError(f"Invalid essay entry '{essay_id}': {e}") from e

    return entries


class BatchGrader:
    """Grade many essays concurrently, each with its own examiner panel."""

    def __init__(self, configs: ConfigType, model: Optional[str] = None,
                 max_concurrent: Optional[int] = None,
                 rubric: Optional[RubricConfig] = None,
                 client: Optional[CompletionClient] = None):
        """
        Initialize the batch grader.

        Args:
            configs: Configuration dictionary
            model: Optional model override
            max_concurrent: Maximum number of essays graded at once (overrides config)
            rubric: Optional rubric tables
            client: Optional inference client shared by every essay
        """
        self.configs = configs

        if max_concurrent is not None:
            self.max_concurrent = max_concurrent
        else:
            self.max_concurrent = get_config("tools.max_concurrent", configs, default=4)

        self.orchestrator = GradingOrchestrator(configs, rubric=rubric, client=client, model=model)

        LOG.info(f"BatchGrader initialized with max_concurrent={self.max_concurrent}")

    async def _grade_single_essay_async(self, essay_id: str, request: GradingRequest,
                                        output_dir: Optional[Path] = None) -> BatchGradingResult:
        """
        Grade one essay and optionally write its result to ``<output_dir>/<essay_id>.yaml``.

        Failures are captured in the returned BatchGradingResult.
        """
        LOG.debug(f"Grading essay: {essay_id}")
        question_config = self.orchestrator.rubric.get_question_type(request.question_type)
        max_score = question_config.total_marks if question_config else 0

        try:
            grading_result = await self.orchestrator.grade_submission(request)

            if output_dir is not None:
                output_path = output_dir / f"{essay_id}.yaml"
                with open(output_path, 'w') as f:
                    yaml.dump(grading_result.to_yaml_dict(), f, default_flow_style=False, sort_keys=False)

        except GradingError as e:
            LOG.error(f"Error grading {essay_id}: {e}")
            return BatchGradingResult(
                essay_id=essay_id,
                overall_score=0,
                max_score=max_score,
                success=False,
                error_code=e.code.value,
                error_message=e.message
            )
        except Exception as e:
            LOG.error(f"Error grading {essay_id}: {e}")
            return BatchGradingResult(
                essay_id=essay_id,
                overall_score=0,
                max_score=max_score,
                success=False,
                error_message=str(e)
            )

        LOG.debug(f"Graded {essay_id}: {grading_result.overall_score}/{grading_result.max_score}")
        return BatchGradingResult(
            essay_id=essay_id,
            overall_score=grading_result.overall_score,
            max_score=grading_result.max_score,
            success=True,
            grade=grading_result.grade,
            grading_result=grading_result
        )

    async def grade_all_essays_async(self, essays: List[Tuple[str, GradingRequest]],
                                     output_dir: Optional[Path] = None,
                                     continue_on_error: bool = True) -> List[BatchGradingResult]:
        """
        Grade all essays with concurrency control.

        Args:
            essays: (essay id, request) pairs, e.g. from load_manifest
            output_dir: Directory for per-essay result files (none written when omitted)
            continue_on_error: Keep going after an unexpected error in one essay

        Returns:
            List of BatchGradingResult sorted by essay id
        """
        if not essays:
            LOG.error("No essays to grade")
            return []

        if output_dir is not None:
            output_dir.mkdir(parents=True, exist_ok=True)

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def grade_with_semaphore(essay_id: str, request: GradingRequest) -> BatchGradingResult:
            async with semaphore:
                return await self._grade_single_essay_async(essay_id, request, output_dir)

        tasks = [
            asyncio.create_task(grade_with_semaphore(essay_id, request))
            for essay_id, request in essays
        ]

        results = []
        for coro in tqdm.as_completed(tasks, total=len(tasks), desc="Grading essays"):
            try:
                batch_result = await coro
                results.append(batch_result)

                if batch_result.success:
                    LOG.debug(f"Completed: {batch_result.essay_id} - {batch_result.overall_score}/{batch_result.max_score}")
                else:
                    LOG.warning(f"Failed: {batch_result.essay_id} - {batch_result.error_message}")

            except Exception as e:
                LOG.exception(f"Unexpected error during grading: {e}")
                if not continue_on_error:
                    for task in tasks:
                        if not task.done():
                            task.cancel()
                    raise

        results.sort(key=lambda r: r.essay_id)
        return results

    def grade_all_essays(self, essays: List[Tuple[str, GradingRequest]],
                         output_dir: Optional[Path] = None,
                         continue_on_error: bool = True) -> List[BatchGradingResult]:
        """Synchronous wrapper for grade_all_essays_async."""
        return asyncio.run(self.grade_all_essays_async(essays, output_dir, continue_on_error))

    def save_summary(self, results: List[BatchGradingResult], output_path: Path):
        """
        Save grading summary to YAML file.

        Args:
            results: List of grading results
            output_path: Path to save summary file
        """
        successful = [r for r in results if r.success]
        failed = [r for r in results if not r.success]

        summary = {
            'grading_summary': {
                'timestamp': datetime.now().isoformat(),
                'total_essays': len(results),
                'successful': len(successful),
                'failed': len(failed),
                'average_percentage': (sum(r.grading_result.percentage for r in successful) / len(successful)
                                       if successful else 0),
                'grade_distribution': _grade_distribution(successful),
            },
            'essays': [r.to_dict() for r in results]
        }

        with open(output_path, 'w') as f:
            yaml.dump(summary, f, default_flow_style=False, sort_keys=False)

        LOG.info(f"Summary saved to {output_path}")


def _grade_distribution(results: List[BatchGradingResult]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for r in results:
        counts[r.grade] = counts.get(r.grade, 0) + 1
    return counts
