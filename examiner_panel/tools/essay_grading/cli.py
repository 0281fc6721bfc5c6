#!/usr/bin/env python3
"""Command-line interface for grading a single essay with an examiner panel."""

import argparse
import logging
import sys
import yaml
from pathlib import Path

from pydantic import ValidationError

from examiner_panel.libs.config_loader import load_all_configs
from .errors import ErrorCode, GradingError
from .feedback import generate_detailed_feedback
from .models import GradingRequest
from .orchestrator import GradingOrchestrator
from .rubric_config import default_rubric_config, load_rubric_config

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
LOG = logging.getLogger(__name__)


def _read_optional(path: Path):
    return path.read_text(encoding='utf-8') if path else None


def main():
    """Main entry point for grade-essay command."""
    parser = argparse.ArgumentParser(
        description='Grade an essay across assessment objectives with concurrent examiners',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Grade a 14-mark economics essay
  grade-essay --essay answer.txt --question "Evaluate the impact of a minimum wage."

  # 8-mark question that expects a diagram, with the diagram present
  grade-essay --essay answer.txt --question-file question.txt --question-type 8-mark --has-diagram

  # Geography rubric, detailed study feedback and a custom output file
  grade-essay --essay answer.txt --question-file q.txt --subject geography --detailed --output result.yaml
        """
    )

    # Required arguments
    parser.add_argument(
        '--essay', '-e',
        type=Path,
        required=True,
        help='Path to a text file with the student essay'
    )
    question_group = parser.add_mutually_exclusive_group(required=True)
    question_group.add_argument(
        '--question', '-q',
        type=str,
        help='Question text'
    )
    question_group.add_argument(
        '--question-file',
        type=Path,
        help='Path to a text file with the question'
    )

    # Optional arguments
    parser.add_argument('--question-type', '-t', type=str, default='14-mark',
                        help='Question type (default: 14-mark)')
    parser.add_argument('--subject', type=str, default='economics',
                        help='Rubric variant (default: economics)')
    parser.add_argument('--unit', type=str, default='WEC11',
                        help='Exam unit code (default: WEC11)')
    parser.add_argument('--has-diagram', action='store_true',
                        help='The essay includes a supporting diagram')
    parser.add_argument('--context-file', type=Path, default=None,
                        help='Data or context provided with the question')
    parser.add_argument('--extract-file', type=Path, default=None,
                        help='Extract text provided with the question')
    parser.add_argument('--rubric-config', type=Path, default=None,
                        help='YAML file overriding question types, mark bands or examiners')
    parser.add_argument('--output', '-o', type=Path, default=None,
                        help='Output YAML path (default: <essay>_grading.yaml next to the essay)')
    parser.add_argument('--detailed', action='store_true',
                        help='Include a detailed breakdown and study plan in the output')
    parser.add_argument('--model', '-m', type=str, default=None,
                        help='Model to use (overrides config value)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not args.essay.is_file():
        LOG.error(f"Essay file does not exist: {args.essay}")
        sys.exit(1)

    try:
        request = GradingRequest(
            question=args.question if args.question is not None else args.question_file.read_text(encoding='utf-8'),
            essay=args.essay.read_text(encoding='utf-8'),
            question_type=args.question_type,
            subject=args.subject,
            unit=args.unit,
            has_diagram=args.has_diagram,
            context_data=_read_optional(args.context_file),
            extract_info=_read_optional(args.extract_file),
        )
    except (OSError, ValidationError) as e:
        LOG.error(f"Failed to read grading request: {e}")
        sys.exit(1)

    try:
        config = load_all_configs()
        rubric = load_rubric_config(args.rubric_config) if args.rubric_config else default_rubric_config()
        orchestrator = GradingOrchestrator(configs=config, rubric=rubric, model=args.model)
    except Exception as e:
        LOG.error(f"Failed to initialize grader: {e}")
        sys.exit(1)

    try:
        LOG.info(f"Grading {args.essay}...")
        result = orchestrator.grade(request)
    except GradingError as e:
        LOG.error(f"Grading failed: {e}")
        for key, value in e.details.items():
            LOG.error(f"  {key}: {value}")
        sys.exit(2 if e.code is ErrorCode.GRADING_ERROR else 1)

    output = result.to_yaml_dict()
    if args.detailed:
        question_config = rubric.get_question_type(request.question_type)
        output['detailed_feedback'] = generate_detailed_feedback(result, question_config).model_dump(mode='json')

    output_path = args.output or args.essay.with_name(f"{args.essay.stem}_grading.yaml")
    try:
        with open(output_path, 'w') as f:
            yaml.dump(output, f, default_flow_style=False, sort_keys=False)
        LOG.info(f"Result saved to: {output_path}")
    except OSError as e:
        LOG.error(f"Failed to save result: {e}")
        sys.exit(1)

    print(f"\n{'='*50}")
    print(f"Grading Complete")
    print(f"{'='*50}")
    print(f"Score: {result.overall_score:g}/{result.max_score:g} ({result.percentage}%)")
    print(f"Grade: {result.grade}  UMS: {result.ums}  Band: {result.band}")
    print(f"Confidence: {result.confidence:.2f}")
    print(f"\nDimension Scores:")
    for dim in result.dimension_results:
        marker = " (unparsed reply)" if dim.degraded else ""
        print(f"  - {dim.dimension.value} {dim.examiner_name}: {dim.score:g}/{dim.max_score:g}{marker}")
    if result.metadata.failed_dimensions:
        print(f"\nFailed examiners: {', '.join(result.metadata.failed_dimensions)}")
    print(f"\n{result.summary}")
    print(f"\nResult saved to: {output_path}")


if __name__ == "__main__":
    main()
