#!/usr/bin/env python3
"""Command-line interface for grading a manifest of essays concurrently."""

import argparse
import logging
import sys
from pathlib import Path
from datetime import datetime

from examiner_panel.libs.config_loader import load_all_configs
from .batch_grader import BatchGrader, load_manifest
from .rubric_config import default_rubric_config, load_rubric_config

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
LOG = logging.getLogger(__name__)


def main():
    """Main entry point for grade-essays command."""
    parser = argparse.ArgumentParser(
        description='Grade many essays in parallel, each with its own examiner panel',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Manifest format:
  defaults:
    question_type: 14-mark
    subject: economics
  essays:
    - id: student1
      question: "Evaluate the impact of a minimum wage."
      essay_file: student1.txt
    - id: student2
      question: "Discuss the effects of a rise in interest rates."
      essay: "Inline essay text..."

Examples:
  # Grade every essay in a manifest
  grade-essays --manifest essays.yaml

  # Allow more essays in flight and write results to a specific directory
  grade-essays --manifest essays.yaml --max-concurrent 8 --output-dir results/

  # Save summary to specific location
  grade-essays --manifest essays.yaml --summary summary.yaml
        """
    )

    parser.add_argument(
        '--manifest', '-i',
        type=Path,
        required=True,
        help='YAML manifest listing the essays to grade'
    )
    parser.add_argument(
        '--output-dir', '-d',
        type=Path,
        default=None,
        help='Directory for per-essay result files (default: results/ next to the manifest)'
    )
    parser.add_argument(
        '--summary', '-o',
        type=Path,
        default=None,
        help='Path to save summary YAML file (default: grading_summary_TIMESTAMP.yaml in output dir)'
    )
    parser.add_argument(
        '--rubric-config',
        type=Path,
        default=None,
        help='YAML file overriding question types, mark bands or examiners'
    )
    parser.add_argument(
        '--model', '-m',
        type=str,
        default=None,
        help='Model to use (overrides config value)'
    )
    parser.add_argument(
        '--max-concurrent', '-t',
        type=int,
        default=None,
        help='Maximum number of essays graded at once (overrides config value)'
    )
    parser.add_argument(
        '--continue-on-error',
        action='store_true',
        help='Exit successfully even if some essays fail'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not args.manifest.is_file():
        LOG.error(f"Manifest file does not exist: {args.manifest}")
        sys.exit(1)

    try:
        essays = load_manifest(args.manifest)
    except (OSError, ValueError) as e:
        LOG.error(f"Failed to load manifest: {e}")
        sys.exit(1)
    LOG.info(f"Loaded {len(essays)} essays from {args.manifest}")

    try:
        config = load_all_configs()
        rubric = load_rubric_config(args.rubric_config) if args.rubric_config else default_rubric_config()
        batch_grader = BatchGrader(
            configs=config,
            model=args.model,
            max_concurrent=args.max_concurrent,
            rubric=rubric
        )
    except Exception as e:
        LOG.error(f"Failed to initialize batch grader: {e}")
        sys.exit(1)

    output_dir = args.output_dir or args.manifest.parent / "results"

    try:
        results = batch_grader.grade_all_essays(essays, output_dir=output_dir)
    except Exception as e:
        LOG.error(f"Batch grading failed: {e}")
        sys.exit(1)

    if not results:
        LOG.error("No essays were graded")
        sys.exit(1)

    if args.summary is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        summary_path = output_dir / f"grading_summary_{timestamp}.yaml"
    else:
        summary_path = args.summary

    try:
        batch_grader.save_summary(results, summary_path)
    except OSError as e:
        LOG.error(f"Failed to save summary: {e}")

    successful = [r for r in results if r.success]
    failed = [r for r in results if not r.success]

    print(f"\n{'='*60}")
    print(f"Batch Grading Complete")
    print(f"{'='*60}")
    print(f"Total essays: {len(results)}")
    print(f"Successfully graded: {len(successful)}")
    print(f"Failed: {len(failed)}")

    if successful:
        avg_pct = sum(r.grading_result.percentage for r in successful) / len(successful)
        print(f"Average percentage: {avg_pct:.1f}%")

        print(f"\nScores:")
        for result in successful:
            print(f"  {result.essay_id}: {result.overall_score:g}/{result.max_score:g} ({result.grade})")

    if failed:
        print(f"\nFailed essays:")
        for result in failed:
            print(f"  {result.essay_id}: [{result.error_code}] {result.error_message}")

    print(f"\nResults saved in: {output_dir}")
    print(f"Summary saved to: {summary_path}")

    if failed and not args.continue_on_error:
        sys.exit(1)


if __name__ == "__main__":
    main()
