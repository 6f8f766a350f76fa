#!/usr/bin/env python3
"""
Main orchestration script for Exercise Coach.

This script runs the complete scoring pipeline on one exercise video:
1. Expression sampling (planned instants, frame extraction, emotion detection)
2. Landmark streaming (MediaPipe skeletons, sampled batches, posture scores)
3. Score fusion (posture + expression into one coached score)
4. Coaching comments and JSON report

Usage:
    python main.py --video path/to/squat.mp4 --config configs/coach.yaml --output data/outputs

Engineering approach:
- Each stage can be skipped independently
- Per-instant and per-frame failures degrade the result, they never abort it
- Configurable weights and thresholds
- Comprehensive logging
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from fusion import compose_result
from scoring import safe_generate_comments
from utils.config_loader import get_nested_config, load_config
from utils.video_io import OpenCVMediaSource, ProbeFailure
from video_pipeline import (
    FrameSampler,
    InvalidDuration,
    LandmarkBatchAggregator,
    MediaPipeLandmarkDetector,
    RekognitionEmotionDetector,
    stream_video_landmarks
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('exercise_coach.log'),
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


def run_pipeline(
    video_path: str,
    config: Dict,
    output_dir: str,
    tail_count: Optional[int] = None,
    skip_expression: bool = False,
    skip_pose: bool = False
) -> Dict:
    """
    Execute the complete scoring pipeline.

    Args:
        video_path: Path to input video file
        config: Configuration dictionary
        output_dir: Directory for the JSON report
        tail_count: Override for sampling.tail_count
        skip_expression: Do not run expression sampling (expression score 0)
        skip_pose: Do not run landmark streaming (no posture or final score)

    Returns:
        Report dictionary (also written to <output_dir>/<session_id>_report.json)
    """
    logger.info("=" * 80)
    logger.info("EXERCISE COACH - Expression & Posture Scoring Pipeline")
    logger.info("=" * 80)

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    session_id = f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

    # =========================================================================
    # STAGE 1: Expression sampling
    # =========================================================================
    sampling = None
    expression_score = 0
    if skip_expression:
        logger.info("Skipping expression sampling")
    else:
        logger.info("\n" + "=" * 80)
        logger.info("STAGE 1: Expression Sampling")
        logger.info("=" * 80)

        sampler = FrameSampler(
            OpenCVMediaSource(),
            RekognitionEmotionDetector(region=get_nested_config(config, 'detectors.rekognition.region')),
            config
        )
        sampling = sampler.analyze(video_path, tail_count=tail_count)
        expression_score = sampling.expression_score(
            get_nested_config(config, 'scoring.expression.weights')
        )
        logger.info(f"Expression score: {expression_score}/100")

    # =========================================================================
    # STAGE 2: Landmark streaming
    # =========================================================================
    posture = None
    if skip_pose:
        logger.info("Skipping landmark streaming")
    else:
        logger.info("\n" + "=" * 80)
        logger.info("STAGE 2: Landmark Streaming")
        logger.info("=" * 80)

        detector = MediaPipeLandmarkDetector.from_config(config)
        aggregator = LandmarkBatchAggregator.from_config(config)
        try:
            posture = stream_video_landmarks(video_path, detector, aggregator)
        finally:
            detector.close()

        if posture is None:
            logger.warning("Skeletons were detected but none was complete, no posture score")
        elif posture.is_fallback:
            logger.warning("No skeleton detected in the video, no posture score")
        else:
            logger.info(f"Posture score: {posture.overall}/100 ({posture.valid_frames} valid frames)")

    # =========================================================================
    # STAGE 3: Fusion and comments
    # =========================================================================
    logger.info("\n" + "=" * 80)
    logger.info("STAGE 3: Score Fusion")
    logger.info("=" * 80)

    # The demo fallback is for display only and never enters the final score
    scored_posture = posture if posture is not None and not posture.is_fallback else None

    if scored_posture is not None:
        scores = compose_result(scored_posture.overall, expression_score, config=config).to_dict()
        comments = safe_generate_comments(
            scored_posture,
            expression_score=None if skip_expression else expression_score,
            config=config
        )
    else:
        logger.warning("Final score not computed: no posture score")
        scores = {
            'poseScore': None,
            'expressionScore': None if skip_expression else expression_score,
            'finalScore': None,
        }
        comments = []

    report = {
        'session_id': session_id,
        'video': str(video_path),
        'expression': sampling.to_dict() if sampling is not None else None,
        'posture': posture.to_dict() if posture is not None else None,
        'scores': scores,
        'comments': comments,
    }

    report_path = output_path / f"{session_id}_report.json"
    with open(report_path, 'w') as f:
        json.dump(report, f, indent=2)

    if scores['finalScore'] is not None:
        logger.info(f"Final score: {scores['finalScore']}/100")
    for comment in comments:
        logger.info(f"  - {comment}")

    report['report_path'] = str(report_path)
    return report


def main():
    """Command-line interface."""
    parser = argparse.ArgumentParser(
        description="Exercise Coach - expression and posture scoring for exercise videos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Basic usage
  python main.py --video squat.mp4 --output results/

  # With custom config and fewer tail samples
  python main.py --video squat.mp4 --config custom.yaml --tail-count 5

  # Posture only
  python main.py --video squat.mp4 --skip-expression
        """
    )

    parser.add_argument(
        '--video',
        type=str,
        required=True,
        help='Path to input video file'
    )

    parser.add_argument(
        '--config',
        type=str,
        default='configs/coach.yaml',
        help='Path to configuration YAML file (default: configs/coach.yaml)'
    )

    parser.add_argument(
        '--output',
        type=str,
        default='data/outputs',
        help='Output directory for results (default: data/outputs)'
    )

    parser.add_argument(
        '--tail-count',
        type=int,
        default=None,
        help='Instants sampled between the middle and the end (default: from config)'
    )

    parser.add_argument(
        '--skip-expression',
        action='store_true',
        help='Skip expression sampling'
    )

    parser.add_argument(
        '--skip-pose',
        action='store_true',
        help='Skip landmark streaming'
    )

    args = parser.parse_args()

    video_path = Path(args.video)
    if not video_path.exists():
        logger.error(f"Video file not found: {video_path}")
        sys.exit(1)

    config_path = Path(args.config)
    if not config_path.exists():
        logger.error(f"Config file not found: {config_path}")
        sys.exit(1)

    config = load_config(str(config_path))

    try:
        result = run_pipeline(
            video_path=str(video_path),
            config=config,
            output_dir=args.output,
            tail_count=args.tail_count,
            skip_expression=args.skip_expression,
            skip_pose=args.skip_pose
        )

        logger.info("\n" + "=" * 80)
        logger.info("✓ SUCCESS: Analysis completed successfully!")
        logger.info(f"  Report: {result['report_path']}")
        logger.info("=" * 80)

        sys.exit(0)

    except (ProbeFailure, InvalidDuration) as e:
        logger.error(f"✗ Cannot analyze video: {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        logger.warning("\nAnalysis interrupted by user")
        sys.exit(1)

    except Exception as e:
        logger.error("\n✗ ERROR: Pipeline failed with exception:")
        logger.error(f"  {type(e).__name__}: {str(e)}")
        logger.exception("Full traceback:")
        sys.exit(1)


if __name__ == '__main__':
    main()
