"""
Rule-based coaching comments.

Turns posture (and optionally expression) scores into short corrective tips.

Thresholds:
- overall >= 85: keep the current pattern
- overall >= 70: stable base, minor corrections
- otherwise:     focus on the key corrections
- each sub-score below the comment threshold (default 70) adds its tip

Comments are cosmetic: generation failures are logged and yield no comments.
"""

import logging
from typing import Dict, List, Optional

from .posture_geometry import PostureReport

logger = logging.getLogger(__name__)

DEFAULT_COMMENT_THRESHOLD = 70
EXPRESSION_COMMENT_THRESHOLD = 50

SUB_SCORE_TIPS = (
    ('depth', "Squat depth is limited. Push your hips further back and keep knees tracking over your toes."),
    ('knee_valgus', "Your knees tend to cave inward. Keep the foot arch engaged and point knees toward your second toe."),
    ('back_angle', "Your back alignment breaks down. Brace your core first and keep ribcage and pelvis stacked."),
    ('balance', "Your center of mass drifts. Spread the load over heel, little toe and big toe to stay centered."),
)


def _summary_line(overall: float) -> str:
    if overall >= 85:
        return "Overall form looks good. Keep this movement pattern."
    if overall >= 70:
        return "Your base position is stable. A few small corrections will make it better."
    return "Let's work through the key corrections slowly."


def generate_comments(
    report: PostureReport,
    expression_score: Optional[float] = None,
    threshold: float = DEFAULT_COMMENT_THRESHOLD
) -> List[str]:
    """
    Generate coaching comments for a posture report.

    Args:
        report: Posture scores
        expression_score: Optional expression score (0-100)
        threshold: Sub-scores below this trigger a tip

    Returns:
        Ordered list of comments (deterministic for the same scores)
    """
    comments = [_summary_line(report.overall)]

    breakdown = report.breakdown.to_dict()
    for name, tip in SUB_SCORE_TIPS:
        if breakdown.get(name, 100) < threshold:
            comments.append(tip)

    if expression_score is not None and expression_score < EXPRESSION_COMMENT_THRESHOLD:
        comments.append("You look strained. Relax your face and breathe steadily through each rep.")

    return comments


def safe_generate_comments(
    report: PostureReport,
    expression_score: Optional[float] = None,
    config: Optional[Dict] = None
) -> List[str]:
    """generate_comments, but failures are logged and produce no comments."""
    try:
        posture_config = ((config or {}).get('scoring') or {}).get('posture') or {}
        threshold = posture_config.get('comment_threshold', DEFAULT_COMMENT_THRESHOLD)
        return generate_comments(report, expression_score, threshold=threshold)
    except Exception as e:
        logger.warning(f"Comment generation failed: {e}")
        return []
