"""
Final score fusion.

Combines the posture score and the expression score into one coached score:

    final = clamp(round_half_up(pose_weight * pose + expr_weight * expr), 0, 100)

Engineering approach:
- Inputs clamped to [0, 100] before weighting (out-of-range upstream data
  never leaks into the final score)
- Weights are trusted as given; they need not sum to 1
- Pure functions, no state
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from scoring.rounding import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_POSE_WEIGHT = 0.7
DEFAULT_EXPRESSION_WEIGHT = 0.3


@dataclass(frozen=True)
class CompositeResult:
    """
    Fused session score.

    Attributes:
        pose_score: Posture score used for fusion (0-100)
        expression_score: Expression score used for fusion (0-100)
        final_score: Weighted final score (0-100)
    """
    pose_score: float
    expression_score: float
    final_score: int

    def to_dict(self) -> Dict[str, float]:
        return {
            'poseScore': self.pose_score,
            'expressionScore': self.expression_score,
            'finalScore': self.final_score,
        }


def _clamp(value: float) -> float:
    value = float(value)
    if math.isnan(value):
        return 0.0
    return float(np.clip(value, 0.0, 100.0))


def compose_final_score(
    pose_score: float,
    expression_score: float,
    pose_weight: float = DEFAULT_POSE_WEIGHT,
    expression_weight: float = DEFAULT_EXPRESSION_WEIGHT
) -> int:
    """
    Compute the final coached score.

    Args:
        pose_score: Posture score (clamped to [0, 100] first)
        expression_score: Expression score (clamped to [0, 100] first)
        pose_weight: Weight of the posture score
        expression_weight: Weight of the expression score

    Returns:
        Integer score in [0, 100]
    """
    pose = _clamp(pose_score)
    expr = _clamp(expression_score)

    final = float(pose_weight) * pose + float(expression_weight) * expr
    if math.isnan(final):
        return 0

    return int(np.clip(round_half_up(final), 0, 100))


def compose_result(
    pose_score: float,
    expression_score: float,
    pose_weight: Optional[float] = None,
    expression_weight: Optional[float] = None,
    config: Optional[Dict] = None
) -> CompositeResult:
    """
    Fuse both scores into a CompositeResult.

    Explicit weights win over config['scoring']['final'], which wins over
    the defaults.
    """
    final_config = ((config or {}).get('scoring') or {}).get('final') or {}
    if pose_weight is None:
        pose_weight = final_config.get('pose_weight', DEFAULT_POSE_WEIGHT)
    if expression_weight is None:
        expression_weight = final_config.get('expression_weight', DEFAULT_EXPRESSION_WEIGHT)

    final = compose_final_score(pose_score, expression_score, pose_weight, expression_weight)

    logger.info(
        f"Final score: {final}/100 "
        f"(pose={_clamp(pose_score):.0f} x {pose_weight}, "
        f"expression={_clamp(expression_score):.0f} x {expression_weight})"
    )

    return CompositeResult(
        pose_score=_clamp(pose_score),
        expression_score=_clamp(expression_score),
        final_score=final
    )
