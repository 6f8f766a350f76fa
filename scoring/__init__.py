"""
Exercise scoring module.

This package computes interpretable 0-100 scores:
1. Expression composite: weighted emotion confidences (per frame and per session)
2. Posture geometry: depth, balance, back angle and knee valgus per skeleton
3. Coaching comments: rule-based tips derived from the scores

All scores are:
- Bounded (clamped to 0-100 before being surfaced)
- Explainable (transparent weighted formulas)
- Tunable (weights are constants overridable through configuration)
"""

from .expression_composite import (
    EmotionLabel,
    DEFAULT_EMOTION_WEIGHTS,
    expression_composite,
    expression_overall_from_frames
)
from .posture_geometry import (
    JointPosition,
    IncompleteSkeleton,
    PostureSubScores,
    PostureReport,
    FALLBACK_REPORT,
    score_skeleton,
    score_posture_frames
)
from .coaching_comments import generate_comments, safe_generate_comments

__all__ = [
    'EmotionLabel',
    'DEFAULT_EMOTION_WEIGHTS',
    'expression_composite',
    'expression_overall_from_frames',
    'JointPosition',
    'IncompleteSkeleton',
    'PostureSubScores',
    'PostureReport',
    'FALLBACK_REPORT',
    'score_skeleton',
    'score_posture_frames',
    'generate_comments',
    'safe_generate_comments',
]
