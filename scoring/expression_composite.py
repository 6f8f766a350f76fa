"""
Expression composite scoring.

Collapses an emotion-confidence distribution into a single 0-100 score.

Score interpretation:
- Positive, settled expressions (happy, calm) raise the score
- Surprise contributes mildly
- Anger and disgust pull the score down
- Sadness, confusion and fear are neutral by default

Engineering approach:
- Linear weighted sum over the closed label set, then round and clamp
- Weights are design constants, overridable per call for tuning
- Multi-frame variant averages each label only over frames that report it
"""

import logging
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Union

import numpy as np

from .rounding import round_half_up

logger = logging.getLogger(__name__)


class EmotionLabel(Enum):
    """Closed set of emotion labels reported by the emotion detector."""
    HAPPY = "HAPPY"
    CALM = "CALM"
    SURPRISED = "SURPRISED"
    SAD = "SAD"
    ANGRY = "ANGRY"
    CONFUSED = "CONFUSED"
    DISGUSTED = "DISGUSTED"
    FEAR = "FEAR"

    @classmethod
    def parse(cls, value) -> Optional['EmotionLabel']:
        """Resolve an EmotionLabel or a (case-insensitive) label name; None if unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                return None
        return None


DEFAULT_EMOTION_WEIGHTS: Dict[EmotionLabel, float] = {
    EmotionLabel.HAPPY: 0.5,
    EmotionLabel.SURPRISED: 0.2,
    EmotionLabel.CALM: 0.5,
    EmotionLabel.ANGRY: -0.2,
    EmotionLabel.DISGUSTED: -0.2,
}

EmotionKey = Union[EmotionLabel, str]


def clamp_score(value: float) -> float:
    """Clamp a score to [0, 100]; NaN maps to 0."""
    value = float(value)
    if np.isnan(value):
        return 0.0
    return float(np.clip(value, 0.0, 100.0))


def normalize_emotions(emotions: Optional[Mapping[EmotionKey, float]]) -> Dict[EmotionLabel, float]:
    """
    Map arbitrary emotion keys onto EmotionLabel, clamping confidences.

    Unknown labels are dropped. Labels not present stay absent.
    """
    normalized: Dict[EmotionLabel, float] = {}
    for key, confidence in (emotions or {}).items():
        label = EmotionLabel.parse(key)
        if label is None:
            logger.debug(f"Ignoring unknown emotion label: {key!r}")
            continue
        try:
            normalized[label] = clamp_score(confidence)
        except (TypeError, ValueError):
            normalized[label] = 0.0
    return normalized


def resolve_weights(weights: Optional[Mapping[EmotionKey, float]] = None) -> Dict[EmotionLabel, float]:
    """Merge per-call weight overrides over DEFAULT_EMOTION_WEIGHTS."""
    merged = {label: DEFAULT_EMOTION_WEIGHTS.get(label, 0.0) for label in EmotionLabel}
    for key, weight in (weights or {}).items():
        label = EmotionLabel.parse(key)
        if label is None:
            logger.warning(f"Ignoring weight for unknown emotion label: {key!r}")
            continue
        merged[label] = float(weight)
    return merged


def expression_composite(
    emotions: Optional[Mapping[EmotionKey, float]],
    weights: Optional[Mapping[EmotionKey, float]] = None
) -> int:
    """
    Compute the expression score of one emotion distribution.

    Formula:
        score = clamp(round_half_up(sum(weight[label] * confidence[label])), 0, 100)

    Args:
        emotions: Mapping label -> confidence (0-100); missing labels count as 0
        weights: Optional overrides merged over the default weights

    Returns:
        Integer score in [0, 100]
    """
    normalized = normalize_emotions(emotions)
    merged = resolve_weights(weights)

    # Fixed label order keeps the float sum independent of mapping order
    total = sum(merged[label] * normalized.get(label, 0.0) for label in EmotionLabel)

    return int(clamp_score(round_half_up(total)))


def average_emotions(frames: Iterable[Optional[Mapping[EmotionKey, float]]]) -> Dict[EmotionLabel, float]:
    """
    Average each label's confidence across the frames that report it.

    A frame missing a label does not contribute a zero for that label.
    """
    sums: Dict[EmotionLabel, float] = {}
    counts: Dict[EmotionLabel, int] = {}

    for emotions in frames:
        for label, confidence in normalize_emotions(emotions).items():
            sums[label] = sums.get(label, 0.0) + confidence
            counts[label] = counts.get(label, 0) + 1

    return {label: sums[label] / counts[label] for label in sums}


def expression_overall_from_frames(
    frames: Iterable[Optional[Mapping[EmotionKey, float]]],
    weights: Optional[Mapping[EmotionKey, float]] = None
) -> int:
    """
    Session-level expression score from many per-frame distributions.

    Args:
        frames: Per-frame emotion mappings
        weights: Optional overrides merged over the default weights

    Returns:
        Integer score in [0, 100]; 0 when no frame reports anything
    """
    averaged = average_emotions(frames)
    if not averaged:
        return 0
    return expression_composite(averaged, weights)
