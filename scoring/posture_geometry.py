"""
Posture geometry scoring for squat-style exercises.

Sub-scores extracted from one skeleton (33 MediaPipe Pose joints):
1. depth       - how far the hips have dropped relative to the knee-ankle span
2. balance     - horizontal centering of the trunk in the frame
3. back_angle  - torso uprightness (hip midpoint -> shoulder midpoint)
4. knee_valgus - knee spacing relative to ankle spacing (knees caving in)

Engineering decisions:
- Normalized image coordinates (x, y in 0-1); vertical terms are evaluated
  with y flipped to point up, so an upright torso points along +y
- Every division guarded by EPSILON against degenerate skeletons
- Sub-scores computed on [0, 1] and reported on [0, 100]
- Frames with fewer than 33 joints are rejected, never guessed

Coaching rationale:
- Depth and balance dominate squat quality, hence their higher overall weights
- Knee collapse is penalized, wide knees are not
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from .rounding import round_half_up

logger = logging.getLogger(__name__)

EPSILON = 1e-6
NUM_JOINTS = 33
KNEE_VALGUS_SCALE = 1.2
FRAME_CENTER_X = 0.5

# MediaPipe Pose landmark indices
# See: https://google.github.io/mediapipe/solutions/pose.html
LEFT_SHOULDER = 11
RIGHT_SHOULDER = 12
LEFT_HIP = 23
RIGHT_HIP = 24
LEFT_KNEE = 25
RIGHT_KNEE = 26
LEFT_ANKLE = 27
RIGHT_ANKLE = 28

DEFAULT_OVERALL_WEIGHTS = {
    'depth': 0.35,
    'balance': 0.25,
    'back_angle': 0.20,
    'knee_valgus': 0.20,
}

SUB_SCORE_NAMES = ('depth', 'balance', 'back_angle', 'knee_valgus')


class IncompleteSkeleton(ValueError):
    """Raised when a skeleton does not carry all 33 usable joints."""


@dataclass(frozen=True)
class JointPosition:
    """
    One body joint in normalized image coordinates.

    Attributes:
        x: Horizontal position (0-1, left to right)
        y: Vertical position (0-1, top to bottom)
        z: Normalized depth
        visibility: Optional detector confidence (0-1)
    """
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None

    @classmethod
    def from_any(cls, point: Any) -> 'JointPosition':
        """Build from a JointPosition, a {x, y, z, visibility} mapping or an (x, y[, z]) sequence."""
        if isinstance(point, cls):
            return point
        if isinstance(point, Mapping):
            visibility = point.get('visibility')
            return cls(
                x=float(point['x']),
                y=float(point['y']),
                z=float(point.get('z', 0.0) or 0.0),
                visibility=None if visibility is None else float(visibility)
            )
        x, y, *rest = point
        return cls(x=float(x), y=float(y), z=float(rest[0]) if rest else 0.0)

    def to_dict(self) -> Dict[str, float]:
        data = {'x': self.x, 'y': self.y, 'z': self.z}
        if self.visibility is not None:
            data['visibility'] = self.visibility
        return data


@dataclass(frozen=True)
class PostureGeometry:
    """Per-frame sub-scores on the internal [0, 1] scale."""
    depth: float
    balance: float
    back_angle: float
    knee_valgus: float

    def to_scores(self) -> 'PostureSubScores':
        return PostureSubScores(
            depth=to_percent(self.depth),
            balance=to_percent(self.balance),
            back_angle=to_percent(self.back_angle),
            knee_valgus=to_percent(self.knee_valgus)
        )


@dataclass(frozen=True)
class PostureSubScores:
    """Posture sub-scores reported to callers (each 0-100)."""
    depth: int
    balance: int
    back_angle: int
    knee_valgus: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class PostureReport:
    """
    One posture-score update.

    Attributes:
        overall: Weighted overall posture score (0-100)
        breakdown: Sub-scores (0-100)
        valid_frames: Number of complete skeletons the update was computed from
        source: 'computed' for real results, 'fallback' for the demo placeholder
    """
    overall: int
    breakdown: PostureSubScores
    valid_frames: int = 0
    source: str = 'computed'

    @property
    def is_fallback(self) -> bool:
        return self.source == 'fallback'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall': self.overall,
            'breakdown': self.breakdown.to_dict(),
            'validFrames': self.valid_frames,
            'source': self.source,
        }


FALLBACK_REPORT = PostureReport(
    overall=72,
    breakdown=PostureSubScores(depth=80, balance=70, back_angle=68, knee_valgus=60),
    valid_frames=0,
    source='fallback'
)


def to_percent(value: float) -> int:
    """Convert a [0, 1] value into a clamped integer on [0, 100]."""
    return int(np.clip(round_half_up(float(value) * 100), 0, 100))


def _clip01(value: float) -> float:
    return float(np.clip(value, 0.0, 1.0))


def skeleton_to_array(points: Optional[Sequence[Any]]) -> np.ndarray:
    """
    Convert a skeleton into an (N, 3) array of x, y, z.

    Raises:
        IncompleteSkeleton: If fewer than 33 joints are present or the
                            joints used for scoring are not finite numbers
    """
    if points is None or len(points) < NUM_JOINTS:
        count = 0 if points is None else len(points)
        raise IncompleteSkeleton(f"Expected {NUM_JOINTS} joints, got {count}")

    try:
        joints = [JointPosition.from_any(p) for p in points]
    except (KeyError, TypeError, ValueError) as e:
        raise IncompleteSkeleton(f"Malformed joint: {e}")

    arr = np.array([[j.x, j.y, j.z] for j in joints], dtype=float)

    used = [LEFT_SHOULDER, RIGHT_SHOULDER, LEFT_HIP, RIGHT_HIP,
            LEFT_KNEE, RIGHT_KNEE, LEFT_ANKLE, RIGHT_ANKLE]
    if not np.all(np.isfinite(arr[used, :2])):
        raise IncompleteSkeleton("Non-finite coordinates in scored joints")

    return arr


def compute_posture_geometry(points: Sequence[Any]) -> PostureGeometry:
    """
    Compute the four sub-scores of one skeleton on the [0, 1] scale.

    Args:
        points: 33 joints (JointPosition, mappings or sequences)

    Returns:
        PostureGeometry

    Raises:
        IncompleteSkeleton: If the skeleton cannot be scored
    """
    arr = skeleton_to_array(points)

    x = arr[:, 0]
    # Flip so that +y points up
    y_up = 1.0 - arr[:, 1]

    hip_x = (x[LEFT_HIP] + x[RIGHT_HIP]) / 2
    hip_y = (y_up[LEFT_HIP] + y_up[RIGHT_HIP]) / 2
    knee_y = (y_up[LEFT_KNEE] + y_up[RIGHT_KNEE]) / 2
    ankle_y = (y_up[LEFT_ANKLE] + y_up[RIGHT_ANKLE]) / 2
    shoulder_x = (x[LEFT_SHOULDER] + x[RIGHT_SHOULDER]) / 2
    shoulder_y = (y_up[LEFT_SHOULDER] + y_up[RIGHT_SHOULDER]) / 2

    # Depth: hip drop relative to the knee-ankle span
    raw_depth = (knee_y - hip_y) / max(EPSILON, knee_y - ankle_y)
    depth = _clip01(raw_depth)

    # Back angle: torso vector vs vertical, linear decay to 0 at horizontal
    angle = math.atan2(shoulder_y - hip_y, shoulder_x - hip_x)
    back_angle = 1.0 - min(abs(angle - math.pi / 2) / (math.pi / 2), 1.0)

    # Knee valgus: only collapse (knees narrower than ankles) is penalized
    knee_spread = abs(x[LEFT_KNEE] - x[RIGHT_KNEE])
    ankle_spread = abs(x[LEFT_ANKLE] - x[RIGHT_ANKLE])
    ratio = _clip01(knee_spread / max(ankle_spread, EPSILON))
    knee_valgus = _clip01(ratio * KNEE_VALGUS_SCALE)

    # Balance: trunk center offset from the frame center
    center_x = (shoulder_x + hip_x) / 2
    offset = center_x - FRAME_CENTER_X
    balance = 1.0 - min(abs(offset) / 0.5, 1.0)

    return PostureGeometry(
        depth=depth,
        balance=_clip01(balance),
        back_angle=_clip01(back_angle),
        knee_valgus=knee_valgus
    )


def score_skeleton(points: Sequence[Any]) -> PostureSubScores:
    """
    Score one skeleton.

    Returns:
        PostureSubScores on [0, 100]

    Raises:
        IncompleteSkeleton: If the skeleton cannot be scored
    """
    return compute_posture_geometry(points).to_scores()


def overall_posture_score(
    breakdown: PostureSubScores,
    weights: Optional[Mapping[str, float]] = None
) -> int:
    """Weighted overall posture score (0-100)."""
    merged = dict(DEFAULT_OVERALL_WEIGHTS)
    merged.update(weights or {})

    total = sum(merged.get(name, 0.0) * getattr(breakdown, name) for name in SUB_SCORE_NAMES)
    return int(np.clip(round_half_up(total), 0, 100))


def _frame_points(frame: Any) -> Any:
    if isinstance(frame, Mapping):
        return frame.get('points')
    return getattr(frame, 'points', frame)


def score_posture_frames(
    frames: Iterable[Any],
    weights: Optional[Mapping[str, float]] = None
) -> Optional[PostureReport]:
    """
    Score a batch of landmark frames.

    Incomplete skeletons are skipped and do not count toward the divisor.

    Args:
        frames: Items with a 'points' skeleton ({ts, points} mappings,
                LandmarkFrame objects or bare skeletons)
        weights: Optional overrides for the overall weights

    Returns:
        PostureReport averaged over valid frames, or None if no frame was valid
    """
    geometries: List[PostureGeometry] = []
    skipped = 0

    for frame in frames:
        try:
            geometries.append(compute_posture_geometry(_frame_points(frame)))
        except IncompleteSkeleton as e:
            skipped += 1
            logger.debug(f"Skipping frame: {e}")

    if not geometries:
        logger.info(f"No complete skeletons in batch ({skipped} skipped)")
        return None

    mean = PostureGeometry(**{
        name: float(np.mean([getattr(g, name) for g in geometries]))
        for name in SUB_SCORE_NAMES
    })
    breakdown = mean.to_scores()

    report = PostureReport(
        overall=overall_posture_score(breakdown, weights),
        breakdown=breakdown,
        valid_frames=len(geometries),
        source='computed'
    )

    logger.debug(
        f"Scored batch: {len(geometries)} valid, {skipped} skipped, overall={report.overall}"
    )

    return report
