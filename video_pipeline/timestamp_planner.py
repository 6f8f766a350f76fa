"""
Sample-instant planning for expression analysis.

A fixed number of instants is chosen per video:
1. start  - near the beginning, kept away from 0 to dodge decoder edge artifacts
2. middle - the midpoint
3. tail_01..tail_NN - evenly spread between the midpoint and the end

Coaching rationale:
- Form and composure degrade late in a set, so the back half is sampled densely
- Start and middle still anchor the comparison

Engineering decisions:
- Pure and deterministic (reproducible fixtures)
- End instant pulled back 50ms so the extractor never seeks past EOF
- Videos shorter than MIN_PLAN_DURATION are rejected instead of producing
  overlapping or out-of-range instants
"""

import logging
import math
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)

DEFAULT_TAIL_COUNT = 10

# Below this, start/middle/end start to collapse onto each other
MIN_PLAN_DURATION = 0.2

START_FRACTION = 0.01
START_MIN_SEC = 0.1
START_MAX_SEC = 0.5
END_MARGIN_SEC = 0.05


class InvalidDuration(ValueError):
    """Raised when a duration cannot be planned (non-finite or non-positive)."""


class VideoTooShort(InvalidDuration):
    """Raised when a valid duration is too short for a non-degenerate plan."""


@dataclass(frozen=True)
class SampleInstant:
    """
    A planned point in time at which one frame is analyzed.

    Attributes:
        label: Unique label within the plan ('start', 'middle', 'tail_01', ...)
        t: Time in seconds (0 <= t <= duration)
    """
    label: str
    t: float


def plan_timestamps(duration: float, tail_count: int = DEFAULT_TAIL_COUNT) -> List[SampleInstant]:
    """
    Plan the sample instants for a video.

    Args:
        duration: Video duration in seconds
        tail_count: Number of instants between the middle and the end

    Returns:
        List of tail_count + 2 SampleInstants in plan order

    Raises:
        InvalidDuration: If duration is not finite or not positive
        VideoTooShort: If duration is below MIN_PLAN_DURATION
        ValueError: If tail_count is negative
    """
    try:
        duration = float(duration)
    except (TypeError, ValueError):
        raise InvalidDuration(f"Duration is not a number: {duration!r}")

    if not math.isfinite(duration) or duration <= 0:
        raise InvalidDuration(f"Duration must be finite and positive, got {duration}")

    if duration < MIN_PLAN_DURATION:
        raise VideoTooShort(
            f"Video too short to sample: {duration:.3f}s < {MIN_PLAN_DURATION}s"
        )

    if tail_count < 0:
        raise ValueError(f"tail_count must be >= 0, got {tail_count}")

    start = max(START_MIN_SEC, min(START_MAX_SEC, duration * START_FRACTION))
    mid = duration / 2
    end = max(END_MARGIN_SEC, duration - END_MARGIN_SEC)

    width = max(2, len(str(tail_count)))

    plan = [
        SampleInstant(label="start", t=start),
        SampleInstant(label="middle", t=mid),
    ]
    for i in range(1, tail_count + 1):
        ratio = i / (tail_count + 1)
        plan.append(SampleInstant(
            label=f"tail_{i:0{width}d}",
            t=mid + ratio * (end - mid)
        ))

    logger.debug(
        "Planned timestamps: " + ", ".join(f"{p.label}:{p.t:.2f}s" for p in plan)
    )

    return plan
