"""
Frame sampling orchestration for expression analysis.

Pipeline per video:
1. Probe duration (fatal on failure: no plan without a duration)
2. Plan sample instants (start, middle, tail_01..tail_NN)
3. For each instant, sequentially:
   extract frame -> detect faces -> pick main face -> score emotions
4. Return every per-instant outcome, failed or not

Engineering decisions:
- Strictly sequential: extraction and detection share one workspace and one
  detector quota, and one bad instant cannot corrupt another
- Per-instant failures become FrameOutcome records (ok=False), never
  exceptions crossing the loop
- "No usable frames" is a valid result, not an error
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from scoring.expression_composite import (
    EmotionLabel,
    expression_composite,
    expression_overall_from_frames,
)
from utils.config_loader import get_nested_config
from utils.video_io import MediaSource, ProbeFailure

from .face_analyzer import EmotionDetector, pick_main_face
from .timestamp_planner import DEFAULT_TAIL_COUNT, SampleInstant, plan_timestamps

logger = logging.getLogger(__name__)

NO_FACE = "no face"


@dataclass(frozen=True)
class FrameOutcome:
    """
    Analysis result for one sample instant.

    Attributes:
        label: Instant label
        t: Instant time in seconds
        ok: Whether a face was found and scored
        emotions: Full 8-label confidence mapping (ok only)
        dominant_emotion: (label, confidence) of the strongest emotion (ok only)
        overall: Expression composite score 0-100 (ok only)
        failure_reason: Why the instant failed (failed only)
    """
    label: str
    t: float
    ok: bool
    emotions: Optional[Dict[EmotionLabel, float]] = None
    dominant_emotion: Optional[Tuple[EmotionLabel, float]] = None
    overall: Optional[int] = None
    failure_reason: Optional[str] = None

    @classmethod
    def failure(cls, instant: SampleInstant, reason: str) -> 'FrameOutcome':
        return cls(label=instant.label, t=instant.t, ok=False, failure_reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (absent optional fields omitted)."""
        data: Dict[str, Any] = {'label': self.label, 't': self.t, 'ok': self.ok}
        if self.emotions is not None:
            data['emotions'] = {label.value: conf for label, conf in self.emotions.items()}
        if self.dominant_emotion is not None:
            label, confidence = self.dominant_emotion
            data['dominantEmotion'] = {'label': label.value, 'confidence': confidence}
        if self.overall is not None:
            data['overall'] = self.overall
        if self.failure_reason is not None:
            data['failureReason'] = self.failure_reason
        return data


@dataclass(frozen=True)
class SamplingResult:
    """Duration plus the ordered FrameOutcome sequence of one video."""
    duration: float
    frames: List[FrameOutcome] = field(default_factory=list)

    @property
    def ok_count(self) -> int:
        return sum(1 for f in self.frames if f.ok)

    def expression_score(self, weights: Optional[Dict] = None) -> int:
        """Session expression score over successful frames (0 if none)."""
        return expression_overall_from_frames(
            [f.emotions for f in self.frames if f.ok and f.emotions is not None],
            weights
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'duration': self.duration,
            'frames': [f.to_dict() for f in self.frames],
        }


class FrameSampler:
    """
    Drive per-video expression sampling.

    Usage:
        sampler = FrameSampler(OpenCVMediaSource(), RekognitionEmotionDetector(), config)
        result = sampler.analyze('squat.mp4')
    """

    def __init__(
        self,
        media: MediaSource,
        detector: EmotionDetector,
        config: Optional[Dict] = None
    ):
        """
        Initialize the sampler.

        Args:
            media: Media probe/extractor collaborator
            detector: Emotion detector collaborator
            config: Configuration dict (sampling.tail_count, scoring.expression.weights)
        """
        self.media = media
        self.detector = detector

        config = config or {}
        self.tail_count = get_nested_config(config, 'sampling.tail_count', DEFAULT_TAIL_COUNT)
        self.emotion_weights = get_nested_config(config, 'scoring.expression.weights')

    def probe(self, video_path: str) -> float:
        """
        Probe the video duration.

        Raises:
            ProbeFailure: If the probe errors or returns a non-finite/non-positive value
        """
        try:
            duration = self.media.probe_duration(video_path)
        except ProbeFailure:
            raise
        except Exception as e:
            raise ProbeFailure(f"Duration probe failed: {e}") from e

        try:
            duration = float(duration)
        except (TypeError, ValueError):
            raise ProbeFailure(f"Probe returned a non-numeric duration: {duration!r}")

        if not math.isfinite(duration) or duration <= 0:
            raise ProbeFailure(f"Probe returned invalid duration: {duration}")

        return duration

    def analyze(self, video_path: str, tail_count: Optional[int] = None) -> SamplingResult:
        """
        Analyze one video.

        Args:
            video_path: Path to the video
            tail_count: Instants between middle and end (config default if None)

        Returns:
            SamplingResult with one FrameOutcome per planned instant, in plan order

        Raises:
            ProbeFailure: If no valid duration can be obtained
            VideoTooShort: If the video is too short to plan
        """
        if tail_count is None:
            tail_count = self.tail_count

        duration = self.probe(video_path)
        logger.info(f"Video duration: {duration:.2f}s")

        plan = plan_timestamps(duration, tail_count)
        logger.info(
            "Timestamps: " + ", ".join(f"{p.label}:{p.t:.2f}s" for p in plan)
        )

        frames: List[FrameOutcome] = []
        for instant in plan:
            outcome = self.sample_instant(video_path, instant)
            frames.append(outcome)

            if outcome.ok:
                logger.info(f"  {instant.label}@{instant.t:.2f}s: overall={outcome.overall}")
            else:
                logger.info(f"  {instant.label}@{instant.t:.2f}s: failed ({outcome.failure_reason})")

        result = SamplingResult(duration=duration, frames=frames)
        logger.info(f"Sampled {len(frames)} instants, {result.ok_count} usable")

        return result

    def sample_instant(self, video_path: str, instant: SampleInstant) -> FrameOutcome:
        """Extract, detect and score one instant; failures are returned as records."""
        try:
            image = self.media.extract_frame(video_path, instant.t)
        except Exception as e:
            logger.warning(f"Frame {instant.label} @{instant.t:.2f}s extraction error: {e}")
            return FrameOutcome.failure(instant, str(e) or "frame extraction failed")

        try:
            faces = self.detector.detect_faces(image)
        except Exception as e:
            logger.warning(f"Frame {instant.label} @{instant.t:.2f}s detection error: {e}")
            return FrameOutcome.failure(instant, str(e) or "emotion detection failed")

        main = pick_main_face(faces)
        if main is None:
            return FrameOutcome.failure(instant, NO_FACE)

        emotions = main.emotion_map()

        return FrameOutcome(
            label=instant.label,
            t=instant.t,
            ok=True,
            emotions=emotions,
            dominant_emotion=main.dominant_emotion(),
            overall=expression_composite(emotions, self.emotion_weights)
        )
