"""
Video analysis pipeline for exercise coaching.

This package implements the two video-driven analysis paths:
1. Expression sampling (planned instants -> frame extraction -> emotion detection)
2. Landmark streaming (per-frame skeletons -> sampled batches -> posture scores)

Coaching rationale:
- Expression is judged at a handful of instants weighted toward the end of the set
- Posture is judged continuously, refreshed batch by batch
"""

from .timestamp_planner import (
    SampleInstant,
    InvalidDuration,
    VideoTooShort,
    plan_timestamps
)
from .face_analyzer import (
    BoundingBox,
    EmotionScore,
    FaceDetection,
    EmotionDetector,
    RekognitionEmotionDetector,
    pick_main_face
)
from .pose_analyzer import (
    LandmarkDetector,
    MediaPipeLandmarkDetector
)
from .frame_sampler import (
    FrameOutcome,
    FrameSampler,
    SamplingResult
)
from .landmark_stream import (
    LandmarkFrame,
    LandmarkBatchAggregator,
    stream_video_landmarks
)

__all__ = [
    'SampleInstant',
    'InvalidDuration',
    'VideoTooShort',
    'plan_timestamps',
    'BoundingBox',
    'EmotionScore',
    'FaceDetection',
    'EmotionDetector',
    'RekognitionEmotionDetector',
    'pick_main_face',
    'LandmarkDetector',
    'MediaPipeLandmarkDetector',
    'FrameOutcome',
    'FrameSampler',
    'SamplingResult',
    'LandmarkFrame',
    'LandmarkBatchAggregator',
    'stream_video_landmarks',
]
