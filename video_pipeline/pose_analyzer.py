"""
Body landmark detection using MediaPipe Pose.

The landmark detector is an external collaborator: given one video frame it
returns zero or one skeleton of 33 normalized joints. LandmarkDetector is
its interface; MediaPipeLandmarkDetector is the default implementation.

Engineering decisions:
- MediaPipe Pose: 33 3D keypoints, efficient on CPU
- Single tracked skeleton (numPoses = 1); multi-person scenes are out of scope
- Coordinates stay normalized (0-1) so scoring is resolution independent
- Video mode (temporal tracking) by default, matching a continuous stream
"""

import logging
import warnings
from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from scoring.posture_geometry import JointPosition

logger = logging.getLogger(__name__)

# Suppress MediaPipe warnings
warnings.filterwarnings('ignore', category=UserWarning, module='google.protobuf')

try:
    import mediapipe as mp
    MEDIAPIPE_AVAILABLE = True
except ImportError:
    MEDIAPIPE_AVAILABLE = False
    logger.warning("MediaPipe not installed. Pose landmark detection unavailable.")


class LandmarkDetector(ABC):
    """Interface for body-landmark detection collaborators."""

    @abstractmethod
    def detect_skeleton(self, frame: np.ndarray) -> Optional[List[JointPosition]]:
        """Return the 33 joints of the tracked person, or None if nobody is detected."""
        pass

    def close(self) -> None:
        """Release resources."""
        pass


class MediaPipeLandmarkDetector(LandmarkDetector):
    """
    Detect body landmarks with MediaPipe Pose.

    Usage:
        detector = MediaPipeLandmarkDetector()
        points = detector.detect_skeleton(rgb_frame)
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        model_complexity: int = 1,
        static_image_mode: bool = False
    ):
        """
        Initialize the detector.

        Args:
            min_detection_confidence: Minimum confidence for pose detection
            min_tracking_confidence: Minimum confidence for landmark tracking
            model_complexity: Model complexity (0=lite, 1=full, 2=heavy)
            static_image_mode: If True, treat each frame independently
        """
        if not MEDIAPIPE_AVAILABLE:
            raise ImportError("MediaPipe not installed. Install with: pip install mediapipe")

        self.pose = mp.solutions.pose.Pose(
            static_image_mode=static_image_mode,
            model_complexity=model_complexity,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence
        )

        logger.info(f"Landmark detector initialized (MediaPipe Pose, complexity={model_complexity})")

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> 'MediaPipeLandmarkDetector':
        pose_config = ((config or {}).get('detectors') or {}).get('pose') or {}
        return cls(
            min_detection_confidence=pose_config.get('min_detection_confidence', 0.5),
            min_tracking_confidence=pose_config.get('min_tracking_confidence', 0.5),
            model_complexity=pose_config.get('model_complexity', 1)
        )

    def detect_skeleton(self, frame: np.ndarray) -> Optional[List[JointPosition]]:
        """
        Detect the skeleton in one RGB frame (H, W, 3).

        Returns:
            List of 33 JointPositions or None
        """
        results = self.pose.process(frame)

        if not results.pose_landmarks:
            return None

        return [
            JointPosition(
                x=float(lm.x),
                y=float(lm.y),
                z=float(lm.z),
                visibility=float(lm.visibility)
            )
            for lm in results.pose_landmarks.landmark
        ]

    def close(self) -> None:
        if self.pose is not None:
            self.pose.close()
            self.pose = None
