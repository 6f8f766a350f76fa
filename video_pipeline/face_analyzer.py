"""
Face emotion analysis.

The emotion detector is an external collaborator: given an encoded image it
returns zero or more faces, each with a bounding box and a confidence-scored
emotion distribution. This module defines that interface, the main-face
selection rule, and an AWS Rekognition adapter.

Engineering decisions:
- Only the largest face (bounding-box area) is analyzed; bystanders are ignored
- Confidences are independent per label (not a probability simplex)
- Labels outside the closed EmotionLabel set are dropped
- The Rekognition client is injectable so the adapter can be tested offline
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import boto3

from scoring.expression_composite import EmotionLabel, clamp_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundingBox:
    """Face bounding box in normalized image coordinates."""
    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)


@dataclass(frozen=True)
class EmotionScore:
    """One detector-reported emotion with confidence (0-100)."""
    label: str
    confidence: float


@dataclass(frozen=True)
class FaceDetection:
    """
    One detected face.

    Attributes:
        bounding_box: Face location
        emotions: Emotion scores in detector order
    """
    bounding_box: BoundingBox
    emotions: Tuple[EmotionScore, ...] = field(default_factory=tuple)

    def emotion_map(self) -> Dict[EmotionLabel, float]:
        """
        Full 8-label mapping (missing labels 0, unknown labels dropped).

        Detector order is preserved for the reported labels so that ties
        resolve the same way the detector listed them.
        """
        reported: Dict[EmotionLabel, float] = {}
        for score in self.emotions:
            label = EmotionLabel.parse(score.label)
            if label is None:
                logger.debug(f"Dropping unknown emotion label: {score.label!r}")
                continue
            if label not in reported:
                reported[label] = clamp_score(score.confidence)

        for label in EmotionLabel:
            reported.setdefault(label, 0.0)

        return reported

    def dominant_emotion(self) -> Tuple[EmotionLabel, float]:
        """Label with the highest confidence; first maximum wins."""
        best_label, best_conf = None, -1.0
        for label, confidence in self.emotion_map().items():
            if confidence > best_conf:
                best_label, best_conf = label, confidence
        return best_label, best_conf


class EmotionDetector(ABC):
    """Interface for face/emotion detection collaborators."""

    @abstractmethod
    def detect_faces(self, image: bytes) -> List[FaceDetection]:
        """Detect faces with emotion distributions in an encoded image."""
        pass


def pick_main_face(faces: Optional[Sequence[FaceDetection]]) -> Optional[FaceDetection]:
    """
    Select the face with the largest bounding-box area.

    Ties keep the earlier face. Returns None if there are no faces.
    """
    if not faces:
        return None

    main = faces[0]
    for face in faces[1:]:
        if face.bounding_box.area > main.bounding_box.area:
            main = face
    return main


class RekognitionEmotionDetector(EmotionDetector):
    """
    Emotion detector backed by AWS Rekognition DetectFaces.

    Usage:
        detector = RekognitionEmotionDetector(region='ap-northeast-2')
        faces = detector.detect_faces(jpeg_bytes)
    """

    def __init__(self, client: Any = None, region: Optional[str] = None):
        """
        Initialize the detector.

        Args:
            client: Pre-built Rekognition client (a boto3 client is created if None)
            region: AWS region (defaults to AWS_REGION)
        """
        if client is None:
            region = region or os.getenv('AWS_REGION')
            client = boto3.client('rekognition', region_name=region)
            logger.info(f"Rekognition emotion detector initialized (region={region})")

        self.client = client

    def detect_faces(self, image: bytes) -> List[FaceDetection]:
        response = self.client.detect_faces(Image={'Bytes': image}, Attributes=['ALL'])
        faces = [self._to_face(detail) for detail in response.get('FaceDetails') or []]
        logger.debug(f"Rekognition returned {len(faces)} faces")
        return faces

    @staticmethod
    def _to_face(detail: Dict[str, Any]) -> FaceDetection:
        box = detail.get('BoundingBox') or {}
        emotions = tuple(
            EmotionScore(label=str(e['Type']), confidence=float(e.get('Confidence') or 0.0))
            for e in detail.get('Emotions') or []
            if e.get('Type')
        )
        return FaceDetection(
            bounding_box=BoundingBox(
                left=float(box.get('Left') or 0.0),
                top=float(box.get('Top') or 0.0),
                width=float(box.get('Width') or 0.0),
                height=float(box.get('Height') or 0.0)
            ),
            emotions=emotions
        )
