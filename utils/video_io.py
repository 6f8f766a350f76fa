"""
Video I/O utilities: duration probing, single-frame extraction, streaming.

The media probe/extractor is an external collaborator of the sampling
pipeline. MediaSource is its interface; OpenCVMediaSource is the default
implementation.

Engineering decisions:
- OpenCV for decoding (universal format support)
- ffprobe as a fallback duration probe when container metadata is missing
  (some phone recordings report 0 frames to OpenCV)
- Frames are returned JPEG-encoded, the format emotion detectors accept
- Seek by timestamp first, frame index second
"""

import logging
import math
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Generator, Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

JPEG_QUALITY = 95


class ProbeFailure(RuntimeError):
    """Raised when a video's duration cannot be determined."""


class ExtractionFailure(RuntimeError):
    """Raised when a frame cannot be decoded at the requested instant."""


class MediaSource(ABC):
    """Interface for the media probe/extractor collaborator."""

    @abstractmethod
    def probe_duration(self, video_path: str) -> float:
        """Return the video duration in seconds."""
        pass

    @abstractmethod
    def extract_frame(self, video_path: str, t: float) -> bytes:
        """Return the frame at t seconds as encoded image bytes."""
        pass


class VideoReader:
    """
    Sequential/random-access video reader.

    Usage:
        with VideoReader('video.mp4') as reader:
            for frame_idx, frame in reader.iter_frames():
                process(frame)
    """

    def __init__(
        self,
        video_path: Path,
        color_mode: str = 'RGB'
    ):
        """
        Initialize video reader.

        Args:
            video_path: Path to video file
            color_mode: 'RGB' or 'BGR' (OpenCV default)
        """
        self.video_path = Path(video_path)
        self.color_mode = color_mode

        if not self.video_path.exists():
            raise FileNotFoundError(f"Video not found: {self.video_path}")

        self.cap = cv2.VideoCapture(str(self.video_path))

        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video: {self.video_path}")

        self.fps = self.cap.get(cv2.CAP_PROP_FPS) or 0.0
        self.frame_count = int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
        self.width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.duration = self.frame_count / self.fps if self.fps > 0 else 0.0

        logger.debug(
            f"Opened video: {self.duration:.1f}s, {self.fps:.2f} FPS, "
            f"{self.frame_count} frames, {self.width}x{self.height}"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    def release(self):
        """Release video capture resources."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None

    def _convert(self, frame: np.ndarray) -> np.ndarray:
        if self.color_mode == 'RGB':
            return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        return frame

    def read_at(self, t: float) -> Optional[np.ndarray]:
        """
        Read the frame displayed at t seconds.

        Returns:
            Frame as numpy array (H, W, 3) or None if decoding failed
        """
        t = max(0.0, float(t))

        self.cap.set(cv2.CAP_PROP_POS_MSEC, t * 1000.0)
        ret, frame = self.cap.read()

        if not ret and self.fps > 0 and self.frame_count > 0:
            # Some containers ignore millisecond seeks
            frame_idx = min(int(t * self.fps), self.frame_count - 1)
            self.cap.set(cv2.CAP_PROP_POS_FRAMES, frame_idx)
            ret, frame = self.cap.read()

        if not ret or frame is None:
            logger.debug(f"Failed to read frame at {t:.2f}s from {self.video_path}")
            return None

        return self._convert(frame)

    def iter_frames(self) -> Generator[Tuple[float, np.ndarray], None, None]:
        """
        Iterate over every frame at the native frame rate.

        Yields:
            Tuple of (timestamp_ms, frame_array)
        """
        self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
        frame_idx = 0

        while True:
            ret, frame = self.cap.read()
            if not ret:
                break

            if self.fps > 0:
                timestamp_ms = frame_idx * 1000.0 / self.fps
            else:
                timestamp_ms = float(self.cap.get(cv2.CAP_PROP_POS_MSEC))

            yield timestamp_ms, self._convert(frame)
            frame_idx += 1

        logger.debug(f"Read {frame_idx} frames from {self.video_path}")


def ffprobe_duration(video_path: str, ffprobe_path: str = 'ffprobe') -> float:
    """
    Read the container duration with ffprobe.

    Raises:
        ProbeFailure: If ffprobe is missing, fails, or prints no valid number
    """
    command = [
        ffprobe_path,
        '-v', 'error',
        '-select_streams', 'v:0',
        '-show_entries', 'format=duration',
        '-of', 'default=noprint_wrappers=1:nokey=1',
        str(video_path),
    ]
    try:
        result = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=True
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise ProbeFailure(f"ffprobe failed: {e}")

    try:
        duration = float(result.stdout.strip())
    except ValueError:
        raise ProbeFailure(f"ffprobe returned invalid duration: {result.stdout.strip()!r}")

    if not math.isfinite(duration) or duration <= 0:
        raise ProbeFailure(f"ffprobe returned invalid duration: {duration}")

    return duration


class OpenCVMediaSource(MediaSource):
    """
    Media probe/extractor backed by OpenCV, with ffprobe as duration fallback.
    """

    def __init__(self, ffprobe_path: str = 'ffprobe', jpeg_quality: int = JPEG_QUALITY):
        self.ffprobe_path = ffprobe_path
        self.jpeg_quality = jpeg_quality

    def probe_duration(self, video_path: str) -> float:
        duration = 0.0
        try:
            with VideoReader(video_path, color_mode='BGR') as reader:
                duration = reader.duration
        except (FileNotFoundError, RuntimeError) as e:
            logger.warning(f"OpenCV probe failed for {video_path}: {e}")

        if math.isfinite(duration) and duration > 0:
            return float(duration)

        logger.info("OpenCV reported no duration, falling back to ffprobe")
        return ffprobe_duration(video_path, self.ffprobe_path)

    def extract_frame(self, video_path: str, t: float) -> bytes:
        try:
            with VideoReader(video_path, color_mode='BGR') as reader:
                frame = reader.read_at(t)
        except (FileNotFoundError, RuntimeError) as e:
            raise ExtractionFailure(str(e))

        if frame is None:
            raise ExtractionFailure(f"No frame decoded at {t:.2f}s")

        ok, buffer = cv2.imencode('.jpg', frame, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality])
        if not ok:
            raise ExtractionFailure(f"JPEG encoding failed at {t:.2f}s")

        return buffer.tobytes()
