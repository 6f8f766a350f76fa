"""
Unit tests for expression frame sampling.

Tests cover:
- Main-face selection and emotion mapping
- Rekognition response mapping (offline, fake client)
- Per-instant failure handling
- Probe failures
"""

import math

import pytest # pyright: ignore[reportMissingImports]
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from scoring.expression_composite import EmotionLabel
from utils.video_io import MediaSource, ProbeFailure
from video_pipeline.face_analyzer import (
    BoundingBox,
    EmotionDetector,
    EmotionScore,
    FaceDetection,
    RekognitionEmotionDetector,
    pick_main_face
)
from video_pipeline.frame_sampler import NO_FACE, FrameOutcome, FrameSampler
from video_pipeline.timestamp_planner import SampleInstant, VideoTooShort


def make_face(area_side: float, **emotions) -> FaceDetection:
    return FaceDetection(
        bounding_box=BoundingBox(left=0.1, top=0.1, width=area_side, height=area_side),
        emotions=tuple(EmotionScore(label, conf) for label, conf in emotions.items())
    )


class FakeMedia(MediaSource):
    """Media source returning the requested time as the image payload."""

    def __init__(self, duration=20.0, fail_times=()):
        self.duration = duration
        self.fail_times = set(fail_times)
        self.extracted = []

    def probe_duration(self, video_path):
        if isinstance(self.duration, Exception):
            raise self.duration
        return self.duration

    def extract_frame(self, video_path, t):
        self.extracted.append(t)
        if round(t, 3) in self.fail_times:
            raise OSError("decoder error")
        return f"{t:.3f}".encode()


class FakeDetector(EmotionDetector):
    """Detector driven by a callable image -> faces."""

    def __init__(self, respond):
        self.respond = respond

    def detect_faces(self, image):
        return self.respond(image)


class FakeRekognitionClient:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def detect_faces(self, **kwargs):
        self.calls.append(kwargs)
        return self.response


class TestFaceDetection:
    """Test face selection and emotion mapping."""

    def test_largest_face_wins(self):
        small = make_face(0.1, HAPPY=100)
        large = make_face(0.4, ANGRY=100)

        assert pick_main_face([small, large]) is large

    def test_tie_keeps_first(self):
        first = make_face(0.2, HAPPY=100)
        second = make_face(0.2, CALM=100)

        assert pick_main_face([first, second]) is first

    def test_no_faces(self):
        assert pick_main_face([]) is None
        assert pick_main_face(None) is None

    def test_emotion_map_complete(self):
        emotions = make_face(0.2, HAPPY=90, BORED=50).emotion_map()

        assert len(emotions) == 8
        assert emotions[EmotionLabel.HAPPY] == 90
        assert emotions[EmotionLabel.SAD] == 0.0

    def test_dominant_first_maximum(self):
        """Ties resolve to the label the detector listed first."""
        face = make_face(0.2, CALM=50, HAPPY=50, SAD=10)

        assert face.dominant_emotion() == (EmotionLabel.CALM, 50)


class TestRekognitionDetector:
    """Test the Rekognition adapter with a fake client."""

    def test_request_and_mapping(self):
        client = FakeRekognitionClient({
            'FaceDetails': [{
                'BoundingBox': {'Left': 0.2, 'Top': 0.1, 'Width': 0.3, 'Height': 0.4},
                'Emotions': [
                    {'Type': 'HAPPY', 'Confidence': 97.5},
                    {'Type': 'CALM', 'Confidence': 1.5},
                ],
            }]
        })
        detector = RekognitionEmotionDetector(client=client)

        faces = detector.detect_faces(b'jpeg')

        assert client.calls == [{'Image': {'Bytes': b'jpeg'}, 'Attributes': ['ALL']}]
        assert len(faces) == 1
        assert faces[0].bounding_box.area == pytest.approx(0.12)
        assert faces[0].dominant_emotion() == (EmotionLabel.HAPPY, 97.5)

    def test_no_face_details(self):
        detector = RekognitionEmotionDetector(client=FakeRekognitionClient({}))

        assert detector.detect_faces(b'jpeg') == []


class TestFrameSampler:
    """Test per-video sampling."""

    def test_outcomes_in_plan_order(self):
        """One outcome per planned instant, labels in plan order."""
        sampler = FrameSampler(FakeMedia(), FakeDetector(lambda img: [make_face(0.3, HAPPY=80)]))

        result = sampler.analyze('clip.mp4', tail_count=3)

        assert result.duration == 20.0
        assert [f.label for f in result.frames] == ['start', 'middle', 'tail_01', 'tail_02', 'tail_03']
        assert all(f.ok for f in result.frames)
        assert result.frames[0].overall == 40
        assert result.expression_score() == 40

    def test_tail_count_from_config(self):
        sampler = FrameSampler(
            FakeMedia(),
            FakeDetector(lambda img: []),
            config={'sampling': {'tail_count': 2}}
        )

        assert len(sampler.analyze('clip.mp4').frames) == 4

    def test_sequential_extraction(self):
        media = FakeMedia()
        sampler = FrameSampler(media, FakeDetector(lambda img: []))

        sampler.analyze('clip.mp4', tail_count=3)

        assert media.extracted == sorted(media.extracted)
        assert len(media.extracted) == 5

    def test_no_face(self):
        sampler = FrameSampler(FakeMedia(), FakeDetector(lambda img: []))

        result = sampler.analyze('clip.mp4', tail_count=1)

        assert all(not f.ok and f.failure_reason == NO_FACE for f in result.frames)
        assert result.ok_count == 0
        assert result.expression_score() == 0

    def test_extraction_failure_isolated(self):
        """A failed extraction does not stop the other instants."""
        media = FakeMedia(fail_times=[10.0])
        sampler = FrameSampler(media, FakeDetector(lambda img: [make_face(0.3, CALM=100)]))

        result = sampler.analyze('clip.mp4', tail_count=2)

        middle = result.frames[1]
        assert middle.label == 'middle'
        assert not middle.ok
        assert 'decoder error' in middle.failure_reason
        assert result.ok_count == 3

    def test_detection_failure_isolated(self):
        def respond(image):
            if image == b'10.000':
                raise RuntimeError("throttled")
            return [make_face(0.3, CALM=100)]

        sampler = FrameSampler(FakeMedia(), FakeDetector(respond))

        result = sampler.analyze('clip.mp4', tail_count=2)

        assert [f.ok for f in result.frames] == [True, False, True, True]
        assert result.frames[1].failure_reason == 'throttled'

    def test_main_face_scored(self):
        """Only the largest face contributes."""
        faces = [make_face(0.1, HAPPY=100), make_face(0.5, ANGRY=100)]
        sampler = FrameSampler(FakeMedia(), FakeDetector(lambda img: faces))

        outcome = sampler.analyze('clip.mp4', tail_count=0).frames[0]

        assert outcome.overall == 0
        assert outcome.dominant_emotion == (EmotionLabel.ANGRY, 100)

    def test_weights_from_config(self):
        sampler = FrameSampler(
            FakeMedia(),
            FakeDetector(lambda img: [make_face(0.3, HAPPY=80)]),
            config={'scoring': {'expression': {'weights': {'HAPPY': 1.0}}}}
        )

        assert sampler.analyze('clip.mp4', tail_count=0).frames[0].overall == 80


class TestProbe:
    """Test duration probing failures."""

    def test_probe_exception(self):
        sampler = FrameSampler(FakeMedia(duration=OSError("no ffprobe")), FakeDetector(lambda img: []))

        with pytest.raises(ProbeFailure):
            sampler.analyze('clip.mp4')

    @pytest.mark.parametrize('duration', [0, -3.0, math.nan, math.inf, 'n/a', None])
    def test_invalid_probe_value(self, duration):
        sampler = FrameSampler(FakeMedia(duration=duration), FakeDetector(lambda img: []))

        with pytest.raises(ProbeFailure):
            sampler.analyze('clip.mp4')

    def test_too_short(self):
        media = FakeMedia(duration=0.1)
        sampler = FrameSampler(media, FakeDetector(lambda img: []))

        with pytest.raises(VideoTooShort):
            sampler.analyze('clip.mp4')
        assert media.extracted == []


class TestFrameOutcome:
    """Test wire representation."""

    def test_failure_dict(self):
        outcome = FrameOutcome.failure(SampleInstant('start', 0.2), NO_FACE)

        assert outcome.to_dict() == {'label': 'start', 't': 0.2, 'ok': False, 'failureReason': NO_FACE}

    def test_success_dict(self):
        sampler = FrameSampler(FakeMedia(), FakeDetector(lambda img: [make_face(0.3, HAPPY=80)]))
        data = sampler.analyze('clip.mp4', tail_count=0).frames[0].to_dict()

        assert data['ok'] is True
        assert data['emotions']['HAPPY'] == 80
        assert len(data['emotions']) == 8
        assert data['dominantEmotion'] == {'label': 'HAPPY', 'confidence': 80}
        assert data['overall'] == 40
        assert 'failureReason' not in data


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
