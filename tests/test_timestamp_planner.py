"""
Unit tests for sample-instant planning.

Tests cover:
- Plan shape and labels
- Start/middle/tail placement
- Invalid and too-short durations
"""

import math

import pytest # pyright: ignore[reportMissingImports]
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from video_pipeline.timestamp_planner import (
    MIN_PLAN_DURATION,
    InvalidDuration,
    SampleInstant,
    VideoTooShort,
    plan_timestamps
)


class TestPlanShape:
    """Test plan size and labelling."""

    def test_default_tail_count(self):
        """Default plan has 12 instants."""
        plan = plan_timestamps(30.0)

        assert len(plan) == 12
        assert plan[0].label == 'start'
        assert plan[1].label == 'middle'
        assert plan[2].label == 'tail_01'
        assert plan[-1].label == 'tail_10'

    def test_labels_unique(self):
        """Every label appears once."""
        plan = plan_timestamps(45.0, tail_count=25)

        labels = [p.label for p in plan]
        assert len(labels) == len(set(labels)) == 27

    def test_zero_tail_count(self):
        """Only start and middle remain."""
        plan = plan_timestamps(10.0, tail_count=0)

        assert [p.label for p in plan] == ['start', 'middle']

    def test_wide_tail_labels(self):
        """Labels widen past two digits."""
        plan = plan_timestamps(60.0, tail_count=100)

        assert plan[2].label == 'tail_001'
        assert plan[-1].label == 'tail_100'

    def test_negative_tail_count(self):
        """Negative tail counts are rejected."""
        with pytest.raises(ValueError):
            plan_timestamps(10.0, tail_count=-1)


class TestPlanPlacement:
    """Test where the instants land."""

    def test_twenty_second_video(self):
        """Start at 1% of duration, tails evenly spread up to end - 50ms."""
        plan = plan_timestamps(20.0, tail_count=3)

        assert isinstance(plan[0], SampleInstant)
        assert plan[0].t == pytest.approx(0.2)
        assert plan[1].t == pytest.approx(10.0)

        end = 20.0 - 0.05
        for i, instant in enumerate(plan[2:], start=1):
            assert instant.t == pytest.approx(10.0 + i / 4 * (end - 10.0))

    def test_start_clamped(self):
        """Start stays within [0.1, 0.5] seconds."""
        assert plan_timestamps(1.0)[0].t == pytest.approx(0.1)
        assert plan_timestamps(600.0)[0].t == pytest.approx(0.5)

    @pytest.mark.parametrize('duration', [MIN_PLAN_DURATION, 0.5, 3.0, 17.3, 3600.0])
    def test_instants_in_range(self, duration):
        """All instants lie inside the video."""
        for instant in plan_timestamps(duration):
            assert 0.0 <= instant.t <= duration

    @pytest.mark.parametrize('duration', [1.0, 20.0, 125.0])
    def test_tails_increase(self, duration):
        """Tails come strictly after the middle, in increasing order."""
        plan = plan_timestamps(duration)
        times = [p.t for p in plan[1:]]

        assert all(a < b for a, b in zip(times, times[1:]))
        assert plan[0].t <= plan[1].t

    def test_deterministic(self):
        """Same input, same plan."""
        assert plan_timestamps(12.34, 4) == plan_timestamps(12.34, 4)


class TestInvalidDuration:
    """Test rejected durations."""

    @pytest.mark.parametrize('duration', [0, -1.0, math.nan, math.inf, -math.inf, 'abc', None])
    def test_invalid(self, duration):
        """Non-finite, non-positive and non-numeric durations are rejected."""
        with pytest.raises(InvalidDuration):
            plan_timestamps(duration)

    def test_too_short(self):
        """Very short clips raise VideoTooShort."""
        with pytest.raises(VideoTooShort):
            plan_timestamps(MIN_PLAN_DURATION / 2)

    def test_too_short_is_invalid_duration(self):
        """VideoTooShort can be handled as InvalidDuration."""
        assert issubclass(VideoTooShort, InvalidDuration)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
