"""
Unit tests for final score fusion and coaching comments.

Tests cover:
- Weighted fusion, clamping and config overrides
- Comment thresholds and ordering
- Comment generation failures
"""

import math

import pytest # pyright: ignore[reportMissingImports]
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from fusion.score_fusion import CompositeResult, compose_final_score, compose_result
from scoring.coaching_comments import (
    SUB_SCORE_TIPS,
    generate_comments,
    safe_generate_comments
)
from scoring.posture_geometry import FALLBACK_REPORT, PostureReport, PostureSubScores


def make_report(overall, depth=90, balance=90, back_angle=90, knee_valgus=90):
    return PostureReport(
        overall=overall,
        breakdown=PostureSubScores(
            depth=depth, balance=balance, back_angle=back_angle, knee_valgus=knee_valgus
        )
    )


TIPS = dict(SUB_SCORE_TIPS)


class TestComposeFinalScore:
    """Test score fusion."""

    def test_pose_only(self):
        assert compose_final_score(100, 0) == 70

    def test_expression_only(self):
        assert compose_final_score(0, 100) == 30

    def test_zero(self):
        assert compose_final_score(0, 0) == 0

    def test_mixed(self):
        assert compose_final_score(80, 60) == 74

    def test_inputs_clamped(self):
        """Out-of-range inputs are clamped before weighting."""
        assert compose_final_score(150, -20) == 70
        assert compose_final_score(math.nan, 100) == 30

    def test_custom_weights(self):
        assert compose_final_score(80, 60, pose_weight=0.5, expression_weight=0.5) == 70

    def test_output_clamped(self):
        assert compose_final_score(100, 100, pose_weight=1.0, expression_weight=1.0) == 100

    def test_half_rounds_up(self):
        """10.5 and 12.5 both round up."""
        assert compose_final_score(15, 0) == 11
        assert compose_final_score(25, 0, pose_weight=0.5, expression_weight=0.5) == 13


class TestComposeResult:
    """Test the fused result and its configuration."""

    def test_defaults(self):
        result = compose_result(100, 0)

        assert result == CompositeResult(pose_score=100.0, expression_score=0.0, final_score=70)
        assert result.to_dict() == {'poseScore': 100.0, 'expressionScore': 0.0, 'finalScore': 70}

    def test_config_weights(self):
        config = {'scoring': {'final': {'pose_weight': 0.5, 'expression_weight': 0.5}}}

        assert compose_result(80, 60, config=config).final_score == 70

    def test_explicit_weights_win(self):
        config = {'scoring': {'final': {'pose_weight': 0.5, 'expression_weight': 0.5}}}

        result = compose_result(100, 0, pose_weight=1.0, expression_weight=0.0, config=config)

        assert result.final_score == 100

    def test_reported_inputs_clamped(self):
        result = compose_result(120, -5)

        assert result.pose_score == 100.0
        assert result.expression_score == 0.0


class TestCoachingComments:
    """Test rule-based comments."""

    def test_good_form(self):
        comments = generate_comments(make_report(90))

        assert len(comments) == 1
        assert 'good' in comments[0]

    def test_fallback_report(self):
        """Knee valgus (60) and back angle (68) fall below 70; balance (70) does not."""
        comments = generate_comments(FALLBACK_REPORT)

        assert comments[1:] == [TIPS['knee_valgus'], TIPS['back_angle']]
        assert 'stable' in comments[0]

    def test_low_overall(self):
        comments = generate_comments(make_report(40, depth=20, balance=30, back_angle=10, knee_valgus=0))

        assert 'key corrections' in comments[0]
        assert comments[1:] == [TIPS['depth'], TIPS['knee_valgus'], TIPS['back_angle'], TIPS['balance']]

    def test_custom_threshold(self):
        comments = generate_comments(make_report(90), threshold=95)

        assert len(comments) == 5

    def test_expression_tip(self):
        assert len(generate_comments(make_report(90), expression_score=30)) == 2
        assert len(generate_comments(make_report(90), expression_score=70)) == 1

    def test_deterministic(self):
        assert generate_comments(FALLBACK_REPORT) == generate_comments(FALLBACK_REPORT)

    def test_safe_threshold_from_config(self):
        config = {'scoring': {'posture': {'comment_threshold': 50}}}

        assert len(safe_generate_comments(FALLBACK_REPORT, config=config)) == 1

    def test_safe_swallows_errors(self):
        assert safe_generate_comments(object()) == []


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
