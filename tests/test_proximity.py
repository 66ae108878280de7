"""
Unit tests for proximity classification and the proximity report.

Tests cover:
- classify() rules and their precedence
- Unknown-distance sentinel suppression
- Registry assess_proximity / proximity_report over live devices
"""

import pytest

from cpm_core.geometry import UNKNOWN_DISTANCE
from cpm_core.registry import (
    NO_REFERENCE_TEXT,
    ProximityLevel,
    ProximityThresholds,
    classify,
)
from tests.conftest import make_report


class TestClassify:
    """Pairwise classification rules."""

    @pytest.mark.parametrize("distance,velocity,expected", [
        (30.0, -3.0, ProximityLevel.WARNING),    # approaching
        (10.0, 1.0, ProximityLevel.CAUTION),     # close, not approaching
        (100.0, -10.0, ProximityLevel.NONE),     # far
        (10.0, -5.0, ProximityLevel.WARNING),    # warning wins over caution
        (49.9, -2.01, ProximityLevel.WARNING),
        (50.0, -3.0, ProximityLevel.NONE),       # boundary is exclusive
        (30.0, -2.0, ProximityLevel.NONE),       # velocity boundary exclusive
        (19.99, 0.0, ProximityLevel.CAUTION),
        (20.0, 0.0, ProximityLevel.NONE),
        (0.0, 0.0, ProximityLevel.NONE),         # caution needs distance > 0
    ])
    def test_rules(self, distance, velocity, expected):
        assert classify(distance, velocity) == expected

    @pytest.mark.parametrize("velocity", [-100.0, 0.0, 5.0])
    def test_unknown_distance_suppresses(self, velocity):
        assert classify(UNKNOWN_DISTANCE, velocity) == ProximityLevel.NONE

    def test_custom_thresholds(self):
        strict = ProximityThresholds(warning_distance_m=200.0, caution_distance_m=150.0)

        assert classify(100.0, -3.0, strict) == ProximityLevel.WARNING
        assert classify(100.0, 0.0, strict) == ProximityLevel.CAUTION


class TestProximityReport:
    """Registry-level proximity analysis."""

    def test_approaching_warning(self, registry):
        registry.update(make_report("me", rates=[(1, 0.0)]))
        registry.update(make_report("other", north_m=30.0, rates=[(1, 3.0)]))

        assessments = registry.assess_proximity("me")

        assert len(assessments) == 1
        assert assessments[0].relative_velocity_mps == pytest.approx(-3.0)
        assert assessments[0].level == ProximityLevel.WARNING
        assert "WARNING: Approaching!" in registry.proximity_report("me")

    def test_close_proximity_caution(self, registry):
        registry.update(make_report("me", rates=[(4, 2.0)]))
        registry.update(make_report("other", east_m=10.0, rates=[(4, 1.0)]))

        report = registry.proximity_report("me")

        assert "CAUTION: Close proximity" in report
        assert "WARNING" not in report

    def test_far_device_not_flagged(self, registry):
        registry.update(make_report("me", rates=[(1, 0.0)]))
        registry.update(make_report("other", north_m=100.0, rates=[(1, 3.0)]))

        report = registry.proximity_report("me")

        assert "Device: other" in report
        assert "WARNING" not in report
        assert "CAUTION" not in report

    def test_reference_excluded_and_stale_skipped(self, registry, clock):
        registry.update(make_report("gone", north_m=5.0))
        clock.advance(10001)
        registry.update(make_report("me"))
        registry.update(make_report("near", north_m=5.0))

        ids = [a.device_id for a in registry.assess_proximity("me")]

        assert ids == ["near"]

    def test_unknown_reference(self, registry):
        registry.update(make_report("other"))

        assert registry.assess_proximity("me") is None
        assert registry.proximity_report("me") == NO_REFERENCE_TEXT

    def test_report_format(self, registry):
        registry.update(make_report("me"))
        registry.update(make_report("abcdefghijkl", north_m=100.0))

        lines = registry.proximity_report("me").splitlines()

        assert lines[0] == "Proximity Analysis:"
        assert "Device: abcdefgh" in lines
        assert any(line.startswith("Distance: ") and line.endswith(" m") for line in lines)
        assert "Rel. Velocity: 0.00 m/s" in lines
