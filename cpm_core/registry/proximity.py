"""
Proximity classification between a reference device and its neighbours.

Rules, checked in order for each pair:
- distance < 50 m and relative velocity < -2 m/s: WARNING (approaching)
- 0 < distance < 20 m: CAUTION (close proximity)
- otherwise: NONE

An unknown distance (sentinel) suppresses both flags.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List

from cpm_core.geometry import is_known
from cpm_core.proto import short_id


class ProximityLevel(IntEnum):
    """Severity of a proximity flag."""

    NONE = 0
    CAUTION = 1   # Close proximity
    WARNING = 2   # Approaching


@dataclass(frozen=True)
class ProximityThresholds:
    """
    Classification thresholds.

    Attributes:
        warning_distance_m: Approaching warning only below this distance
        warning_velocity_mps: Approaching warning only below this velocity
        caution_distance_m: Close-proximity caution below this distance
    """

    warning_distance_m: float = 50.0
    warning_velocity_mps: float = -2.0
    caution_distance_m: float = 20.0


DEFAULT_THRESHOLDS = ProximityThresholds()


@dataclass(frozen=True)
class ProximityAssessment:
    """
    Result of comparing the reference device with one other device.

    Attributes:
        device_id: The other device
        distance_m: Great-circle distance, or the unknown sentinel
        relative_velocity_mps: Averaged pseudorange-rate difference
        level: Classification
    """

    device_id: str
    distance_m: float
    relative_velocity_mps: float
    level: ProximityLevel = ProximityLevel.NONE

    @property
    def is_flagged(self) -> bool:
        return self.level != ProximityLevel.NONE


def classify(
    distance_m: float,
    relative_velocity_mps: float,
    thresholds: ProximityThresholds = DEFAULT_THRESHOLDS,
) -> ProximityLevel:
    """
    Classify one pair.

    Args:
        distance_m: Distance in meters, or the unknown sentinel
        relative_velocity_mps: Relative velocity in m/s (negative = closing)
        thresholds: Classification thresholds

    Returns:
        ProximityLevel for the pair
    """
    if not is_known(distance_m):
        return ProximityLevel.NONE

    if (distance_m < thresholds.warning_distance_m
            and relative_velocity_mps < thresholds.warning_velocity_mps):
        return ProximityLevel.WARNING

    if 0.0 < distance_m < thresholds.caution_distance_m:
        return ProximityLevel.CAUTION

    return ProximityLevel.NONE


LEVEL_TEXT = {
    ProximityLevel.WARNING: "WARNING: Approaching!",
    ProximityLevel.CAUTION: "CAUTION: Close proximity",
}


def format_assessments(assessments: List[ProximityAssessment]) -> str:
    """Render assessments as the proximity analysis text block."""
    lines = ["Proximity Analysis:", ""]
    for assessment in assessments:
        lines.append(f"Device: {short_id(assessment.device_id)}")
        lines.append(f"Distance: {assessment.distance_m:.2f} m")
        lines.append(f"Rel. Velocity: {assessment.relative_velocity_mps:.2f} m/s")
        if assessment.is_flagged:
            lines.append(LEVEL_TEXT[assessment.level])
        lines.append("")
    return "\n".join(lines)
