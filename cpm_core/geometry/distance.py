"""
Great-circle distance between reported positions.

Uses the haversine formula on a spherical Earth with a fixed mean radius,
which is accurate to well under a meter at the short ranges devices share a
link over.
"""

import math
from typing import Optional

from cpm_core.proto.report import Position

EARTH_RADIUS_M = 6371000.0

# Returned when either side has no known position. Distinct from a real 0.0.
UNKNOWN_DISTANCE = -1.0


def distance_meters(a: Optional[Position], b: Optional[Position]) -> float:
    """
    Haversine distance between two positions.

    Args:
        a: First position (degrees), or None if unknown
        b: Second position (degrees), or None if unknown

    Returns:
        Distance in meters, or UNKNOWN_DISTANCE if either side is None or
        has a non-finite coordinate

    Notes:
        - Altitude is ignored.
        - Symmetric: distance_meters(a, b) == distance_meters(b, a)
    """
    if a is None or b is None:
        return UNKNOWN_DISTANCE
    if not all(math.isfinite(v) for v in (a.latitude, a.longitude, b.latitude, b.longitude)):
        return UNKNOWN_DISTANCE

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)

    h = (math.sin(dlat / 2) ** 2
         + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2)
    # Rounding can push h a hair outside [0, 1] for antipodal points
    h = min(1.0, max(0.0, h))

    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def is_known(distance_m: float) -> bool:
    """True if distance is a real measurement, not the unknown sentinel."""
    return distance_m >= 0.0
