"""
Geometry Module: distance and relative velocity between devices.

Pure functions over Position and Report values.
"""

from .distance import (
    EARTH_RADIUS_M,
    UNKNOWN_DISTANCE,
    distance_meters,
    is_known,
)
from .velocity import (
    matched_rate_differences,
    relative_velocity,
)

__all__ = [
    'EARTH_RADIUS_M',
    'UNKNOWN_DISTANCE',
    'distance_meters',
    'is_known',
    'matched_rate_differences',
    'relative_velocity',
]
