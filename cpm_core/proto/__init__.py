"""
Protocol Module: Report schema and wire codec.

- Report / SatelliteMeasurement / Position value types
- JSON wire record encode/decode with strict field validation
"""

from .report import (
    Position,
    Report,
    SatelliteMeasurement,
    short_id,
)
from .codec import (
    decode,
    encode,
    report_to_dict,
)

__all__ = [
    'Position',
    'Report',
    'SatelliteMeasurement',
    'short_id',
    'decode',
    'encode',
    'report_to_dict',
]
