"""
Registry Module: per-device latest state, liveness and proximity.

Key classes:
- DeviceRegistry: Thread-safe device table with timeout sweep
- DeviceEntry: Immutable latest state of one device
- ProximityAssessment / ProximityLevel: Pairwise classification
"""

from .device_entry import DeviceEntry
from .device_registry import (
    DEVICE_TIMEOUT_MS,
    NO_REFERENCE_TEXT,
    DeviceRegistry,
    wall_clock_ms,
)
from .proximity import (
    DEFAULT_THRESHOLDS,
    ProximityAssessment,
    ProximityLevel,
    ProximityThresholds,
    classify,
    format_assessments,
)

__all__ = [
    'DeviceEntry',
    'DEVICE_TIMEOUT_MS',
    'NO_REFERENCE_TEXT',
    'DeviceRegistry',
    'wall_clock_ms',
    'DEFAULT_THRESHOLDS',
    'ProximityAssessment',
    'ProximityLevel',
    'ProximityThresholds',
    'classify',
    'format_assessments',
]
