"""
Pytest configuration and shared fixtures for the collaborative positioning mesh.

Provides a controllable clock, report builders, an event recorder for
registry/transport callbacks, and helpers for loopback socket tests.
"""

import sys
import threading
import time
from pathlib import Path
from typing import Callable, List, Sequence, Tuple

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cpm_core.metrics import MetricsCollector
from cpm_core.proto import Position, Report, SatelliteMeasurement
from cpm_core.registry import DeviceRegistry
from cpm_core.simulation import offset_position


BASE_POSITION = Position(latitude=22.2900, longitude=114.1700, altitude=2.0)


# =============================================================================
# Helpers
# =============================================================================


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int):
        self.now_ms += ms


class EventRecorder:
    """Thread-safe record of callback invocations, in call order."""

    def __init__(self):
        self._lock = threading.Lock()
        self.events: List[Tuple] = []

    def on_added(self, device_id: str):
        with self._lock:
            self.events.append(('added', device_id))

    def on_updated(self, device_id: str, report: Report):
        with self._lock:
            self.events.append(('updated', device_id))

    def on_removed(self, device_id: str):
        with self._lock:
            self.events.append(('removed', device_id))

    def on_status(self, text: str):
        with self._lock:
            self.events.append(('status', text))

    def kinds(self, device_id: str = None) -> List[str]:
        with self._lock:
            return [e[0] for e in self.events if device_id is None or e[1] == device_id]

    def statuses(self) -> List[str]:
        with self._lock:
            return [e[1] for e in self.events if e[0] == 'status']


def make_report(
    device_id: str = "device-A",
    timestamp: int = 1_700_000_000_000,
    east_m: float = 0.0,
    north_m: float = 0.0,
    rates: Sequence[Tuple[int, float]] = (),
    accuracy: float = 3.5,
) -> Report:
    """
    Build a report at an ENU offset from BASE_POSITION.

    Args:
        device_id: Device id
        timestamp: Capture time (ms)
        east_m: Offset east of base (m)
        north_m: Offset north of base (m)
        rates: (svid, pseudorange rate) pairs
        accuracy: Horizontal accuracy (m)
    """
    position = offset_position(BASE_POSITION, east_m, north_m)
    return Report(
        device_id=device_id,
        timestamp=timestamp,
        latitude=position.latitude,
        longitude=position.longitude,
        altitude=position.altitude,
        accuracy=accuracy,
        measurements=tuple(
            SatelliteMeasurement(svid, 1575.42e6, rate, 40.0) for svid, rate in rates
        ),
    )


def wait_for(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
    """
    Poll until predicate() is true.

    Returns:
        True if the predicate became true before the timeout
    """
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Fresh metrics collector, isolated from the global one."""
    return MetricsCollector()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def registry(clock, recorder, metrics) -> DeviceRegistry:
    """Registry driven by the fake clock, recording every notification."""
    return DeviceRegistry(
        on_added=recorder.on_added,
        on_updated=recorder.on_updated,
        on_removed=recorder.on_removed,
        clock=clock,
        metrics=metrics,
    )


@pytest.fixture
def sample_report() -> Report:
    """Report with three satellites."""
    return Report(
        device_id="3f2a9c1e-77b0-4d1c-9a55-0c2e8d1b6f42",
        timestamp=1_700_000_123_456,
        latitude=22.290123456789,
        longitude=114.170987654321,
        altitude=12.75,
        accuracy=4.2,
        measurements=(
            SatelliteMeasurement(3, 1575.42e6, -412.53125, 38.2),
            SatelliteMeasurement(12, 0.0, 655.2, 41.0),
            SatelliteMeasurement(24, 1176.45e6, 0.1 + 0.2, 29.9),
        ),
    )
