"""
Device entry representation.

One DeviceEntry holds the latest Report from a device together with its
freshness metadata. Entries are immutable; the registry replaces an entry as
a unit on every update, so readers never observe a half-applied update.
"""

from dataclasses import dataclass, replace

from cpm_core.geometry import distance_meters, relative_velocity
from cpm_core.proto import Report


@dataclass(frozen=True)
class DeviceEntry:
    """
    Latest known state of one device.

    Attributes:
        device_id: Device identifier (same as report.device_id)
        report: Latest report received for this device
        last_update: Registry time of the last update (ms)
        active: False only transiently, while the sweep evicts the entry
    """

    device_id: str
    report: Report
    last_update: int
    active: bool = True

    def age_ms(self, now_ms: int) -> int:
        """Milliseconds since the last update."""
        return now_ms - self.last_update

    def is_timed_out(self, now_ms: int, timeout_ms: int) -> bool:
        """True once the entry is strictly older than timeout_ms."""
        return self.age_ms(now_ms) > timeout_ms

    def is_live(self, now_ms: int, timeout_ms: int) -> bool:
        """Active and within the timeout at now_ms."""
        return self.active and not self.is_timed_out(now_ms, timeout_ms)

    def with_report(self, report: Report, now_ms: int) -> 'DeviceEntry':
        """
        New entry carrying report, refreshed and re-activated.

        last_update never moves backwards, even if the clock does.
        """
        return DeviceEntry(
            device_id=self.device_id,
            report=report,
            last_update=max(self.last_update, now_ms),
            active=True,
        )

    def deactivated(self) -> 'DeviceEntry':
        return replace(self, active=False)

    def distance_to(self, other: 'DeviceEntry') -> float:
        """Great-circle distance to another device (m)."""
        return distance_meters(self.report.position, other.report.position)

    def relative_velocity_to(self, other: 'DeviceEntry') -> float:
        """Pseudorange-rate based relative velocity (m/s), see geometry.velocity."""
        return relative_velocity(self.report, other.report)
