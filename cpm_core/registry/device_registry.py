"""
Device Registry.

Concurrent table of device id -> latest DeviceEntry, written by transport
reader threads and the local broadcaster, swept by a periodic timer, and read
by the host display.

State per device id:
    Absent -> Active             first report (fires added, then updated)
    Active -> Active             later reports (fires updated)
    Active -> Inactive -> gone   sweep finds now - last_update > timeout
                                 (fires removed, entry deleted in same sweep)

A removed id that reports again starts over at Absent.

Threading:
    All map access happens under one re-entrant lock. Notifications are
    fired while the lock is held, so for any device id the order of
    callbacks always matches the order of mutations. Callbacks run on the
    caller's thread (reader, broadcaster or sweeper) and must not block;
    calling back into the registry from a callback is safe.
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from cpm_core.metrics import MetricsCollector, get_metrics
from cpm_core.proto import Report
from .device_entry import DeviceEntry
from .proximity import (
    DEFAULT_THRESHOLDS,
    ProximityAssessment,
    ProximityThresholds,
    classify,
    format_assessments,
)

logger = logging.getLogger(__name__)

DEVICE_TIMEOUT_MS = 10000

NO_REFERENCE_TEXT = "No data for reference device"


def wall_clock_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


class DeviceRegistry:
    """
    Latest report per device with time-based eviction.

    Usage:
        registry = DeviceRegistry(on_added=..., on_updated=..., on_removed=...)
        registry.update(report)
        registry.sweep_timeouts()           # periodically
        text = registry.proximity_report(my_id)
    """

    def __init__(
        self,
        on_added: Optional[Callable[[str], None]] = None,
        on_updated: Optional[Callable[[str, Report], None]] = None,
        on_removed: Optional[Callable[[str], None]] = None,
        timeout_ms: int = DEVICE_TIMEOUT_MS,
        clock: Callable[[], int] = wall_clock_ms,
        thresholds: ProximityThresholds = DEFAULT_THRESHOLDS,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize device registry.

        Args:
            on_added: Called with device_id when a device is first seen
            on_updated: Called with (device_id, report) on every update
            on_removed: Called with device_id when the sweep evicts a device
            timeout_ms: Liveness timeout in milliseconds
            clock: Returns current time in milliseconds
            thresholds: Proximity classification thresholds
            metrics: Metrics collector (global collector if None)
        """
        self.on_added = on_added
        self.on_updated = on_updated
        self.on_removed = on_removed
        self.timeout_ms = timeout_ms
        self.clock = clock
        self.thresholds = thresholds
        self.metrics = metrics or get_metrics()

        self._lock = threading.RLock()
        self._devices: Dict[str, DeviceEntry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __contains__(self, device_id: str) -> bool:
        with self._lock:
            return device_id in self._devices

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update(self, report: Report):
        """
        Upsert the entry for report.device_id.

        Args:
            report: Latest report for the device
        """
        device_id = report.device_id

        with self._lock:
            now = self.clock()
            previous = self._devices.get(device_id)

            if previous is None:
                self._devices[device_id] = DeviceEntry(
                    device_id=device_id,
                    report=report,
                    last_update=now,
                )
                self.metrics.increment('devices_added')
                logger.info(f"Device added: {device_id}")
                self._notify(self.on_added, device_id)
            else:
                self._devices[device_id] = previous.with_report(report, now)

            self._notify(self.on_updated, device_id, report)

    def sweep_timeouts(self) -> List[str]:
        """
        Evict every device whose last update is older than the timeout.

        Each evicted entry is marked inactive, announced through on_removed,
        then deleted.

        Returns:
            Device ids removed by this sweep
        """
        removed = []

        with self._lock:
            now = self.clock()
            self.metrics.increment('sweeps')

            stale = [
                entry for entry in self._devices.values()
                if entry.is_timed_out(now, self.timeout_ms)
            ]

            for entry in stale:
                self._devices[entry.device_id] = entry.deactivated()
                logger.info(
                    f"Device timed out: {entry.device_id} "
                    f"(silent for {entry.age_ms(now)} ms)"
                )
                self._notify(self.on_removed, entry.device_id)
                del self._devices[entry.device_id]
                removed.append(entry.device_id)

        if removed:
            self.metrics.increment('devices_removed', len(removed))
            self.metrics.increment_drop('stale_device', len(removed))

        return removed

    def clear(self):
        """Drop all entries without per-entry notifications."""
        with self._lock:
            count = len(self._devices)
            self._devices.clear()
        logger.info(f"Registry cleared ({count} devices)")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, device_id: str) -> Optional[DeviceEntry]:
        """
        Point lookup.

        Args:
            device_id: Device to find

        Returns:
            DeviceEntry if present, None otherwise
        """
        with self._lock:
            return self._devices.get(device_id)

    def all_devices(self) -> List[DeviceEntry]:
        """Snapshot of every entry, active or not."""
        with self._lock:
            return list(self._devices.values())

    def active_devices(self) -> List[DeviceEntry]:
        """
        Snapshot of live entries.

        Liveness is evaluated against the clock now, so a device that went
        silent is excluded even if no sweep has run yet.
        """
        with self._lock:
            now = self.clock()
            return [
                entry for entry in self._devices.values()
                if entry.is_live(now, self.timeout_ms)
            ]

    def active_device_count(self) -> int:
        return len(self.active_devices())

    def devices_summary(self) -> str:
        """Human-readable list of active devices."""
        active = self.active_devices()
        parts = [f"Connected Devices: {len(active)}", ""]
        for entry in active:
            parts.append(entry.report.summary())
            parts.append("---")
        return "\n".join(parts)

    def assess_proximity(self, reference_id: str) -> Optional[List[ProximityAssessment]]:
        """
        Compare the reference device with every other active device.

        Args:
            reference_id: Device to analyse from

        Returns:
            One assessment per other active device, or None if the
            reference device is unknown
        """
        reference = self.get(reference_id)
        if reference is None:
            return None

        assessments = []
        for other in self.active_devices():
            if other.device_id == reference_id:
                continue

            distance = reference.distance_to(other)
            velocity = reference.relative_velocity_to(other)
            assessments.append(ProximityAssessment(
                device_id=other.device_id,
                distance_m=distance,
                relative_velocity_mps=velocity,
                level=classify(distance, velocity, self.thresholds),
            ))

        return assessments

    def proximity_report(self, reference_id: str) -> str:
        """
        Proximity analysis text for the reference device.

        Args:
            reference_id: Device to analyse from

        Returns:
            Text block with distance, relative velocity and any warning per
            other active device
        """
        assessments = self.assess_proximity(reference_id)
        if assessments is None:
            return NO_REFERENCE_TEXT

        for assessment in assessments:
            if assessment.is_flagged:
                logger.debug(
                    f"{assessment.level.name} {reference_id} -> {assessment.device_id}: "
                    f"{assessment.distance_m:.1f} m, {assessment.relative_velocity_mps:.2f} m/s"
                )

        return format_assessments(assessments)

    def _notify(self, callback: Optional[Callable], *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Registry listener failed for {args[0]}")
