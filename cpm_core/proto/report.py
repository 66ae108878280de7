"""
Device Report Message Schema.

A Report is one device's position plus satellite-measurement snapshot. It is
an immutable value: received reports are shared between the registry and the
relay path without copying, and an update always replaces a report wholesale.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class Position:
    """
    WGS84 position.

    Attributes:
        latitude: Latitude in degrees [-90, 90]
        longitude: Longitude in degrees [-180, 180]
        altitude: Altitude in meters
    """

    latitude: float
    longitude: float
    altitude: float = 0.0


@dataclass(frozen=True)
class SatelliteMeasurement:
    """
    Raw GNSS measurement for one satellite.

    Attributes:
        svid: Satellite vehicle id
        carrier_frequency_hz: Carrier frequency in Hz (0.0 = unknown)
        pseudorange_rate_mps: Pseudorange rate in m/s
        cn0_dbhz: Carrier-to-noise density in dB-Hz
    """

    svid: int
    carrier_frequency_hz: float
    pseudorange_rate_mps: float
    cn0_dbhz: float


@dataclass(frozen=True)
class Report:
    """
    Periodic report shared by a device.

    Attributes:
        device_id: Stable opaque device identifier
        timestamp: Capture time (wall clock, milliseconds)
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        altitude: Altitude in meters
        accuracy: Horizontal accuracy in meters
        measurements: Satellite measurements, in capture order (may be empty)

    Notes:
        - A list passed as measurements is frozen into a tuple.
        - device_id is not validated here; the codec refuses to encode
          a report without one.
    """

    device_id: str
    timestamp: int
    latitude: float
    longitude: float
    altitude: float
    accuracy: float
    measurements: Tuple[SatelliteMeasurement, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.measurements, tuple):
            object.__setattr__(self, 'measurements', tuple(self.measurements))

    @property
    def position(self) -> Position:
        """Position carried by this report."""
        return Position(self.latitude, self.longitude, self.altitude)

    @property
    def num_satellites(self) -> int:
        return len(self.measurements)

    def get_measurement(self, svid: int) -> Optional[SatelliteMeasurement]:
        """
        Get the first measurement for a satellite.

        Args:
            svid: Satellite id to find

        Returns:
            SatelliteMeasurement if present, None otherwise
        """
        for measurement in self.measurements:
            if measurement.svid == svid:
                return measurement
        return None

    def summary(self) -> str:
        """Human-readable multi-line summary."""
        return (
            f"Device: {short_id(self.device_id)}\n"
            f"Lat: {self.latitude:.6f}, Lon: {self.longitude:.6f}\n"
            f"Satellites: {self.num_satellites}\n"
            f"Accuracy: {self.accuracy:.2f}m"
        )


def short_id(device_id: str, length: int = 8) -> str:
    """Truncate a device id for display."""
    return device_id[:length]
