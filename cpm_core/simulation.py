"""
Virtual GNSS feed for running a node without a receiver.

Produces Reports for a device that starts at a local ENU offset from a base
point and drifts at a constant velocity, with noisy simulated satellite
pseudorange rates. Used by main.py and the tests in place of a sensor.
"""

import math
import time
from typing import Callable, Dict, Optional, Sequence

import numpy as np

from cpm_core.proto import Position, Report, SatelliteMeasurement

GPS_L1_HZ = 1575.42e6


def offset_position(base: Position, e: float, n: float, u: float = 0.0) -> Position:
    """
    Position at a small ENU offset (meters) from base.

    Flat-earth approximation, good to centimeters over a few hundred meters.
    """
    lat_per_meter = 1.0 / 111000.0
    lon_per_meter = 1.0 / (111000.0 * math.cos(math.radians(base.latitude)))
    return Position(
        latitude=base.latitude + n * lat_per_meter,
        longitude=base.longitude + e * lon_per_meter,
        altitude=base.altitude + u,
    )


class VirtualGnssFeed:
    """
    Simulated local report source.

    Usage:
        feed = VirtualGnssFeed("dev-1", Position(22.29, 114.17, 2.0))
        report = feed.next_report()
    """

    def __init__(
        self,
        device_id: str,
        base: Position,
        offset_enu: Sequence[float] = (0.0, 0.0, 0.0),
        velocity_enu: Sequence[float] = (0.0, 0.0, 0.0),
        satellites: Optional[Dict[int, float]] = None,
        position_noise_m: float = 0.5,
        rate_noise_mps: float = 0.05,
        seed: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            device_id: Id stamped on every report
            base: Reference point the ENU offset is measured from
            offset_enu: Starting (E, N, U) offset in meters
            velocity_enu: Constant (vE, vN, vU) in m/s
            satellites: svid -> nominal pseudorange rate (m/s)
            position_noise_m: Std dev of horizontal position noise
            rate_noise_mps: Std dev of pseudorange-rate noise
            seed: Random seed for reproducible runs
            clock: Returns seconds (wall clock)
        """
        self.device_id = device_id
        self.base = base
        self.offset_enu = np.asarray(offset_enu, dtype=float)
        self.velocity_enu = np.asarray(velocity_enu, dtype=float)
        self.satellites = dict(satellites or {})
        self.position_noise_m = position_noise_m
        self.rate_noise_mps = rate_noise_mps
        self.clock = clock

        self._rng = np.random.default_rng(seed)
        self._t0 = clock()

    def current_offset(self, now: float) -> np.ndarray:
        """True (noise-free) ENU offset at time now."""
        return self.offset_enu + self.velocity_enu * (now - self._t0)

    def next_report(self) -> Report:
        """Build a report for the current time."""
        now = self.clock()
        e, n, u = self.current_offset(now)

        noise_e, noise_n = self._rng.normal(0.0, self.position_noise_m, size=2)
        position = offset_position(self.base, e + noise_e, n + noise_n, u)

        rates = self._rng.normal(0.0, self.rate_noise_mps, size=len(self.satellites))
        measurements = tuple(
            SatelliteMeasurement(
                svid=svid,
                carrier_frequency_hz=GPS_L1_HZ,
                pseudorange_rate_mps=float(nominal + noise),
                cn0_dbhz=float(self._rng.uniform(30.0, 45.0)),
            )
            for (svid, nominal), noise in zip(sorted(self.satellites.items()), rates)
        )

        return Report(
            device_id=self.device_id,
            timestamp=int(now * 1000),
            latitude=position.latitude,
            longitude=position.longitude,
            altitude=position.altitude,
            accuracy=float(max(self.position_noise_m, 0.1) * 2),
            measurements=measurements,
        )
