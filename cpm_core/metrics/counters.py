"""
Metrics counters and histograms implementation.

Provides thread-safe counters for:
- Record traffic (received, decoded, relayed, sent)
- Connection churn (opened, closed)
- Registry churn (devices added, removed, sweeps)
- Drop reasons (decode_error, send_failed, stale_device, etc.)
- Histograms (report age on receipt)

Every dropped record or connection is counted under a reason code.
"""

import logging
import statistics
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class CounterSnapshot:
    """Snapshot of counter state at a point in time."""

    timestamp: float
    counters: Dict[str, int]
    drop_reasons: Dict[str, int]
    histograms: Dict[str, List[float]]

    def total_dropped(self) -> int:
        """Total drops across all reasons."""
        return sum(self.drop_reasons.values())

    def drop_rate(self, total_records: int) -> float:
        """Calculate drop rate as percentage."""
        if total_records == 0:
            return 0.0
        return (self.total_dropped() / total_records) * 100.0


class MetricsCollector:
    """
    Thread-safe metrics collection shared by transport, registry and timers.

    Usage:
        collector = MetricsCollector()
        collector.increment('records_in')
        collector.increment_drop('decode_error')
        collector.record_histogram('report_age_ms', 12.0)

        print(collector.format_summary())
    """

    DROP_REASONS = {
        'decode_error': 'Malformed wire record, dropped',
        'oversized_frame': 'Frame length above limit, connection closed',
        'send_failed': 'Broadcast write failed, connection removed',
        'relay_failed': 'Relay write failed, connection removed',
        'connect_failed': 'Spoke could not reach hub',
        'stale_device': 'Device evicted by liveness sweep',
    }

    STANDARD_COUNTERS = [
        'records_in',
        'records_decoded',
        'records_relayed',
        'records_sent',
        'connections_opened',
        'connections_closed',
        'devices_added',
        'devices_removed',
        'sweeps',
    ]

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = defaultdict(int)
        self._drop_reasons: Dict[str, int] = defaultdict(int)
        self._histograms: Dict[str, List[float]] = defaultdict(list)
        self._start_time = time.time()

        self._init_standard_counters()

    def _init_standard_counters(self):
        with self._lock:
            for counter in self.STANDARD_COUNTERS:
                self._counters.setdefault(counter, 0)
            for reason in self.DROP_REASONS:
                self._drop_reasons.setdefault(reason, 0)

    def increment(self, counter_name: str, value: int = 1):
        """
        Increment a counter by value.

        Args:
            counter_name: Name of counter to increment
            value: Amount to increment (default 1)
        """
        with self._lock:
            self._counters[counter_name] += value

    def increment_drop(self, reason: str, value: int = 1):
        """
        Increment drop counter for specific reason.

        Args:
            reason: Drop reason code (should be in DROP_REASONS)
            value: Amount to increment (default 1)
        """
        if reason not in self.DROP_REASONS:
            logger.warning(f"Unknown drop reason '{reason}'")

        with self._lock:
            self._drop_reasons[reason] += value
            self._counters['dropped'] += value

    def get_counter(self, counter_name: str) -> int:
        with self._lock:
            return self._counters.get(counter_name, 0)

    def get_drop_count(self, reason: str) -> int:
        with self._lock:
            return self._drop_reasons.get(reason, 0)

    def record_histogram(self, histogram_name: str, value: float, max_samples: int = 10000):
        """
        Record a value in a histogram.

        Args:
            histogram_name: Name of histogram
            value: Value to record
            max_samples: Maximum samples to keep; older half is discarded
                when exceeded
        """
        with self._lock:
            samples = self._histograms[histogram_name]
            samples.append(value)
            if len(samples) > max_samples:
                self._histograms[histogram_name] = samples[-max_samples // 2:]

    def get_histogram_stats(self, histogram_name: str) -> Optional[Dict[str, float]]:
        """
        Get statistics for a histogram.

        Returns:
            Dict with count, min, max, mean, median, p95, or None if empty
        """
        with self._lock:
            samples = sorted(self._histograms.get(histogram_name, []))

        if not samples:
            return None

        count = len(samples)
        return {
            'count': count,
            'min': samples[0],
            'max': samples[-1],
            'mean': statistics.mean(samples),
            'median': statistics.median(samples),
            'p95': samples[int(count * 0.95)] if count > 1 else samples[0],
        }

    def snapshot(self) -> CounterSnapshot:
        """Copy of current metrics state."""
        with self._lock:
            return CounterSnapshot(
                timestamp=time.time(),
                counters=dict(self._counters),
                drop_reasons=dict(self._drop_reasons),
                histograms={k: list(v) for k, v in self._histograms.items()},
            )

    def reset(self):
        """Reset all metrics."""
        with self._lock:
            self._counters.clear()
            self._drop_reasons.clear()
            self._histograms.clear()
            self._start_time = time.time()
        self._init_standard_counters()

    def get_uptime(self) -> float:
        """Seconds since initialization or last reset."""
        return time.time() - self._start_time

    def format_summary(self) -> str:
        """Human-readable metrics summary."""
        snapshot = self.snapshot()
        lines = [
            "=" * 60,
            f"  METRICS SUMMARY (uptime: {self.get_uptime():.1f}s)",
            "=" * 60,
            "COUNTERS:",
        ]
        for name, value in sorted(snapshot.counters.items()):
            lines.append(f"  {name:24s}: {value:8d}")

        total_dropped = snapshot.total_dropped()
        if total_dropped > 0:
            lines.append("DROP REASONS:")
            for reason, count in sorted(snapshot.drop_reasons.items()):
                if count > 0:
                    pct = (count / total_dropped) * 100
                    lines.append(f"  {reason:24s}: {count:8d} ({pct:5.1f}%)")

        for name in sorted(snapshot.histograms):
            stats = self.get_histogram_stats(name)
            if stats:
                lines.append(
                    f"  {name}: count={stats['count']}, mean={stats['mean']:.1f}, "
                    f"p95={stats['p95']:.1f}"
                )

        lines.append("=" * 60)
        return "\n".join(lines)
