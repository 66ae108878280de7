"""
Session: one device's participation in the mesh.

Wires the pieces the way a host application runs them:
- inbound reports from the transport go into the registry
- every share interval the local report is put into the registry and
  broadcast
- every sweep interval stale devices are evicted

Registry and transport run independently: a slow or dead transport only
delays the broadcaster's own tick, never the sweeper or registry queries.
"""

import logging
from typing import Callable, Optional

from cpm_core.io import MeshTransport, PeriodicTask, Role
from cpm_core.metrics import MetricsCollector, get_metrics
from cpm_core.proto import Report
from cpm_core.registry import DeviceRegistry

logger = logging.getLogger(__name__)

SHARE_INTERVAL_S = 1.0
SWEEP_INTERVAL_S = 5.0


class Session:
    """
    Registry + transport + timers for one local device.

    Usage:
        session = Session("my-id", feed.next_report, registry=registry, transport=transport)
        session.start()
        session.on_role_assigned(Role.HUB)
        ...
        session.stop()
    """

    def __init__(
        self,
        local_device_id: str,
        local_report_provider: Callable[[], Optional[Report]],
        registry: Optional[DeviceRegistry] = None,
        transport: Optional[MeshTransport] = None,
        share_interval_s: float = SHARE_INTERVAL_S,
        sweep_interval_s: float = SWEEP_INTERVAL_S,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Args:
            local_device_id: Id of this device (reference for proximity)
            local_report_provider: Returns the latest local report, or None
                while no fix is available
            registry: Device registry (created with defaults if None)
            transport: Mesh transport (created feeding the registry if None)
            share_interval_s: Local report broadcast period
            sweep_interval_s: Liveness sweep period
            metrics: Metrics collector (global collector if None)
        """
        self.local_device_id = local_device_id
        self.local_report_provider = local_report_provider
        self.metrics = metrics or get_metrics()
        self.registry = registry or DeviceRegistry(metrics=self.metrics)
        self.transport = transport or MeshTransport(
            on_report=self.registry.update, metrics=self.metrics
        )

        self._broadcaster = PeriodicTask(
            "local-broadcast", share_interval_s, self.share_local_report, run_immediately=True
        )
        self._sweeper = PeriodicTask("liveness-sweep", sweep_interval_s, self.registry.sweep_timeouts)

    @property
    def is_running(self) -> bool:
        return self._broadcaster.is_running

    def start(self):
        """Start the broadcaster and sweeper timers."""
        self._broadcaster.start()
        self._sweeper.start()
        logger.info(f"Session started for {self.local_device_id}")

    def stop(self):
        """Stop timers, tear down the transport and reset the registry."""
        self._broadcaster.stop()
        self._sweeper.stop()
        self.transport.cleanup()
        self.registry.clear()
        logger.info(f"Session stopped for {self.local_device_id}")

    def on_role_assigned(self, role: Role, hub_address: Optional[str] = None) -> bool:
        return self.transport.on_role_assigned(role, hub_address)

    def on_link_down(self):
        self.transport.on_link_down()

    def share_local_report(self) -> int:
        """
        Publish the local report once.

        Returns:
            Number of peers the report was sent to
        """
        report = self.local_report_provider()
        if report is None:
            logger.debug("No local fix yet, nothing to share")
            return 0

        self.registry.update(report)
        return self.transport.send_data(report)

    def display_text(self) -> str:
        """Devices summary followed by the local proximity analysis."""
        text = self.registry.devices_summary()
        if self.registry.active_device_count() > 1:
            text += "\n\n" + self.registry.proximity_report(self.local_device_id)
        return text
