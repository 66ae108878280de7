"""
Collaborative positioning node.

Joins the mesh as hub or spoke, shares a (virtual) local GNSS report every
second, and prints the device list and proximity warnings.
"""

import argparse
import logging
import signal
import threading
import uuid
from typing import List, Optional

import config
from cpm_core.io import MeshTransport, Role
from cpm_core.metrics import get_metrics
from cpm_core.proto import Position
from cpm_core.registry import DeviceRegistry, ProximityThresholds
from cpm_core.session import Session
from cpm_core.simulation import VirtualGnssFeed

logging.basicConfig(
    level=getattr(logging, config.LOGGING_CONFIG["level"]),
    format=config.LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)


class MeshNode:
    """Host application for one device."""

    def __init__(self, device_id: str, feed: VirtualGnssFeed):
        self.device_id = device_id
        self.metrics = get_metrics()
        self._stop_event = threading.Event()

        self.registry = DeviceRegistry(
            on_added=lambda device_id: logger.info(f"[node] Device joined: {device_id}"),
            on_removed=lambda device_id: logger.info(f"[node] Device left: {device_id}"),
            timeout_ms=config.REGISTRY_CONFIG["device_timeout_ms"],
            thresholds=ProximityThresholds(**config.PROXIMITY_CONFIG),
            metrics=self.metrics,
        )

        self.transport = MeshTransport(
            on_report=self.registry.update,
            on_status=lambda text: print(f"[node] {text}"),
            host=config.TRANSPORT_CONFIG["host"],
            port=config.TRANSPORT_CONFIG["port"],
            connect_timeout=config.TRANSPORT_CONFIG["connect_timeout_s"],
            poll_interval=config.TRANSPORT_CONFIG["socket_poll_s"],
            max_frame_bytes=config.TRANSPORT_CONFIG["max_frame_bytes"],
            listen_backlog=config.TRANSPORT_CONFIG["listen_backlog"],
            metrics=self.metrics,
        )

        self.session = Session(
            local_device_id=device_id,
            local_report_provider=feed.next_report,
            registry=self.registry,
            transport=self.transport,
            share_interval_s=config.SHARE_CONFIG["interval_s"],
            sweep_interval_s=config.REGISTRY_CONFIG["sweep_interval_s"],
            metrics=self.metrics,
        )

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        logger.info(f"Node initialized: {device_id}")

    def _signal_handler(self, signum, frame):
        logger.info(f"Received signal {signum}, stopping...")
        self._stop_event.set()

    def run(self, role: Role, hub_address: Optional[str] = None):
        """Join the mesh and print status until interrupted."""
        self.session.start()
        if not self.session.on_role_assigned(role, hub_address):
            logger.error("Failed to start transport")
            self.stop()
            return

        interval = config.OUTPUT_CONFIG["display_interval_s"]
        try:
            while not self._stop_event.wait(interval):
                print("=" * 60)
                print(self.session.display_text())
                print("=" * 60)
        finally:
            self.stop()

    def stop(self):
        self.session.stop()
        logger.info("\n" + self.metrics.format_summary())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Collaborative positioning mesh node')
    parser.add_argument('--role', '-r', choices=[r.value for r in Role], required=True,
                        help='Transport role (normally assigned by peer discovery)')
    parser.add_argument('--hub-address', '-a', type=str, default=None,
                        help='Hub IP address (spoke only)')
    parser.add_argument('--port', '-p', type=int, default=None,
                        help='Hub port')
    parser.add_argument('--device-id', type=str, default=None,
                        help='Device id (random if omitted)')
    parser.add_argument('--east', type=float, default=0.0,
                        help='Virtual start offset east of base (m)')
    parser.add_argument('--north', type=float, default=0.0,
                        help='Virtual start offset north of base (m)')
    parser.add_argument('--speed-east', type=float, default=0.0,
                        help='Virtual velocity east (m/s)')
    parser.add_argument('--speed-north', type=float, default=0.0,
                        help='Virtual velocity north (m/s)')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='Enable debug logging')
    return parser


def apply_overrides(args: argparse.Namespace):
    """Push command-line overrides into config."""
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    # 0 is a valid override (ephemeral port)
    if args.port is not None:
        config.TRANSPORT_CONFIG["port"] = args.port


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    role = Role(args.role)
    if role is Role.SPOKE and not args.hub_address:
        parser.error("--hub-address is required for the spoke role")

    apply_overrides(args)

    device_id = args.device_id or uuid.uuid4().hex
    gnss = config.VIRTUAL_GNSS_CONFIG
    feed = VirtualGnssFeed(
        device_id=device_id,
        base=Position(gnss["base_lat"], gnss["base_lon"], gnss["base_alt"]),
        offset_enu=(args.east, args.north, 0.0),
        velocity_enu=(args.speed_east, args.speed_north, 0.0),
        satellites=gnss["satellites"],
        position_noise_m=gnss["position_noise_m"],
        rate_noise_mps=gnss["rate_noise_mps"],
    )

    node = MeshNode(device_id, feed)
    node.run(role, args.hub_address)


if __name__ == "__main__":
    main()
