"""
Mesh Transport: hub/spoke socket fabric.

The discovery collaborator decides the role and calls on_role_assigned():

- HUB: listen on a fixed port, accept spokes on a dedicated thread, run one
  reader thread per spoke. Every decoded record is handed to on_report and
  relayed verbatim to every other spoke.
- SPOKE: connect once to the hub (bounded connect timeout) and run one
  reader thread. Spokes never relay.

Both roles broadcast local reports with send_data(). Failures never escape
the transport: a bad record is dropped, a bad connection is removed, a failed
connect leaves the transport idle. Each is logged, counted in metrics and,
where the host should know, reported through on_status.

Threads poll their sockets with a short timeout and check a per-session stop
event, so disconnect() never waits for data to arrive.
"""

import logging
import socket
import threading
from enum import Enum
from typing import Callable, List, Optional

from cpm_core.exceptions import ConnectError, DecodeError, EncodeError, FrameError, IoError
from cpm_core.metrics import MetricsCollector, get_metrics
from cpm_core.proto import Report, decode, encode
from cpm_core.registry import wall_clock_ms
from .connection_set import ConnectionSet, PeerConnection
from .framing import MAX_FRAME_BYTES, FrameDecoder, encode_frame

logger = logging.getLogger(__name__)

SERVER_PORT = 8888
CONNECT_TIMEOUT_S = 5.0
POLL_INTERVAL_S = 0.5


class Role(Enum):
    """Transport role assigned by the discovery collaborator."""

    HUB = 'hub'
    SPOKE = 'spoke'


class MeshTransport:
    """
    Socket lifecycle for both roles, broadcast and relay.

    Usage:
        transport = MeshTransport(on_report=registry.update, on_status=print)
        transport.on_role_assigned(Role.HUB)
        transport.send_data(local_report)
        transport.cleanup()
    """

    def __init__(
        self,
        on_report: Callable[[Report], None],
        on_status: Optional[Callable[[str], None]] = None,
        remove_link: Optional[Callable[[], None]] = None,
        host: str = '0.0.0.0',
        port: int = SERVER_PORT,
        connect_timeout: float = CONNECT_TIMEOUT_S,
        poll_interval: float = POLL_INTERVAL_S,
        max_frame_bytes: int = MAX_FRAME_BYTES,
        listen_backlog: int = 5,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize the transport (idle until a role is assigned).

        Args:
            on_report: Receives every decoded inbound report
            on_status: Receives human-readable status changes
            remove_link: Asks the discovery collaborator to tear down the
                physical link; called by disconnect()
            host: Hub listen address
            port: Hub listen port, and the port spokes connect to
                (0 lets the hub pick an ephemeral port, see bound_port)
            connect_timeout: Spoke connect timeout in seconds
            poll_interval: Socket timeout used to observe cancellation
            max_frame_bytes: Largest accepted inbound record
            listen_backlog: Hub listen() backlog
            metrics: Metrics collector (global collector if None)
        """
        self.on_report = on_report
        self.on_status = on_status
        self.remove_link = remove_link
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.poll_interval = poll_interval
        self.max_frame_bytes = max_frame_bytes
        self.listen_backlog = listen_backlog
        self.metrics = metrics or get_metrics()

        self.connections = ConnectionSet(self.metrics)
        self.role: Optional[Role] = None
        self.hub_address: Optional[str] = None

        self._state_lock = threading.RLock()
        self._threads_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._server_socket: Optional[socket.socket] = None
        self._bound_port: Optional[int] = None
        self._threads: List[threading.Thread] = []

    @property
    def is_hub(self) -> bool:
        return self.role is Role.HUB

    @property
    def bound_port(self) -> Optional[int]:
        """Port the hub is listening on, None when not listening."""
        return self._bound_port

    @property
    def connection_count(self) -> int:
        return len(self.connections)

    # ------------------------------------------------------------------
    # Discovery collaborator boundary
    # ------------------------------------------------------------------

    def on_role_assigned(self, role: Role, hub_address: Optional[str] = None) -> bool:
        """
        Start the session for the assigned role.

        Any previous session is torn down first (without asking for link
        removal, the link is being reused).

        Args:
            role: HUB or SPOKE
            hub_address: Hub IP address, required for SPOKE

        Returns:
            True if the hub is listening or the spoke connect was started

        Raises:
            ValueError: If role is SPOKE and no hub address is given
        """
        if role is Role.SPOKE and not hub_address:
            raise ValueError("Spoke role requires the hub address")

        with self._state_lock:
            self._shutdown_locked()
            self._stop_event = threading.Event()
            self.role = role
            self.hub_address = hub_address if role is Role.SPOKE else None
            logger.info(f"Role assigned: {role.value}" +
                        (f" (hub {hub_address})" if role is Role.SPOKE else ""))

            if role is Role.HUB:
                return self._start_hub_locked()

            self._spawn(self._spoke_loop, hub_address, self._stop_event,
                        name=f"spoke-{hub_address}")
            return True

    def on_link_down(self):
        """The physical link is gone: stop every task and close all sockets."""
        with self._state_lock:
            self._shutdown_locked()
        self._emit_status("Link down")

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def send_data(self, report: Report) -> int:
        """
        Broadcast a report to every live connection.

        Encodes once; a connection whose write fails is removed and the
        others still receive the record.

        Args:
            report: Report to send

        Returns:
            Number of connections the record was written to
        """
        try:
            payload = encode(report)
        except EncodeError as e:
            logger.error(f"Not sending report: {e}")
            return 0

        delivered = self.connections.fan_out(encode_frame(payload), drop_reason='send_failed')
        self.metrics.increment('records_sent', delivered)
        logger.debug(f"Sent report {report.device_id} to {delivered} peers")
        return delivered

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def disconnect(self):
        """Close every socket, stop all tasks and ask for link removal."""
        with self._state_lock:
            self._shutdown_locked()

        if self.remove_link is not None:
            try:
                self.remove_link()
            except Exception as e:
                logger.error(f"Link removal failed: {e}")

        self._emit_status("Disconnected")

    def cleanup(self, join_timeout: float = 2.0):
        """
        disconnect() and wait for background threads to exit.

        Args:
            join_timeout: Seconds to wait per thread
        """
        self.disconnect()
        current = threading.current_thread()
        for thread in self._take_threads():
            if thread is not current:
                thread.join(join_timeout)
                if thread.is_alive():
                    logger.warning(f"Thread {thread.name} did not exit")

    def _shutdown_locked(self):
        self._stop_event.set()

        if self._server_socket is not None:
            try:
                self._server_socket.close()
            except OSError as e:
                logger.debug(f"Closing listener: {e}")
            self._server_socket = None
            self._bound_port = None

        closed = self.connections.close_all()
        if self.role is not None:
            logger.info(f"Transport stopped ({self.role.value}, {closed} connections closed)")
        self.role = None
        self.hub_address = None

    # ------------------------------------------------------------------
    # Hub
    # ------------------------------------------------------------------

    def _start_hub_locked(self) -> bool:
        try:
            server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(self.listen_backlog)
            server_socket.settimeout(self.poll_interval)
        except OSError as e:
            logger.error(f"Failed to start hub on {self.host}:{self.port}: {e}")
            self.role = None
            self._emit_status(f"Server error: {e}")
            return False

        self._server_socket = server_socket
        self._bound_port = server_socket.getsockname()[1]
        self._spawn(self._accept_loop, server_socket, self._stop_event, name="hub-accept")

        logger.info(f"Hub listening on {self.host}:{self._bound_port}")
        self._emit_status(f"Server started on port {self._bound_port}")
        return True

    def _accept_loop(self, server_socket: socket.socket, stop_event: threading.Event):
        while not stop_event.is_set():
            try:
                client_socket, address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not stop_event.is_set():
                    logger.error(f"Accept failed: {e}")
                    self._emit_status(f"Server error: {e}")
                break

            if stop_event.is_set():
                client_socket.close()
                break

            conn = PeerConnection(client_socket, address, self.poll_interval)
            self.connections.add(conn)
            self._emit_status(f"Client connected: {conn.name}")
            self._spawn(self._read_loop, conn, stop_event, True, name=f"hub-reader-{conn.name}")

        logger.debug("Accept loop exited")

    # ------------------------------------------------------------------
    # Spoke
    # ------------------------------------------------------------------

    def _connect(self, hub_address: str) -> PeerConnection:
        """
        Open the spoke connection to the hub.

        Raises:
            ConnectError: If the hub is unreachable within connect_timeout
        """
        peer = f"{hub_address}:{self.port}"
        try:
            sock = socket.create_connection((hub_address, self.port), timeout=self.connect_timeout)
        except OSError as e:
            raise ConnectError(f"Could not reach hub {peer}: {e}", peer=peer) from e
        return PeerConnection(sock, sock.getpeername(), self.poll_interval)

    def _spoke_loop(self, hub_address: str, stop_event: threading.Event):
        try:
            conn = self._connect(hub_address)
        except ConnectError as e:
            self.metrics.increment_drop('connect_failed')
            logger.warning(str(e))
            with self._state_lock:
                # Stay idle until the next role assignment
                if self._stop_event is stop_event:
                    self.role = None
                    self.hub_address = None
            if not stop_event.is_set():
                self._emit_status(f"Connection error: {e}")
            return

        if stop_event.is_set():
            conn.close()
            return

        self.connections.add(conn)
        self._emit_status("Connected to hub")
        self._read_loop(conn, stop_event, False)

    # ------------------------------------------------------------------
    # Readers (both roles)
    # ------------------------------------------------------------------

    def _read_loop(self, conn: PeerConnection, stop_event: threading.Event, relay: bool):
        decoder = FrameDecoder(self.max_frame_bytes)
        try:
            while not stop_event.is_set():
                data = conn.recv()
                if data is None:
                    continue  # Poll timeout
                if not data:
                    logger.info(f"Peer closed connection: {conn.name}")
                    break
                for payload in decoder.feed(data):
                    self._handle_record(conn, payload, relay)
        except FrameError as e:
            self.metrics.increment_drop('oversized_frame')
            logger.warning(f"Closing {conn.name}: {e}")
        except IoError as e:
            if not stop_event.is_set():
                logger.warning(f"Connection lost: {e}")
        finally:
            removed = self.connections.discard(conn)

        if removed and not stop_event.is_set():
            self._emit_status(f"Peer disconnected: {conn.name}")

    def _handle_record(self, conn: PeerConnection, payload: bytes, relay: bool):
        self.metrics.increment('records_in')
        try:
            report = decode(payload)
        except DecodeError as e:
            self.metrics.increment_drop('decode_error')
            logger.warning(f"Dropping record from {conn.name}: {e}")
            return

        self.metrics.increment('records_decoded')
        self.metrics.record_histogram('report_age_ms', wall_clock_ms() - report.timestamp)
        logger.debug(f"Report {report.device_id} from {conn.name}")

        try:
            self.on_report(report)
        except Exception:
            logger.exception(f"Report handler failed for {report.device_id}")

        if relay:
            relayed = self.connections.fan_out(
                encode_frame(payload), exclude=conn, drop_reason='relay_failed'
            )
            self.metrics.increment('records_relayed', relayed)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _spawn(self, target: Callable, *args, name: str):
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        with self._threads_lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()

    def _take_threads(self) -> List[threading.Thread]:
        with self._threads_lock:
            threads, self._threads = self._threads, []
        return threads

    def _emit_status(self, text: str):
        logger.info(f"Status: {text}")
        if self.on_status is None:
            return
        try:
            self.on_status(text)
        except Exception:
            logger.exception("Status listener failed")
