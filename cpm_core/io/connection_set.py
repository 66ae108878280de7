"""
Live peer connections and best-effort fan-out.

A PeerConnection wraps one TCP socket. Writes are serialized per connection
so the broadcaster and relay threads never interleave frames on the same
stream. The ConnectionSet is the only shared view of which peers are live:
a connection is in the set from accept/connect until it is closed or one of
its reads or writes fails.
"""

import logging
import socket
import threading
from typing import List, Optional, Tuple

from cpm_core.exceptions import IoError
from cpm_core.metrics import MetricsCollector, get_metrics

logger = logging.getLogger(__name__)

RECV_BUFFER_BYTES = 4096


class PeerConnection:
    """One connected peer socket."""

    def __init__(self, sock: socket.socket, address: Tuple, poll_interval: float = 0.5):
        """
        Args:
            sock: Connected TCP socket
            address: Peer address as returned by accept()/getpeername()
            poll_interval: Socket timeout so readers can observe cancellation
        """
        self.sock = sock
        self.address = address
        self.name = f"{address[0]}:{address[1]}"
        self._send_lock = threading.Lock()
        self._closed = threading.Event()

        sock.settimeout(poll_interval)

    def __repr__(self) -> str:
        return f"PeerConnection({self.name})"

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send_frame(self, frame: bytes):
        """
        Write one complete frame.

        Raises:
            IoError: If the connection is closed or the write fails
        """
        if self.closed:
            raise IoError("Connection already closed", peer=self.name)
        with self._send_lock:
            try:
                self.sock.sendall(frame)
            except OSError as e:
                raise IoError(f"Send to {self.name} failed: {e}", peer=self.name) from e

    def recv(self, bufsize: int = RECV_BUFFER_BYTES) -> Optional[bytes]:
        """
        Read available bytes.

        Returns:
            Received bytes, b'' when the peer closed the stream, or None when
            the poll interval elapsed with no data

        Raises:
            IoError: On any socket error, including a local close
        """
        try:
            return self.sock.recv(bufsize)
        except socket.timeout:
            return None
        except OSError as e:
            raise IoError(f"Receive from {self.name} failed: {e}", peer=self.name) from e

    def close(self):
        """Shut down and close the socket. Safe to call more than once."""
        if self._closed.is_set():
            return
        self._closed.set()
        try:
            # Unblocks a reader parked in recv() on another thread
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Peer already gone
        self.sock.close()


class ConnectionSet:
    """
    Thread-safe set of live connections.

    Iteration always happens over a snapshot, so add/remove from reader
    threads never races a fan-out in progress.
    """

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self._lock = threading.Lock()
        self._connections: List[PeerConnection] = []
        self.metrics = metrics or get_metrics()

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, conn: PeerConnection) -> bool:
        with self._lock:
            return conn in self._connections

    def add(self, conn: PeerConnection):
        with self._lock:
            if conn not in self._connections:
                self._connections.append(conn)
        self.metrics.increment('connections_opened')
        logger.info(f"Connection added: {conn.name} ({len(self)} live)")

    def discard(self, conn: PeerConnection) -> bool:
        """
        Remove and close a connection.

        Returns:
            True if the connection was in the set
        """
        with self._lock:
            present = conn in self._connections
            if present:
                self._connections.remove(conn)

        conn.close()
        if present:
            self.metrics.increment('connections_closed')
            logger.info(f"Connection removed: {conn.name} ({len(self)} live)")
        return present

    def snapshot(self, exclude: Optional[PeerConnection] = None) -> List[PeerConnection]:
        """Copy of live connections, optionally without one of them."""
        with self._lock:
            return [conn for conn in self._connections if conn is not exclude]

    def close_all(self) -> int:
        """
        Close and remove every connection.

        Returns:
            Number of connections closed
        """
        with self._lock:
            connections = self._connections
            self._connections = []

        for conn in connections:
            conn.close()
        if connections:
            self.metrics.increment('connections_closed', len(connections))
        return len(connections)

    def fan_out(
        self,
        frame: bytes,
        exclude: Optional[PeerConnection] = None,
        drop_reason: str = 'send_failed',
    ) -> int:
        """
        Write a frame to every live connection except exclude.

        A connection whose write fails is removed; the remaining peers still
        receive the frame.

        Args:
            frame: Framed record
            exclude: Connection to skip (the sender, when relaying)
            drop_reason: Drop reason counted per failed connection

        Returns:
            Number of connections the frame was written to
        """
        delivered = 0
        for conn in self.snapshot(exclude):
            try:
                conn.send_frame(frame)
                delivered += 1
            except IoError as e:
                logger.warning(f"Dropping connection {conn.name}: {e}")
                self.metrics.increment_drop(drop_reason)
                self.discard(conn)
        return delivered
