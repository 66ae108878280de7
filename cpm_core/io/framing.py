"""
Stream framing for wire records.

TCP delivers a byte stream, not messages, so every record is sent with a
4-byte big-endian length prefix:

    +----------------+---------------------------+
    | length (4B BE) | payload (length bytes)    |
    +----------------+---------------------------+

FrameDecoder reassembles payloads from recv() chunks of any size.
"""

from typing import List

from cpm_core.exceptions import FrameError

HEADER_BYTES = 4
MAX_FRAME_BYTES = 64 * 1024


def encode_frame(payload: bytes) -> bytes:
    """
    Prefix a payload with its length.

    Args:
        payload: Record bytes

    Returns:
        Length prefix + payload
    """
    return len(payload).to_bytes(HEADER_BYTES, byteorder='big') + payload


class FrameDecoder:
    """
    Incremental length-prefix decoder for one connection.

    Usage:
        decoder = FrameDecoder()
        for payload in decoder.feed(sock.recv(4096)):
            handle(payload)
    """

    def __init__(self, max_frame_bytes: int = MAX_FRAME_BYTES):
        self.max_frame_bytes = max_frame_bytes
        self._buffer = b''

    @property
    def pending_bytes(self) -> int:
        """Bytes buffered for an incomplete frame."""
        return len(self._buffer)

    def feed(self, data: bytes) -> List[bytes]:
        """
        Add received bytes and extract every complete payload.

        Args:
            data: Bytes from recv()

        Returns:
            Complete payloads, in stream order (may be empty)

        Raises:
            FrameError: If a declared length exceeds max_frame_bytes
        """
        self._buffer += data
        payloads = []

        while len(self._buffer) >= HEADER_BYTES:
            msg_length = int.from_bytes(self._buffer[:HEADER_BYTES], byteorder='big')
            if msg_length > self.max_frame_bytes:
                raise FrameError(
                    f"Frame of {msg_length} bytes exceeds limit {self.max_frame_bytes}"
                )

            if len(self._buffer) < HEADER_BYTES + msg_length:
                break  # Incomplete, wait for more data

            payloads.append(self._buffer[HEADER_BYTES:HEADER_BYTES + msg_length])
            self._buffer = self._buffer[HEADER_BYTES + msg_length:]

        return payloads
