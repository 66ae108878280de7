"""
I/O Module: framing, connection bookkeeping, hub/spoke transport, timers.
"""

from .framing import (
    MAX_FRAME_BYTES,
    FrameDecoder,
    encode_frame,
)
from .connection_set import (
    ConnectionSet,
    PeerConnection,
)
from .periodic import PeriodicTask
from .transport import (
    CONNECT_TIMEOUT_S,
    SERVER_PORT,
    MeshTransport,
    Role,
)

__all__ = [
    'MAX_FRAME_BYTES',
    'FrameDecoder',
    'encode_frame',
    'ConnectionSet',
    'PeerConnection',
    'PeriodicTask',
    'CONNECT_TIMEOUT_S',
    'SERVER_PORT',
    'MeshTransport',
    'Role',
]
