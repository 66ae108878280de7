"""Exception hierarchy for the positioning mesh."""


class MeshError(Exception):
    """Base exception for all mesh errors."""


class CodecError(MeshError):
    """Wire record could not be encoded or decoded."""


class EncodeError(CodecError):
    """Report cannot be put on the wire (missing device id)."""


class DecodeError(CodecError):
    """Malformed wire record. The record is dropped, the stream continues."""


class TransportError(MeshError):
    """Socket-level failure."""

    def __init__(self, message: str, peer: str = ""):
        self.peer = peer
        super().__init__(message)


class ConnectError(TransportError):
    """Spoke could not reach the hub within the connect timeout."""


class IoError(TransportError):
    """Mid-session failure on a single connection."""


class FrameError(IoError):
    """Frame length prefix above the limit. The stream cannot be resynced."""
