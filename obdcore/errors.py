"""Error taxonomy for the diagnostic engine."""

from __future__ import annotations

from typing import Optional


class OBDCoreError(Exception):
    """Base error for obdcore."""


class PermissionDenied(OBDCoreError):
    """Raised when the host refuses Bluetooth access."""


class TransportUnavailable(OBDCoreError):
    """Raised when no serial/Bluetooth backend exists on this platform or build."""


class TransportError(OBDCoreError):
    """Base transport error."""


class ConnectionFailed(TransportError):
    """Raised when the link to an adapter cannot be opened."""


class CommunicationError(TransportError):
    """Raised when a write/read on an open link fails."""


class DeviceDisconnectedError(CommunicationError):
    """Raised when the adapter drops the link mid-exchange."""


class CommandTimeout(CommunicationError):
    def __init__(self, command: str, timeout_s: float) -> None:
        super().__init__(f"No prompt from adapter after {timeout_s:.1f}s for {command!r}")
        self.command = command
        self.timeout_s = timeout_s


class ConnectionStateError(OBDCoreError):
    """Base for operations rejected by the connection state guard."""


class NoActiveConnection(ConnectionStateError):
    pass


class AlreadyConnected(ConnectionStateError):
    pass


class OperationInProgress(ConnectionStateError):
    pass


class InitializationFailed(OBDCoreError):
    def __init__(self, command: str, reason: Optional[str] = None) -> None:
        message = f"Failed to initialize OBD2 communication at command: {command}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.command = command
        self.reason = reason


class DecodeSkipped(OBDCoreError):
    """A single response chunk could not be decoded. Never fatal for a scan."""

    def __init__(self, chunk: str, reason: str) -> None:
        super().__init__(f"Skipped chunk {chunk!r}: {reason}")
        self.chunk = chunk
        self.reason = reason
