"""Data records shared by the registry, connection manager and decoders."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Device:
    """A candidate adapter. `connected` is a view flag, not connection state."""

    id: str
    display_name: str
    address: str
    connected: bool = False

    def with_connected(self, connected: bool) -> "Device":
        return replace(self, connected=connected)


@dataclass(frozen=True)
class CommandTransaction:
    command: str
    timeout_s: float

    def frame(self) -> bytes:
        return f"{self.command}\r".encode("ascii", errors="ignore")


@dataclass(frozen=True)
class DTCCode:
    id: str
    code: str
    description: str
    severity: Severity
    observed_at: datetime


@dataclass(frozen=True)
class VehicleIdentity:
    vin: str


@dataclass(frozen=True)
class VehicleProfile:
    brand: str
    model: str
    year: str
    vin: Optional[str] = None
