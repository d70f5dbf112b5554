from __future__ import annotations

from typing import Protocol

from .config import bluetooth_permission
from .errors import PermissionDenied


class PermissionGate(Protocol):
    def has_bluetooth_capability(self) -> bool:
        ...


class StaticPermissionGate:
    def __init__(self, granted: bool = True) -> None:
        self.granted = granted

    def has_bluetooth_capability(self) -> bool:
        return self.granted


class EnvPermissionGate:
    """Reads OBD_BLUETOOTH_PERMISSION on every check (granted/denied)."""

    def has_bluetooth_capability(self) -> bool:
        return bluetooth_permission() not in {"denied", "0", "false", "no"}


def require_bluetooth(gate: PermissionGate) -> None:
    if not gate.has_bluetooth_capability():
        raise PermissionDenied("Bluetooth permission is required")
