# obdcore/transports/__init__.py
from typing import Optional

from .base import TransportStrategy
from .ble import BleTransport
from .simulated import REFERENCE_DEVICES, SimulatedTransport
from .spp import SerialTransport


def create_transport(name: str) -> Optional[TransportStrategy]:
    """Production strategy by config name; None means no hardware transport."""
    key = (name or "").strip().lower()
    if key == "serial":
        return SerialTransport()
    if key == "ble":
        return BleTransport()
    return None


__all__ = [
    "TransportStrategy",
    "SimulatedTransport",
    "SerialTransport",
    "BleTransport",
    "REFERENCE_DEVICES",
    "create_transport",
]
