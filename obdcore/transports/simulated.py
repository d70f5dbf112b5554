from __future__ import annotations

from typing import Dict, List

from ..errors import NoActiveConnection
from ..models import Device

REFERENCE_DEVICES = (
    Device(id="1", display_name="ELM327 Scanner", address="00:11:22:33:44:55"),
    Device(id="2", display_name="OBD2 Pro", address="11:22:33:44:55:66"),
    Device(id="3", display_name="BlueDriver", address="22:33:44:55:66:77"),
)

# Every command is acknowledged the same way; "OK" once the prompt is stripped.
ACKNOWLEDGEMENT = b"OK\r\r>"


class SimulatedTransport:
    name = "simulated"

    def __init__(self) -> None:
        self._buffers: Dict[str, bytearray] = {}

    def is_available(self) -> bool:
        return True

    async def list_bonded(self) -> List[Device]:
        return list(REFERENCE_DEVICES)

    async def open(self, address: str) -> None:
        self._buffers[address] = bytearray()

    async def close(self, address: str) -> None:
        self._buffers.pop(address, None)

    async def write(self, address: str, data: bytes) -> None:
        buf = self._buffers.get(address)
        if buf is None:
            raise NoActiveConnection(f"Simulated link {address} is not open")
        if data.strip():
            buf.extend(ACKNOWLEDGEMENT)

    async def read(self, address: str) -> bytes:
        buf = self._buffers.get(address)
        if not buf:
            return b""
        data = bytes(buf)
        buf.clear()
        return data
