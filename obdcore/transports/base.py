"""Transport interfaces."""

from __future__ import annotations

from typing import List, Protocol

from ..models import Device


class TransportStrategy(Protocol):
    """Byte-level link to an adapter, addressed by the device's transport address.

    `read` never blocks waiting for data: it returns whatever is buffered,
    possibly b"". Framing and prompt detection live in the command transport.
    """

    name: str

    def is_available(self) -> bool:
        ...

    async def list_bonded(self) -> List[Device]:
        ...

    async def open(self, address: str) -> None:
        ...

    async def close(self, address: str) -> None:
        ...

    async def write(self, address: str, data: bytes) -> None:
        ...

    async def read(self, address: str) -> bytes:
        ...
