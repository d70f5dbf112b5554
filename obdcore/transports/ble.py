"""BLE UART adapters (many cheap ELM327 clones) via bleak."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..config import ble_rx_uuid, ble_scan_timeout_s, ble_service_uuid, ble_tx_uuid
from ..errors import CommunicationError, ConnectionFailed, DeviceDisconnectedError, TransportError
from ..models import Device

logger = logging.getLogger(__name__)

# Known BLE UART profiles (service, rx, tx) in priority order.
KNOWN_PROFILES: Tuple[Tuple[str, str, str], ...] = (
    (
        "0000fff0-0000-1000-8000-00805f9b34fb",
        "0000fff2-0000-1000-8000-00805f9b34fb",
        "0000fff1-0000-1000-8000-00805f9b34fb",
    ),
    (
        "49535343-fe7d-4ae5-8fa9-9fafd205e455",
        "49535343-6daa-4d02-abf6-19569aca69fe",
        "49535343-aca3-481c-91ec-d85e28a60318",
    ),
    (
        "6e400001-b5a3-f393-e0a9-e50e24dcca9e",
        "6e400002-b5a3-f393-e0a9-e50e24dcca9e",
        "6e400003-b5a3-f393-e0a9-e50e24dcca9e",
    ),
    (
        "0000ffe0-0000-1000-8000-00805f9b34fb",
        "0000ffe1-0000-1000-8000-00805f9b34fb",
        "0000ffe1-0000-1000-8000-00805f9b34fb",
    ),
)


def _device_name(dev, adv) -> str:
    return (
        (getattr(dev, "name", None) or "").strip()
        or (getattr(adv, "local_name", None) or "").strip()
    )


def _write_notify_pair(service) -> Tuple[Optional[str], Optional[str]]:
    write_chars = []
    notify_chars = []
    for ch in service.characteristics:
        props = {p.lower() for p in ch.properties}
        if "write" in props or "write-without-response" in props:
            write_chars.append(ch.uuid)
        if "notify" in props or "indicate" in props:
            notify_chars.append(ch.uuid)
    if write_chars and notify_chars:
        return write_chars[0], notify_chars[0]
    return None, None


def select_characteristics(services, service_filter: Optional[str] = None) -> Tuple[Optional[str], Optional[str]]:
    """Pick (rx, tx) UUIDs: known UART profiles first, then any write/notify pair."""
    service_filter = (service_filter or "").lower()
    service_map = {service.uuid.lower(): service for service in services}
    for svc_uuid, rx_known, tx_known in KNOWN_PROFILES:
        if service_filter and svc_uuid != service_filter:
            continue
        service = service_map.get(svc_uuid)
        if not service:
            continue
        char_uuids = {ch.uuid.lower() for ch in service.characteristics}
        if rx_known in char_uuids and tx_known in char_uuids:
            return rx_known, tx_known

    for service in services:
        if service_filter and service.uuid.lower() != service_filter:
            continue
        rx, tx = _write_notify_pair(service)
        if rx and tx:
            return rx, tx
    return None, None


class _BleLink:
    def __init__(self, client: Any, rx_uuid: str, tx_uuid: str) -> None:
        self.client = client
        self.rx_uuid = rx_uuid
        self.tx_uuid = tx_uuid
        self.buffer = bytearray()

    def on_notify(self, _: Any, data: bytearray) -> None:
        if data:
            self.buffer.extend(data)


class BleTransport:
    name = "ble"

    def __init__(self, scan_timeout_s: Optional[float] = None, connect_timeout_s: float = 10.0):
        self.scan_timeout_s = scan_timeout_s if scan_timeout_s is not None else ble_scan_timeout_s()
        self.connect_timeout_s = connect_timeout_s
        self._links: Dict[str, _BleLink] = {}

    def is_available(self) -> bool:
        try:
            import bleak  # noqa: F401
        except ImportError:
            return False
        return True

    async def list_bonded(self) -> List[Device]:
        from bleak import BleakScanner
        from bleak.exc import BleakError

        try:
            result = await BleakScanner.discover(timeout=self.scan_timeout_s, return_adv=True)
        except (BleakError, OSError) as e:
            raise TransportError(f"BLE scan failed: {e}") from e

        ranked: List[Tuple[int, Device]] = []
        for dev, adv in result.values():
            name = _device_name(dev, adv)
            if not name:
                continue
            rssi = getattr(adv, "rssi", None)
            ranked.append((rssi if rssi is not None else -999, Device(id=dev.address, display_name=name, address=dev.address)))
        ranked.sort(key=lambda x: x[0], reverse=True)
        return [device for _, device in ranked]

    async def open(self, address: str) -> None:
        if address in self._links:
            return
        from bleak import BleakClient, BleakScanner
        from bleak.exc import BleakError

        try:
            device = await BleakScanner.find_device_by_address(address, timeout=self.scan_timeout_s)
        except (BleakError, OSError) as e:
            raise ConnectionFailed(f"BLE lookup failed for {address}: {e}") from e
        if device is None:
            raise ConnectionFailed(f"BLE device {address} not found")

        client = BleakClient(device)
        try:
            await client.connect(timeout=self.connect_timeout_s)
            rx_uuid, tx_uuid = ble_rx_uuid(), ble_tx_uuid()
            if not (rx_uuid and tx_uuid):
                found_rx, found_tx = select_characteristics(client.services, ble_service_uuid())
                rx_uuid = rx_uuid or found_rx
                tx_uuid = tx_uuid or found_tx
            if not rx_uuid or not tx_uuid:
                await client.disconnect()
                raise ConnectionFailed(f"No UART characteristics found on {address}")
            link = _BleLink(client, rx_uuid, tx_uuid)
            await client.start_notify(tx_uuid, link.on_notify)
        except (BleakError, OSError, asyncio.TimeoutError) as e:
            raise ConnectionFailed(f"BLE connect failed for {address}: {e}") from e

        self._links[address] = link
        logger.debug("BLE link to %s using rx=%s tx=%s", address, rx_uuid, tx_uuid)

    async def close(self, address: str) -> None:
        link = self._links.pop(address, None)
        if link is None:
            return
        from bleak.exc import BleakError

        try:
            await link.client.stop_notify(link.tx_uuid)
        except (BleakError, OSError) as e:
            logger.debug("stop_notify failed on %s: %s", address, e)
        try:
            await link.client.disconnect()
        except (BleakError, OSError) as e:
            raise CommunicationError(f"BLE disconnect failed for {address}: {e}") from e

    def _require(self, address: str) -> _BleLink:
        link = self._links.get(address)
        if link is None or not link.client.is_connected:
            self._links.pop(address, None)
            raise DeviceDisconnectedError(f"BLE link to {address} is closed")
        return link

    async def write(self, address: str, data: bytes) -> None:
        from bleak.exc import BleakError

        link = self._require(address)
        try:
            await link.client.write_gatt_char(link.rx_uuid, data, response=False)
        except (BleakError, OSError) as e:
            raise CommunicationError(f"BLE write failed: {e}") from e

    async def read(self, address: str) -> bytes:
        link = self._require(address)
        if not link.buffer:
            return b""
        data = bytes(link.buffer)
        link.buffer.clear()
        return data
