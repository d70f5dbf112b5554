"""Classic Bluetooth (SPP) adapters exposed by the OS as serial ports."""

from __future__ import annotations

import asyncio
import logging
import re
import subprocess
import sys
from pathlib import PurePath
from typing import Dict, List, Optional, Sequence

import serial

from ..config import serial_baudrate
from ..errors import (
    CommunicationError,
    ConnectionFailed,
    DeviceDisconnectedError,
    TransportError,
)
from ..models import Device

logger = logging.getLogger(__name__)

# Windows: BTHENUM\{00001101-...}_LOCALMFG&0002\7&2A4B5F3C&0&001DA5686E1F_C00000000
_BTHENUM_MAC_RE = re.compile(r"&([0-9A-F]{12})_", re.IGNORECASE)
_MAC_RE = re.compile(r"([0-9A-F]{2}(?::[0-9A-F]{2}){5})", re.IGNORECASE)
_RFCOMM_LINE_RE = re.compile(r"^(rfcomm\d+):\s+([0-9A-F:]{17})\b", re.IGNORECASE)
_BLUEZ_DEVICE_RE = re.compile(r"^Device\s+([0-9A-F:]{17})\s+(.+)$", re.IGNORECASE)

_MACOS_SKIP = ("bluetooth-incoming-port", "debug-console", "usbserial", "usbmodem", "wchusbserial")
_MACOS_NAME_SUFFIXES = ("-SPPDev", "-SerialPort", "-DevB", "-Port")
_NULL_MAC = "00:00:00:00:00:00"


def _format_mac(raw: str) -> str:
    raw = raw.upper()
    return ":".join(raw[i : i + 2] for i in range(0, 12, 2))


def _mac_from_hwid(hwid: str) -> Optional[str]:
    text = hwid or ""
    m = _MAC_RE.search(text)
    if m:
        return m.group(1).upper()
    if "BTHENUM" in text.upper():
        m = _BTHENUM_MAC_RE.search(text)
        if m:
            mac = _format_mac(m.group(1))
            # Incoming SPP ports carry a null address.
            return None if mac == _NULL_MAC else mac
    return None


def is_bluetooth_port(port) -> bool:
    dev = (getattr(port, "device", None) or "").lower()
    hwid = (getattr(port, "hwid", None) or "").upper()
    desc = (getattr(port, "description", None) or "").lower()

    if "rfcomm" in dev:
        return True
    if "BTHENUM" in hwid:
        return _mac_from_hwid(hwid) is not None
    if dev.startswith("/dev/cu.") or dev.startswith("/dev/tty."):
        if any(token in dev for token in _MACOS_SKIP):
            return False
        return getattr(port, "vid", None) is None
    return "bluetooth" in desc


def _macos_name(device_path: str) -> str:
    name = PurePath(device_path).name.split(".", 1)[-1]
    for suffix in _MACOS_NAME_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def _run_command(cmd: Sequence[str]) -> Optional[subprocess.CompletedProcess]:
    try:
        return subprocess.run(cmd, check=False, capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None


def _rfcomm_bindings() -> Dict[str, str]:
    """rfcommN -> MAC, from the BlueZ `rfcomm` tool."""
    result = _run_command(["rfcomm"])
    if result is None or result.returncode != 0:
        return {}
    bindings: Dict[str, str] = {}
    for line in result.stdout.splitlines():
        m = _RFCOMM_LINE_RE.match(line.strip())
        if m:
            bindings[m.group(1)] = m.group(2).upper()
    return bindings


def _bluez_names() -> Dict[str, str]:
    """MAC -> paired device name, from `bluetoothctl`."""
    for cmd in (["bluetoothctl", "devices", "Paired"], ["bluetoothctl", "paired-devices"]):
        result = _run_command(cmd)
        if result is None or result.returncode != 0:
            continue
        names: Dict[str, str] = {}
        for line in result.stdout.splitlines():
            m = _BLUEZ_DEVICE_RE.match(line.strip())
            if m:
                names[m.group(1).upper()] = m.group(2).strip()
        if names:
            return names
    return {}


class SerialTransport:
    name = "serial"

    def __init__(self, baudrate: Optional[int] = None, write_timeout: float = 3.0):
        self.baudrate = baudrate or serial_baudrate()
        self.write_timeout = write_timeout
        self._ports: Dict[str, str] = {}
        self._connections: Dict[str, serial.Serial] = {}

    def is_available(self) -> bool:
        try:
            from serial.tools import list_ports  # noqa: F401
        except ImportError:
            return False
        return True

    async def list_bonded(self) -> List[Device]:
        return await asyncio.to_thread(self._list_bonded_blocking)

    def _list_bonded_blocking(self) -> List[Device]:
        from serial.tools import list_ports

        try:
            ports = list_ports.comports()
        except OSError as e:
            raise TransportError(f"Serial port enumeration failed: {e}") from e

        on_linux = sys.platform.startswith("linux")
        bindings = _rfcomm_bindings() if on_linux else {}
        names = _bluez_names() if on_linux else {}

        devices: List[Device] = []
        seen = set()
        for port in ports:
            if not port.device or not is_bluetooth_port(port):
                continue
            base = PurePath(port.device).name
            mac = bindings.get(base) or _mac_from_hwid(port.hwid or "")
            address = mac or port.device
            if address in seen:
                continue
            seen.add(address)

            if mac and mac in names:
                display = names[mac]
            elif port.device.startswith("/dev/cu.") or port.device.startswith("/dev/tty."):
                display = _macos_name(port.device)
            elif port.description and port.description != "n/a":
                display = port.description
            else:
                display = base

            self._ports[address] = port.device
            devices.append(Device(id=port.device, display_name=display, address=address))
        return devices

    def _port_for(self, address: str) -> str:
        # Unknown addresses are taken as port paths (e.g. /dev/rfcomm0, COM5).
        return self._ports.get(address, address)

    async def open(self, address: str) -> None:
        if address in self._connections:
            return
        port = self._port_for(address)
        try:
            conn = await asyncio.to_thread(self._open_blocking, port)
        except (OSError, serial.SerialException) as e:
            raise ConnectionFailed(f"Serial port error on {port}: {e}") from e
        self._connections[address] = conn
        logger.debug("Opened %s for %s at %d baud", port, address, self.baudrate)

    def _open_blocking(self, port: str) -> serial.Serial:
        return serial.Serial(
            port=port,
            baudrate=self.baudrate,
            timeout=0,
            write_timeout=self.write_timeout,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
        )

    async def close(self, address: str) -> None:
        conn = self._connections.pop(address, None)
        if conn is None:
            return
        try:
            await asyncio.to_thread(conn.close)
        except (OSError, serial.SerialException) as e:
            raise CommunicationError(f"Error closing {conn.port}: {e}") from e

    def _discard(self, address: str) -> None:
        """Forget a dead link, releasing its file descriptor."""
        conn = self._connections.pop(address, None)
        if conn is None:
            return
        try:
            conn.close()
        except (OSError, serial.SerialException) as e:
            logger.debug("Closing dead port %s failed: %s", conn.port, e)

    def _require(self, address: str) -> serial.Serial:
        conn = self._connections.get(address)
        if conn is None or not conn.is_open:
            self._discard(address)
            raise DeviceDisconnectedError("Serial port is closed")
        return conn

    def _link_error(self, address: str, exc: Exception) -> CommunicationError:
        error_str = str(exc).lower()
        if "device not configured" in error_str or "disconnected" in error_str:
            self._discard(address)
            return DeviceDisconnectedError(f"Device disconnected: {exc}")
        return CommunicationError(f"Communication error: {exc}")

    async def write(self, address: str, data: bytes) -> None:
        conn = self._require(address)
        try:
            await asyncio.to_thread(self._write_blocking, conn, data)
        except (OSError, serial.SerialException) as e:
            raise self._link_error(address, e) from e

    @staticmethod
    def _write_blocking(conn: serial.Serial, data: bytes) -> None:
        conn.write(data)
        conn.flush()

    async def read(self, address: str) -> bytes:
        conn = self._require(address)
        try:
            n = conn.in_waiting
            return conn.read(n) if n else b""
        except (OSError, serial.SerialException) as e:
            raise self._link_error(address, e) from e
