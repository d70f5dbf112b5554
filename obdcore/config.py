from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Tuple


_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    value = (os.environ.get(name) or "").strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    return default


def simulation_enabled() -> bool:
    # Simulation is the default so nothing touches hardware unless asked to.
    return _env_flag("OBD_SIMULATION", True)


def transport_name() -> str:
    return (os.environ.get("OBD_TRANSPORT") or "serial").strip().lower()


def serial_baudrate() -> int:
    return _env_int("OBD_SERIAL_BAUDRATE", 38400)


def command_timeout_s() -> float:
    return _env_float("OBD_COMMAND_TIMEOUT", 3.0)


def ble_scan_timeout_s() -> float:
    return _env_float("OBD_BLE_SCAN_TIMEOUT", 6.0)


def ble_service_uuid() -> Optional[str]:
    return os.environ.get("OBD_BLE_SERVICE_UUID")


def ble_rx_uuid() -> Optional[str]:
    return os.environ.get("OBD_BLE_RX_UUID")


def ble_tx_uuid() -> Optional[str]:
    return os.environ.get("OBD_BLE_TX_UUID")


def raw_log_path() -> Optional[str]:
    return os.environ.get("OBD_RAW_LOG") or None


def bluetooth_permission() -> str:
    return (os.environ.get("OBD_BLUETOOTH_PERMISSION") or "granted").strip().lower()


def _dotenv_pair(line: str) -> Optional[Tuple[str, str]]:
    """KEY=value, `export KEY=value`; quotes kept intact, ` # note` tails dropped otherwise."""
    text = line.strip()
    if text.startswith("export "):
        text = text[len("export "):].lstrip()
    if not text or text.startswith("#") or "=" not in text:
        return None

    key, _, value = text.partition("=")
    key, value = key.strip(), value.strip()
    if not key:
        return None
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return key, value[1:-1]
    return key, value.split(" #", 1)[0].rstrip()


def load_dotenv(path: Optional[Path] = None) -> List[str]:
    """
    Fill os.environ from a .env file (default: ./.env).

    Variables already in the environment win. Returns the keys that were set.
    """
    target = path or Path.cwd() / ".env"
    if not target.is_file():
        return []

    applied: List[str] = []
    for line in target.read_text(encoding="utf-8").splitlines():
        pair = _dotenv_pair(line)
        if pair is None or pair[0] in os.environ:
            continue
        os.environ[pair[0]] = pair[1]
        applied.append(pair[0])
    return applied
