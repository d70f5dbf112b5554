"""Adapter discovery: paired serial devices filtered by name, or the simulated set."""

from __future__ import annotations

import logging
from typing import List

from .mode import ModeController
from .models import Device
from .permissions import PermissionGate, require_bluetooth

logger = logging.getLogger(__name__)

# Case-insensitive substrings of common adapter names. "blue" catches
# BlueDriver / Bluetooth-branded clones.
OBD_NAME_TOKENS = (
    "obd",
    "elm",
    "scanner",
    "torque",
    "obdlink",
    "blue",
    "vlinker",
    "vgate",
    "veepeak",
)


def is_obd_device(name: str) -> bool:
    n = (name or "").lower()
    return any(token in n for token in OBD_NAME_TOKENS)


class DeviceRegistry:
    def __init__(self, mode: ModeController, permissions: PermissionGate):
        self._mode = mode
        self._permissions = permissions
        self._has_scanned = False
        mode.subscribe(lambda _simulation: self.reset())

    @property
    def has_scanned(self) -> bool:
        """True once an explicit scan ran, so "never tried" differs from "found nothing"."""
        return self._has_scanned

    def reset(self) -> None:
        self._has_scanned = False

    async def list_devices(self) -> List[Device]:
        if self._mode.simulation:
            return await self._mode.transport().list_bonded()

        require_bluetooth(self._permissions)
        strategy = self._mode.require_transport()
        bonded = await strategy.list_bonded()
        devices = [d for d in bonded if d.display_name and is_obd_device(d.display_name)]
        logger.debug("%d of %d bonded devices look like OBD adapters", len(devices), len(bonded))
        return devices

    async def scan(self) -> List[Device]:
        self._has_scanned = True
        return await self.list_devices()
