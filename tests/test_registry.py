from __future__ import annotations

import unittest

from obdcore.errors import PermissionDenied, TransportUnavailable
from obdcore.mode import ModeController
from obdcore.models import Device
from obdcore.permissions import StaticPermissionGate
from obdcore.registry import DeviceRegistry, is_obd_device
from obdcore.transports.simulated import REFERENCE_DEVICES
from tests.fakes import ManualTransport

BONDED = [
    Device(id="1", display_name="OBDII", address="AA:00:00:00:00:01"),
    Device(id="2", display_name="vLinker MC+", address="AA:00:00:00:00:02"),
    Device(id="3", display_name="JBL Flip 5", address="AA:00:00:00:00:03"),
    Device(id="4", display_name="", address="AA:00:00:00:00:04"),
    Device(id="5", display_name="BlueDriver", address="AA:00:00:00:00:05"),
]


class ObdNameHeuristicTests(unittest.TestCase):
    def test_keywords_case_insensitive(self) -> None:
        for name in ("OBDII", "elm327", "Car Scanner", "Torque Pro", "OBDLink MX+", "BlueDriver", "Vgate iCar"):
            with self.subTest(name=name):
                self.assertTrue(is_obd_device(name))
        for name in ("JBL Flip 5", "Pixel 7", "", None):
            with self.subTest(name=name):
                self.assertFalse(is_obd_device(name))


class DeviceRegistryTests(unittest.IsolatedAsyncioTestCase):
    def _registry(self, simulation=False, transport=None, granted=True):
        mode = ModeController(simulation=simulation, production=transport)
        return mode, DeviceRegistry(mode, StaticPermissionGate(granted))

    async def test_simulation_lists_reference_devices(self) -> None:
        _, registry = self._registry(simulation=True, granted=False)
        devices = await registry.list_devices()
        self.assertEqual(list(REFERENCE_DEVICES), devices)
        self.assertEqual(["1", "2", "3"], [d.id for d in devices])

    async def test_production_filters_bonded_devices(self) -> None:
        transport = ManualTransport(devices=BONDED)
        _, registry = self._registry(transport=transport)
        devices = await registry.list_devices()
        self.assertEqual(["OBDII", "vLinker MC+", "BlueDriver"], [d.display_name for d in devices])

    async def test_no_caching_between_calls(self) -> None:
        transport = ManualTransport(devices=BONDED)
        _, registry = self._registry(transport=transport)
        await registry.list_devices()
        transport.devices = []
        self.assertEqual([], await registry.list_devices())
        self.assertEqual(2, transport.list_calls)

    async def test_permission_checked_first(self) -> None:
        transport = ManualTransport(devices=BONDED)
        _, registry = self._registry(transport=transport, granted=False)
        with self.assertRaises(PermissionDenied):
            await registry.list_devices()
        self.assertEqual(0, transport.list_calls)

    async def test_transport_unavailable(self) -> None:
        _, registry = self._registry(transport=ManualTransport(available=False))
        with self.assertRaises(TransportUnavailable):
            await registry.scan()

    async def test_has_scanned_distinguishes_empty_from_never(self) -> None:
        _, registry = self._registry(transport=ManualTransport())
        self.assertFalse(registry.has_scanned)
        await registry.list_devices()
        self.assertFalse(registry.has_scanned)
        self.assertEqual([], await registry.scan())
        self.assertTrue(registry.has_scanned)

    async def test_mode_switch_resets_has_scanned(self) -> None:
        mode, registry = self._registry(simulation=True)
        await registry.scan()
        mode.set_simulation(False)
        self.assertFalse(registry.has_scanned)

        mode.set_simulation(True)
        await registry.scan()
        mode.set_simulation(True)
        self.assertFalse(registry.has_scanned)


if __name__ == "__main__":
    unittest.main()
