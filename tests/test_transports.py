from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest import mock

import serial

from obdcore.errors import (
    CommunicationError,
    ConnectionFailed,
    DeviceDisconnectedError,
    NoActiveConnection,
)
from obdcore.transports import BleTransport, SerialTransport, SimulatedTransport, create_transport
from obdcore.transports import spp
from obdcore.transports.ble import KNOWN_PROFILES, _BleLink, select_characteristics
from obdcore.transports.simulated import ACKNOWLEDGEMENT


def _port(device, hwid="n/a", description="n/a", vid=None):
    return SimpleNamespace(device=device, hwid=hwid, description=description, vid=vid)


def _char(uuid, *properties):
    return SimpleNamespace(uuid=uuid, properties=list(properties))


def _service(uuid, *chars):
    return SimpleNamespace(uuid=uuid, characteristics=list(chars))


class BluetoothPortClassificationTests(unittest.TestCase):
    def test_rfcomm_node(self) -> None:
        self.assertTrue(spp.is_bluetooth_port(_port("/dev/rfcomm0")))

    def test_windows_bthenum(self) -> None:
        outgoing = _port("COM5", hwid="BTHENUM\\{00001101-0000-1000-8000-00805F9B34FB}_LOCALMFG&0002\\7&2A4B5F3C&0&001DA5686E1F_C00000000")
        incoming = _port("COM6", hwid="BTHENUM\\{00001101-0000-1000-8000-00805F9B34FB}_LOCALMFG&0000\\7&2A4B5F3C&0&000000000000_00000000")
        self.assertTrue(spp.is_bluetooth_port(outgoing))
        self.assertEqual("00:1D:A5:68:6E:1F", spp._mac_from_hwid(outgoing.hwid))
        self.assertFalse(spp.is_bluetooth_port(incoming))

    def test_macos_ports(self) -> None:
        self.assertTrue(spp.is_bluetooth_port(_port("/dev/cu.OBDII-SPPDev")))
        self.assertFalse(spp.is_bluetooth_port(_port("/dev/cu.Bluetooth-Incoming-Port")))
        self.assertFalse(spp.is_bluetooth_port(_port("/dev/cu.usbserial-1410", vid=0x0403)))
        self.assertEqual("OBDII", spp._macos_name("/dev/cu.OBDII-SPPDev"))

    def test_usb_adapter_is_not_bluetooth(self) -> None:
        self.assertFalse(spp.is_bluetooth_port(_port("/dev/ttyUSB0", hwid="USB VID:PID=0403:6001", vid=0x0403)))


class SerialTransportTests(unittest.IsolatedAsyncioTestCase):
    def test_list_bonded_resolves_names(self) -> None:
        ports = [
            _port("/dev/rfcomm0"),
            _port("/dev/ttyUSB0", hwid="USB VID:PID=0403:6001", vid=0x0403),
        ]
        transport = SerialTransport(baudrate=38400)
        with mock.patch("serial.tools.list_ports.comports", return_value=ports), \
                mock.patch.object(spp, "sys", SimpleNamespace(platform="linux")), \
                mock.patch.object(spp, "_rfcomm_bindings", return_value={"rfcomm0": "AA:BB:CC:DD:EE:01"}), \
                mock.patch.object(spp, "_bluez_names", return_value={"AA:BB:CC:DD:EE:01": "OBDII"}):
            devices = transport._list_bonded_blocking()

        self.assertEqual(1, len(devices))
        self.assertEqual("/dev/rfcomm0", devices[0].id)
        self.assertEqual("AA:BB:CC:DD:EE:01", devices[0].address)
        self.assertEqual("OBDII", devices[0].display_name)
        self.assertEqual("/dev/rfcomm0", transport._port_for("AA:BB:CC:DD:EE:01"))

    async def test_open_failure(self) -> None:
        transport = SerialTransport(baudrate=38400)
        with mock.patch.object(serial, "Serial", side_effect=serial.SerialException("busy")):
            with self.assertRaises(ConnectionFailed):
                await transport.open("/dev/rfcomm9")

    async def test_open_uses_configured_baudrate(self) -> None:
        transport = SerialTransport(baudrate=9600)
        with mock.patch.object(serial, "Serial") as serial_cls:
            await transport.open("/dev/rfcomm0")
        self.assertEqual("/dev/rfcomm0", serial_cls.call_args.kwargs["port"])
        self.assertEqual(9600, serial_cls.call_args.kwargs["baudrate"])
        self.assertEqual(0, serial_cls.call_args.kwargs["timeout"])

    async def test_read_write(self) -> None:
        conn = mock.MagicMock(is_open=True, in_waiting=5)
        conn.read.return_value = b"OK\r\r>"
        transport = SerialTransport(baudrate=38400)
        transport._connections["/dev/rfcomm0"] = conn

        await transport.write("/dev/rfcomm0", b"ATZ\r")
        conn.write.assert_called_once_with(b"ATZ\r")
        self.assertEqual(b"OK\r\r>", await transport.read("/dev/rfcomm0"))

    async def test_link_errors(self) -> None:
        conn = mock.MagicMock(is_open=True)
        conn.write.side_effect = serial.SerialException("write failed: [Errno 6] Device not configured")
        transport = SerialTransport(baudrate=38400)
        transport._connections["/dev/rfcomm0"] = conn

        with self.assertRaises(DeviceDisconnectedError):
            await transport.write("/dev/rfcomm0", b"03\r")
        with self.assertRaises(DeviceDisconnectedError):
            await transport.read("/dev/rfcomm0")
        conn.close.assert_called_once_with()
        self.assertNotIn("/dev/rfcomm0", transport._connections)

    async def test_port_closed_underneath_is_released(self) -> None:
        conn = mock.MagicMock(is_open=False, port="/dev/rfcomm0")
        conn.close.side_effect = OSError("Bad file descriptor")
        transport = SerialTransport(baudrate=38400)
        transport._connections["/dev/rfcomm0"] = conn

        with self.assertRaises(DeviceDisconnectedError):
            await transport.read("/dev/rfcomm0")
        conn.close.assert_called_once_with()
        self.assertEqual({}, transport._connections)

    async def test_generic_io_error(self) -> None:
        conn = mock.MagicMock(is_open=True)
        type(conn).in_waiting = mock.PropertyMock(side_effect=OSError("I/O error"))
        transport = SerialTransport(baudrate=38400)
        transport._connections["/dev/rfcomm0"] = conn
        with self.assertRaises(CommunicationError) as ctx:
            await transport.read("/dev/rfcomm0")
        self.assertNotIsInstance(ctx.exception, DeviceDisconnectedError)


class BleCharacteristicSelectionTests(unittest.TestCase):
    def test_known_profile_preferred(self) -> None:
        svc_uuid, rx, tx = KNOWN_PROFILES[0]
        services = [
            _service("0000180a-0000-1000-8000-00805f9b34fb", _char("00002a29-0000-1000-8000-00805f9b34fb", "read")),
            _service(svc_uuid, _char(rx, "write-without-response"), _char(tx, "notify")),
        ]
        self.assertEqual((rx, tx), select_characteristics(services))

    def test_any_write_notify_pair(self) -> None:
        services = [_service("0000abcd-0000-1000-8000-00805f9b34fb", _char("aaaa", "notify"), _char("bbbb", "write"))]
        self.assertEqual(("bbbb", "aaaa"), select_characteristics(services))

    def test_service_filter(self) -> None:
        services = [_service("0000abcd-0000-1000-8000-00805f9b34fb", _char("aaaa", "notify"), _char("bbbb", "write"))]
        self.assertEqual((None, None), select_characteristics(services, "0000ffe0-0000-1000-8000-00805f9b34fb"))


class BleTransportTests(unittest.IsolatedAsyncioTestCase):
    async def test_notifications_are_buffered(self) -> None:
        transport = BleTransport(scan_timeout_s=1.0)
        link = _BleLink(SimpleNamespace(is_connected=True), "rx", "tx")
        transport._links["AA:BB"] = link

        link.on_notify(None, bytearray(b"OK\r"))
        link.on_notify(None, bytearray(b"\r>"))
        self.assertEqual(b"OK\r\r>", await transport.read("AA:BB"))
        self.assertEqual(b"", await transport.read("AA:BB"))

    async def test_dropped_link(self) -> None:
        transport = BleTransport(scan_timeout_s=1.0)
        transport._links["AA:BB"] = _BleLink(SimpleNamespace(is_connected=False), "rx", "tx")
        with self.assertRaises(DeviceDisconnectedError):
            await transport.read("AA:BB")


class SimulatedTransportTests(unittest.IsolatedAsyncioTestCase):
    async def test_acknowledges_every_command(self) -> None:
        transport = SimulatedTransport()
        await transport.open("00:11:22:33:44:55")
        await transport.write("00:11:22:33:44:55", b"03\r")
        self.assertEqual(ACKNOWLEDGEMENT, await transport.read("00:11:22:33:44:55"))
        self.assertEqual(b"", await transport.read("00:11:22:33:44:55"))

    async def test_write_requires_open_link(self) -> None:
        with self.assertRaises(NoActiveConnection):
            await SimulatedTransport().write("00:11:22:33:44:55", b"03\r")


class CreateTransportTests(unittest.TestCase):
    def test_names(self) -> None:
        with mock.patch.dict("os.environ", {"OBD_SERIAL_BAUDRATE": "115200"}):
            serial_transport = create_transport("serial")
        self.assertIsInstance(serial_transport, SerialTransport)
        self.assertEqual(115200, serial_transport.baudrate)
        self.assertIsInstance(create_transport(" BLE "), BleTransport)
        self.assertIsNone(create_transport("none"))


if __name__ == "__main__":
    unittest.main()
