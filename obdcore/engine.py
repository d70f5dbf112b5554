"""
Diagnostic Engine
=================
Wires the mode switch, device registry, connection manager and decoders
into one explicit instance. Nothing here is a module-level singleton.
"""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple

from . import config
from .connection import ConnectionManager
from .elm.transport import RawLoggerFn
from .errors import OperationInProgress
from .mode import ModeController, SimulationTimings
from .models import ConnectionState, Device, DTCCode, VehicleIdentity, VehicleProfile
from .obd2.dtc import MODE_03, Clock, DTCTable, default_table, parse_dtc_response, simulated_scan
from .obd2.vin import MODE_09_VIN, parse_vin_response, simulated_vehicle
from .permissions import EnvPermissionGate, PermissionGate, StaticPermissionGate
from .rawlog import RawLogger
from .registry import DeviceRegistry
from .transports import create_transport
from .transports.base import TransportStrategy

logger = logging.getLogger(__name__)


class DiagnosticEngine:
    """
    Mode-aware front door for discovery, connection and diagnostics.

    Scans and vehicle identification share one operation slot: starting a
    second one while the first is pending raises OperationInProgress, and
    so does disconnecting through the engine.
    """

    def __init__(
        self,
        mode: Optional[ModeController] = None,
        permissions: Optional[PermissionGate] = None,
        *,
        dtc_table: Optional[DTCTable] = None,
        timings: Optional[SimulationTimings] = None,
        rng: Optional[random.Random] = None,
        command_timeout_s: float = 3.0,
        raw_logger: Optional[RawLoggerFn] = None,
        clock: Optional[Clock] = None,
    ):
        self.mode = mode or ModeController()
        self.permissions = permissions or StaticPermissionGate()
        self.timings = timings or SimulationTimings()
        self.dtc_table = dtc_table or default_table()
        self.rng = rng or random.Random()
        self.clock = clock

        self.registry = DeviceRegistry(self.mode, self.permissions)
        self.connection = ConnectionManager(
            self.mode,
            self.permissions,
            timings=self.timings,
            command_timeout_s=command_timeout_s,
            raw_logger=raw_logger,
        )
        self._operation: Optional[str] = None

    @classmethod
    def from_env(cls, production: Optional[TransportStrategy] = None) -> "DiagnosticEngine":
        """Build an engine from OBD_* environment variables (and .env, if present)."""
        config.load_dotenv()

        if production is None:
            production = create_transport(config.transport_name())
        mode = ModeController(simulation=config.simulation_enabled(), production=production)

        raw_path = config.raw_log_path()
        return cls(
            mode,
            EnvPermissionGate(),
            command_timeout_s=config.command_timeout_s(),
            raw_logger=RawLogger(raw_path) if raw_path else None,
        )

    # -----------------------------
    # Mode
    # -----------------------------
    @property
    def simulation(self) -> bool:
        return self.mode.simulation

    def set_simulation(self, enabled: bool) -> None:
        self.mode.set_simulation(enabled)

    # -----------------------------
    # Discovery
    # -----------------------------
    @property
    def has_scanned(self) -> bool:
        return self.registry.has_scanned

    async def list_devices(self) -> List[Device]:
        return await self.registry.list_devices()

    async def scan_devices(self) -> List[Device]:
        return await self.registry.scan()

    # -----------------------------
    # Connection
    # -----------------------------
    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def connected_device(self) -> Optional[Device]:
        return self.connection.device if self.connection.is_connected else None

    async def connect(self, device: Device) -> Device:
        return await self.connection.connect(device)

    async def disconnect(self) -> None:
        if self._operation is not None:
            raise OperationInProgress(f"Cannot disconnect during {self._operation}")
        await self.connection.disconnect()

    async def send(self, command: str, timeout_s: Optional[float] = None) -> str:
        return await self.connection.commands.send(command, timeout_s=timeout_s)

    # -----------------------------
    # Diagnostics
    # -----------------------------
    @property
    def is_scanning(self) -> bool:
        return self._operation == "scan"

    @asynccontextmanager
    async def _exclusive(self, name: str):
        if self._operation is not None:
            raise OperationInProgress(f"{self._operation} already in progress")
        self._operation = name
        try:
            yield
        finally:
            self._operation = None

    async def scan_dtcs(self) -> List[DTCCode]:
        """Read stored trouble codes (mode 03). An empty list means no faults."""
        self.connection.require_connected()
        async with self._exclusive("scan"):
            if self.mode.simulation:
                await asyncio.sleep(self.timings.scan_s)
                codes = simulated_scan(self.rng, self.dtc_table, self.clock)
            else:
                response = await self.send(MODE_03)
                codes = parse_dtc_response(response, self.dtc_table, self.clock)

        logger.info("DTC scan found %d code(s)", len(codes))
        return codes

    async def read_vin(self) -> Optional[VehicleIdentity]:
        """Mode 09 PID 02. Simulated adapters never report a VIN."""
        self.connection.require_connected()
        if self.mode.simulation:
            return None
        async with self._exclusive("VIN read"):
            response = await self.send(MODE_09_VIN)
        return parse_vin_response(response)

    async def identify_vehicle(self) -> Optional[VehicleProfile]:
        """
        Simulation: one of the reference vehicles after a modelled delay.
        Production: the VIN is requested and parsed, but brand/model/year
        decoding does not exist yet, so the result is always None.
        """
        self.connection.require_connected()
        async with self._exclusive("vehicle identification"):
            if self.mode.simulation:
                await asyncio.sleep(self.timings.vehicle_s)
                return simulated_vehicle(self.rng)

            identity = parse_vin_response(await self.send(MODE_09_VIN))
        if identity is not None:
            logger.debug("VIN %s read; profile decoding unavailable", identity.vin)
        return None

    @staticmethod
    def ai_summary_inputs(dtc: DTCCode, profile: VehicleProfile) -> Tuple[str, str, str, str]:
        """(code, year, brand, model) handed to the external summary service."""
        return dtc.code, profile.year, profile.brand, profile.model
