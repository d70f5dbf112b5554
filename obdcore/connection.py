"""Single active adapter connection and its state machine."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .elm.init import InitReport, initialize_elm
from .elm.transport import CommandTransport, RawLoggerFn
from .errors import (
    AlreadyConnected,
    NoActiveConnection,
    OBDCoreError,
    OperationInProgress,
)
from .mode import ModeController, SimulationTimings
from .models import ConnectionState, Device
from .permissions import PermissionGate, StaticPermissionGate, require_bluetooth
from .transports.base import TransportStrategy

logger = logging.getLogger(__name__)

StateListener = Callable[[ConnectionState, Optional[Device]], None]


@dataclass(frozen=True)
class Link:
    strategy: TransportStrategy
    address: str


class ConnectionManager:
    """
    Disconnected -> Connecting -> Connected -> Disconnecting -> Disconnected.

    A production connect is only reported once the adapter initialization
    finished; if it fails the link is torn down and the error re-raised, so a
    "connected but uninitialized" state is never observable.
    """

    def __init__(
        self,
        mode: ModeController,
        permissions: Optional[PermissionGate] = None,
        *,
        timings: Optional[SimulationTimings] = None,
        command_timeout_s: float = 3.0,
        raw_logger: Optional[RawLoggerFn] = None,
    ):
        self._mode = mode
        self._permissions = permissions or StaticPermissionGate()
        self._timings = timings or SimulationTimings()
        self._link: Optional[Link] = None
        self._listeners: List[StateListener] = []

        self.state = ConnectionState.DISCONNECTED
        self.device: Optional[Device] = None
        self.init_report: Optional[InitReport] = None
        self.commands = CommandTransport(self, timeout_s=command_timeout_s, raw_logger=raw_logger)

    # -----------------------------
    # State
    # -----------------------------
    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def link(self) -> Optional[Link]:
        if self.state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return self._link
        return None

    def require_connected(self) -> Device:
        if not self.is_connected or self.device is None:
            raise NoActiveConnection("No device connected")
        return self.device

    def subscribe(self, callback: StateListener) -> None:
        self._listeners.append(callback)

    def _set_state(self, state: ConnectionState, device: Optional[Device]) -> None:
        self.state = state
        self.device = device
        for callback in list(self._listeners):
            callback(state, device)

    # -----------------------------
    # Connection
    # -----------------------------
    async def connect(self, device: Device) -> Device:
        if self.state is ConnectionState.CONNECTED:
            raise AlreadyConnected(f"Already connected to {self.device.display_name if self.device else 'a device'}")
        if self.state is not ConnectionState.DISCONNECTED:
            raise OperationInProgress(f"Connection is {self.state.value}")

        simulation = self._mode.simulation
        if not simulation:
            require_bluetooth(self._permissions)
        strategy = self._mode.require_transport()

        self._set_state(ConnectionState.CONNECTING, device)
        link: Optional[Link] = None
        connected = False
        try:
            if simulation:
                await asyncio.sleep(self._timings.connect_s)
            await strategy.open(device.address)
            link = Link(strategy, device.address)
            self._link = link

            if not simulation:
                self.init_report = await initialize_elm(self.commands)
            connected = True
        finally:
            if not connected:
                # Any failure after open, cancellation included, releases the link.
                if link is not None:
                    await self._close_link(link)
                self._link = None
                self.init_report = None
                self._set_state(ConnectionState.DISCONNECTED, None)

        logger.info("Connected to %s (%s)", device.display_name, device.address)
        self._set_state(ConnectionState.CONNECTED, device.with_connected(True))
        return self.device

    async def disconnect(self) -> None:
        if self.state is ConnectionState.DISCONNECTED:
            return
        if self.state is not ConnectionState.CONNECTED or self.commands.in_flight:
            raise OperationInProgress("Cannot disconnect while an operation is in flight")

        link = self._link
        self._set_state(ConnectionState.DISCONNECTING, self.device)
        try:
            if link:
                await self._close_link(link)
        finally:
            self._link = None
            self.init_report = None
            self._set_state(ConnectionState.DISCONNECTED, None)

    def mark_lost(self, reason: str) -> None:
        """The adapter dropped the link on its own; no reconnection is attempted."""
        logger.warning("Connection lost: %s", reason)
        self._link = None
        self.init_report = None
        self._set_state(ConnectionState.DISCONNECTED, None)

    async def _close_link(self, link: Link) -> None:
        try:
            await link.strategy.close(link.address)
        except OBDCoreError as e:
            logger.error("Disconnect error on %s: %s", link.address, e)
