from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .errors import TransportUnavailable
from .transports.base import TransportStrategy
from .transports.simulated import SimulatedTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationTimings:
    """Latencies modelled in simulation mode, in seconds."""

    connect_s: float = 2.0
    scan_s: float = 3.0
    vehicle_s: float = 4.0


class ModeController:
    """Simulation/production switch read by every other component.

    Switching does not tear down an open connection; callers disconnect
    first when they need a clean slate.
    """

    def __init__(
        self,
        simulation: bool = True,
        production: Optional[TransportStrategy] = None,
        simulated: Optional[TransportStrategy] = None,
    ):
        self._simulation = bool(simulation)
        self._production = production
        self._simulated = simulated or SimulatedTransport()
        self._listeners: List[Callable[[bool], None]] = []

    @property
    def simulation(self) -> bool:
        return self._simulation

    def set_simulation(self, enabled: bool) -> None:
        self._simulation = bool(enabled)
        logger.info("Mode set to %s", "simulation" if self._simulation else "production")
        # Listeners reset mode-specific state before this call returns.
        for callback in list(self._listeners):
            callback(self._simulation)

    def subscribe(self, callback: Callable[[bool], None]) -> None:
        self._listeners.append(callback)

    def transport(self) -> Optional[TransportStrategy]:
        if self._simulation:
            return self._simulated
        return self._production

    def require_transport(self) -> TransportStrategy:
        strategy = self.transport()
        if strategy is None or not strategy.is_available():
            raise TransportUnavailable(
                "Bluetooth serial transport is not available on this platform/build. "
                "Use simulation mode instead."
            )
        return strategy
