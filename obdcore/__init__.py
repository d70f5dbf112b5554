# obdcore/__init__.py
from .connection import ConnectionManager
from .engine import DiagnosticEngine
from .errors import (
    AlreadyConnected,
    CommandTimeout,
    CommunicationError,
    ConnectionFailed,
    ConnectionStateError,
    DecodeSkipped,
    DeviceDisconnectedError,
    InitializationFailed,
    NoActiveConnection,
    OBDCoreError,
    OperationInProgress,
    PermissionDenied,
    TransportError,
    TransportUnavailable,
)
from .mode import ModeController, SimulationTimings
from .models import (
    CommandTransaction,
    ConnectionState,
    Device,
    DTCCode,
    Severity,
    VehicleIdentity,
    VehicleProfile,
)
from .obd2 import DTCTable, decode_dtc_bytes, load_dtc_table, parse_dtc_response, parse_vin_response
from .registry import DeviceRegistry, is_obd_device
from .utils import VERSION

__all__ = [
    "ConnectionManager",
    "DiagnosticEngine",
    "DeviceRegistry",
    "ModeController",
    "SimulationTimings",
    "AlreadyConnected",
    "CommandTimeout",
    "CommunicationError",
    "ConnectionFailed",
    "ConnectionStateError",
    "DecodeSkipped",
    "DeviceDisconnectedError",
    "InitializationFailed",
    "NoActiveConnection",
    "OBDCoreError",
    "OperationInProgress",
    "PermissionDenied",
    "TransportError",
    "TransportUnavailable",
    "CommandTransaction",
    "ConnectionState",
    "Device",
    "DTCCode",
    "Severity",
    "VehicleIdentity",
    "VehicleProfile",
    "DTCTable",
    "decode_dtc_bytes",
    "load_dtc_table",
    "parse_dtc_response",
    "parse_vin_response",
    "is_obd_device",
]
__version__ = VERSION
