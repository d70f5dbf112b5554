from .dtc import (
    MODE_03,
    SIMULATION_CODES,
    UNKNOWN_DESCRIPTION,
    UNKNOWN_SEVERITY,
    DTCEntry,
    DTCTable,
    decode_dtc_bytes,
    default_table,
    load_dtc_table,
    parse_dtc_response,
    simulated_scan,
)
from .vin import (
    MODE_09_VIN,
    REFERENCE_VEHICLES,
    VIN_RE,
    extract_vin_candidate,
    is_valid_vin,
    parse_vin_response,
    simulated_vehicle,
)

__all__ = [
    "MODE_03",
    "SIMULATION_CODES",
    "UNKNOWN_DESCRIPTION",
    "UNKNOWN_SEVERITY",
    "DTCEntry",
    "DTCTable",
    "decode_dtc_bytes",
    "default_table",
    "load_dtc_table",
    "parse_dtc_response",
    "simulated_scan",
    "MODE_09_VIN",
    "REFERENCE_VEHICLES",
    "VIN_RE",
    "extract_vin_candidate",
    "is_valid_vin",
    "parse_vin_response",
    "simulated_vehicle",
]
