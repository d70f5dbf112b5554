from __future__ import annotations

import random
import re
from typing import Optional

from ..models import VehicleIdentity, VehicleProfile

MODE_09_VIN = "0902"

VIN_RE = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")  # no I, O, Q

# Cleaned responses shorter than this carry no complete VIN.
_MIN_RESPONSE_LEN = 34
_VIN_START = 6
_VIN_END = _VIN_START + 17

REFERENCE_VEHICLES = (
    VehicleProfile(brand="Toyota", model="Camry", year="2018"),
    VehicleProfile(brand="Honda", model="Civic", year="2020"),
    VehicleProfile(brand="Ford", model="F-150", year="2019"),
    VehicleProfile(brand="BMW", model="X3", year="2021"),
    VehicleProfile(brand="Chevrolet", model="Malibu", year="2017"),
)


def is_valid_vin(vin: str) -> bool:
    vin = (vin or "").strip().upper()
    return bool(VIN_RE.match(vin))


def extract_vin_candidate(response: str) -> Optional[str]:
    """Fixed-offset slice of the whitespace-free response, or None when too short."""
    cleaned = "".join((response or "").split())
    if len(cleaned) < _MIN_RESPONSE_LEN:
        return None
    return cleaned[_VIN_START:_VIN_END].upper()


def parse_vin_response(response: str) -> Optional[VehicleIdentity]:
    """
    Mode 09 PID 02 response -> VehicleIdentity.

    Only a complete, well-formed 17-character VIN is surfaced; anything
    else is "not available" (None), never a partial value.
    """
    candidate = extract_vin_candidate(response)
    if candidate is None or not is_valid_vin(candidate):
        return None
    return VehicleIdentity(vin=candidate)


def simulated_vehicle(rng: random.Random) -> VehicleProfile:
    return rng.choice(REFERENCE_VEHICLES)
