"""
DTC (Diagnostic Trouble Code) Module
====================================
Mode 03 response decoding and the static description/severity table.

CSV Format (obdcore/data/dtc_descriptions.csv):
    "CODE","Description","severity"

Supports # comments for section headers and empty lines for spacing.
"""

from __future__ import annotations

import csv
import logging
import random
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..errors import DecodeSkipped
from ..models import DTCCode, Severity
from ..utils import epoch_ms, utc_now

logger = logging.getLogger(__name__)

MODE_03 = "03"

UNKNOWN_DESCRIPTION = "Unknown diagnostic trouble code"
UNKNOWN_SEVERITY = Severity.MEDIUM

# First nibble >> 1 selects the system letter.
_PREFIXES = ("P", "P", "P", "P", "C", "B", "U", "U")
_CHUNK_RE = re.compile(r"^[0-9A-F]{4}$")

# 11-bit CAN response header (7E8..7EF) followed by the ISO-TP PCI byte.
_CAN_HEADER_RE = re.compile(r"^(7E[8-F])([0-9A-F]{2})")
# J1850 / ISO 9141 / KWP: three header bytes ahead of the 43 marker.
_LEGACY_HEADER_RE = re.compile(r"^[0-9A-F]{6}(?=43)")
_HEX_RE = re.compile(r"^[0-9A-F]+$")
_RESPONSE_MARKER = "43"
_NO_DATA = "NODATA"
_PADDING = "0000"

# Codes a simulated scan draws from; all of them are in the table.
SIMULATION_CODES = ("P0171", "P0301", "P0420", "P0442")

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class DTCEntry:
    code: str
    description: str
    severity: Severity


def _data_dir() -> Path:
    return Path(__file__).resolve().parents[1] / "data"


class DTCTable:
    """Read-only code -> (description, severity) lookup."""

    def __init__(self, entries: Mapping[str, DTCEntry]):
        self._entries = MappingProxyType(dict(entries))

    @classmethod
    def from_csv(cls, csv_path: Path) -> "DTCTable":
        entries: Dict[str, DTCEntry] = {}
        with csv_path.open("r", encoding="utf-8-sig", newline="") as f:
            for line in f:
                line = line.strip()

                # Skip empty lines and comments
                if not line or line.startswith("#"):
                    continue

                row = next(csv.reader([line]))
                if len(row) < 3:
                    continue

                code = row[0].strip().upper()
                if not code:
                    continue
                try:
                    severity = Severity(row[2].strip().lower())
                except ValueError:
                    logger.warning("Ignoring %s: unknown severity %r", code, row[2])
                    continue

                entries[code] = DTCEntry(code=code, description=row[1].strip(), severity=severity)
        return cls(entries)

    @property
    def entries(self) -> Mapping[str, DTCEntry]:
        return self._entries

    def lookup(self, code: str) -> Optional[DTCEntry]:
        return self._entries.get((code or "").strip().upper())

    def describe(self, code: str) -> Tuple[str, Severity]:
        entry = self.lookup(code)
        if entry is None:
            return UNKNOWN_DESCRIPTION, UNKNOWN_SEVERITY
        return entry.description, entry.severity

    def codes(self) -> List[str]:
        return sorted(self._entries)

    def search(self, query: str) -> List[DTCEntry]:
        q = (query or "").strip().lower()
        if not q:
            return []
        return [
            entry
            for entry in self._entries.values()
            if q in entry.description.lower() or q in entry.code.lower()
        ]

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.strip().upper() in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def load_dtc_table(path: Optional[Path] = None) -> DTCTable:
    return DTCTable.from_csv(path or _data_dir() / "dtc_descriptions.csv")


_default_table: Optional[DTCTable] = None


def default_table() -> DTCTable:
    """The bundled table, loaded on first use."""
    global _default_table
    if _default_table is None:
        _default_table = load_dtc_table()
    return _default_table


def decode_dtc_bytes(chunk: str) -> str:
    """
    Convert one 4-hex-character chunk to the canonical code.

    The first nibble n picks the letter from (P, P, P, P, C, B, U, U)[n >> 1]
    and n & 1 becomes the second character; the last three are kept as-is.

    "0301" -> "P0301", "4123" -> "P0123", "8ABC" -> "C0ABC", "D001" -> "U1001"
    """
    hex_chunk = (chunk or "").upper()
    if not _CHUNK_RE.match(hex_chunk):
        raise DecodeSkipped(chunk, "expected 4 hex characters")

    first_nibble = int(hex_chunk[0], 16)
    prefix = _PREFIXES[first_nibble >> 1]
    second_char = str(first_nibble & 1)
    return f"{prefix}{second_char}{hex_chunk[1:]}"


@dataclass
class _Message:
    """One mode 03 reply from one ECU, possibly spread over several ISO-TP frames."""

    data: str
    length: Optional[int] = None  # ISO-TP byte count; None when the line is the whole message
    counted: bool = False  # CAN replies carry a DTC count byte after the 43 marker

    def code_bytes(self) -> str:
        data = self.data if self.length is None else self.data[: self.length * 2]
        if data.startswith(_RESPONSE_MARKER):
            data = data[len(_RESPONSE_MARKER):]
            return data[2:] if self.counted else data
        if self.counted:
            # Negative response (7F 03 xx) or another service's frame.
            logger.debug("Ignoring CAN frame without mode 03 marker: %s", data)
            return ""
        return data


def _clean_lines(response: str) -> List[str]:
    text = (response or "").replace("\r", "\n")
    return ["".join(line.split()).upper() for line in text.split("\n")]


def _group_messages(lines: Iterable[str]) -> List[_Message]:
    """
    Split header formats apart:
      7E8 06 43 02 01 71 04 20 00     11-bit CAN, PCI byte, marker, count
      48 6B 10 43 01 71 04 20 00 00 12   J1850 / ISO 9141 header, checksum last
      43 03 01                        headers off
    """
    messages: List[_Message] = []
    multi_frame: Dict[str, _Message] = {}

    for line in lines:
        if not line or line == _NO_DATA:
            continue

        can = _CAN_HEADER_RE.match(line)
        if can and _HEX_RE.match(line):
            ecu, pci, data = can.group(1), int(can.group(2), 16), line[can.end():]
            frame_type = pci >> 4
            if frame_type == 0x0:
                messages.append(_Message(data, length=pci & 0x0F, counted=True))
            elif frame_type == 0x1 and len(data) >= 2:
                msg = _Message(data[2:], length=((pci & 0x0F) << 8) | int(data[:2], 16), counted=True)
                multi_frame[ecu] = msg
                messages.append(msg)
            elif frame_type == 0x2 and ecu in multi_frame:
                multi_frame[ecu].data += data
            continue

        if not line.startswith(_RESPONSE_MARKER) and _LEGACY_HEADER_RE.match(line) and _HEX_RE.match(line):
            messages.append(_Message(line[6:-2]))
            continue

        messages.append(_Message(line))

    return messages


def _iter_chunks(line: str) -> Iterable[str]:
    for i in range(0, len(line), 4):
        yield line[i : i + 4]


def _make_code(code: str, position: int, table: DTCTable, observed_at) -> DTCCode:
    description, severity = table.describe(code)
    return DTCCode(
        id=f"{code}-{epoch_ms(observed_at)}-{position}",
        code=code,
        description=description,
        severity=severity,
        observed_at=observed_at,
    )


def parse_dtc_response(
    response: str,
    table: Optional[DTCTable] = None,
    clock: Optional[Clock] = None,
) -> List[DTCCode]:
    """
    Parse a mode 03 response into trouble codes.

    Best effort per chunk: padding (0000) and malformed chunks are skipped,
    an empty or NO DATA response is a valid "no faults" result.
    """
    table = table or default_table()
    observed_at = (clock or utc_now)()
    dtcs: List[DTCCode] = []

    for message in _group_messages(_clean_lines(response)):
        for chunk in _iter_chunks(message.code_bytes()):
            if chunk == _PADDING:
                continue
            try:
                code = decode_dtc_bytes(chunk)
            except DecodeSkipped as e:
                logger.debug("%s", e)
                continue
            dtcs.append(_make_code(code, len(dtcs), table, observed_at))

    return dtcs


def simulated_scan(
    rng: random.Random,
    table: Optional[DTCTable] = None,
    clock: Optional[Clock] = None,
) -> List[DTCCode]:
    """Order-preserving, non-empty prefix of SIMULATION_CODES."""
    table = table or default_table()
    observed_at = (clock or utc_now)()
    count = rng.randint(1, len(SIMULATION_CODES))
    return [_make_code(code, i, table, observed_at) for i, code in enumerate(SIMULATION_CODES[:count])]
