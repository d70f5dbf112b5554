# obdcore/elm/init.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional

from ..errors import InitializationFailed, OBDCoreError

if TYPE_CHECKING:
    from .transport import CommandTransport

logger = logging.getLogger(__name__)

INIT_COMMANDS = (
    "ATZ",  # reset
    "ATE0",  # echo off
    "ATL0",  # linefeeds off
    "ATS0",  # spaces off
    "ATH1",  # headers on
    "ATSP0",  # protocol auto
)


@dataclass
class InitReport:
    elm_version: str = "unknown"
    responses: Dict[str, str] = field(default_factory=dict)


def extract_version(response: str) -> Optional[str]:
    s = (response or "").strip()
    if not s:
        return None
    m = re.search(r"(ELM327\s*v?\s*[\w\.]+)", s, re.IGNORECASE)
    if m:
        return m.group(1).strip()
    return s[:40].strip() if s else None


def _rejected(response: str) -> bool:
    up = (response or "").upper()
    return "?" in up or "ERROR" in up


async def initialize_elm(commands: "CommandTransport") -> InitReport:
    """
    Runs the AT configuration sequence once per new connection.
    Stops at the first failing command; never retries or skips ahead.
    """
    report = InitReport()
    for command in INIT_COMMANDS:
        try:
            response = await commands.send(command)
        except OBDCoreError as e:
            logger.warning("OBD2 initialization error for command %s: %s", command, e)
            raise InitializationFailed(command, str(e)) from e
        if _rejected(response):
            logger.warning("Adapter rejected %s: %r", command, response)
            raise InitializationFailed(command, f"adapter replied {response!r}")
        report.responses[command] = response

    report.elm_version = extract_version(report.responses.get("ATZ", "")) or "unknown"
    return report
