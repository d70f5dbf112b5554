from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Callable, List, Optional

from ..errors import (
    CommandTimeout,
    DeviceDisconnectedError,
    NoActiveConnection,
    OBDCoreError,
    OperationInProgress,
    TransportUnavailable,
)
from ..models import CommandTransaction

if TYPE_CHECKING:
    from ..connection import ConnectionManager

PROMPT = b">"

RawLoggerFn = Callable[[str, str, List[str]], None]


def response_lines(text: str, command: str) -> List[str]:
    """Prompt removed, CR/LF normalised, blanks and the echoed command dropped."""
    text = text.replace(">", "").replace("\r", "\n")
    echo = "".join(command.split()).upper()
    lines = []
    for ln in text.split("\n"):
        ln = ln.strip()
        if not ln:
            continue
        if "".join(ln.split()).upper() == echo:
            continue
        lines.append(ln)
    return lines


class CommandTransport:
    """One command/response exchange at a time over the manager's active link.

    A second send while one is outstanding is rejected, never queued.
    """

    def __init__(
        self,
        connection: "ConnectionManager",
        timeout_s: float = 3.0,
        raw_logger: Optional[RawLoggerFn] = None,
        poll_interval_s: float = 0.01,
    ):
        self._connection = connection
        self.timeout_s = timeout_s
        self.raw_logger = raw_logger
        self.poll_interval_s = poll_interval_s
        self._in_flight = False

        self.last_command: Optional[str] = None
        self.last_lines: List[str] = []
        self.last_error: Optional[str] = None
        self.last_duration_s: Optional[float] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def send(self, command: str, timeout_s: Optional[float] = None) -> str:
        link = self._connection.link
        if link is None:
            raise NoActiveConnection("No device connected")
        if not link.strategy.is_available():
            raise TransportUnavailable(f"{link.strategy.name} transport is not available")
        if self._in_flight:
            raise OperationInProgress(f"Command {self.last_command!r} is still awaiting a response")

        tx = CommandTransaction(command=command, timeout_s=timeout_s or self.timeout_s)
        self._in_flight = True
        self.last_command = command
        self.last_error = None
        self.last_lines = []
        start = time.monotonic()
        try:
            # Drop anything left over from an earlier, abandoned exchange.
            await link.strategy.read(link.address)

            if self.raw_logger:
                self.raw_logger("TX", command, [])

            await link.strategy.write(link.address, tx.frame())
            try:
                raw = await asyncio.wait_for(self._read_until_prompt(link), timeout=tx.timeout_s)
            except asyncio.TimeoutError as e:
                raise CommandTimeout(command, tx.timeout_s) from e
        except DeviceDisconnectedError as e:
            self._record_failure(command, e)
            self._connection.mark_lost(str(e))
            raise
        except OBDCoreError as e:
            self._record_failure(command, e)
            raise
        finally:
            self._in_flight = False
            self.last_duration_s = time.monotonic() - start

        lines = response_lines(raw, command)
        self.last_lines = lines
        if self.raw_logger:
            self.raw_logger("RX", command, lines)
        return "\n".join(lines)

    def _record_failure(self, command: str, error: Exception) -> None:
        self.last_error = str(error)
        if self.raw_logger:
            self.raw_logger("ERR", command, [self.last_error])

    async def _read_until_prompt(self, link) -> str:
        buf = bytearray()
        while PROMPT not in buf:
            chunk = await link.strategy.read(link.address)
            if chunk:
                buf.extend(chunk)
                continue
            await asyncio.sleep(self.poll_interval_s)
        return buf.decode("ascii", errors="ignore")

    def debug_snapshot(self) -> dict:
        return {
            "last_command": self.last_command,
            "last_response": "\n".join(self.last_lines),
            "last_error": self.last_error,
            "last_duration_s": self.last_duration_s,
            "timeout": self.timeout_s,
        }
