import time
from pathlib import Path
from typing import Callable, Dict, List

from .utils import utc_timestamp


class RawLogger:
    """
    Wire trace sink: fn(direction, command, lines) appended to a text file.

    TX opens an exchange; the matching RX or ERR entry closes it and carries
    the round-trip time in milliseconds:

        [2024-05-01 10:00:00] TX 03
        [2024-05-01 10:00:00] RX 03 +182ms
          43 01 71
    """

    def __init__(self, path: str, monotonic: Callable[[], float] = time.monotonic):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._monotonic = monotonic
        self._pending: Dict[str, float] = {}

    def __call__(self, direction: str, command: str, lines: List[str]):
        header = f"[{utc_timestamp()}] {direction} {command}"
        if direction == "TX":
            self._pending[command] = self._monotonic()
        elif command in self._pending:
            elapsed_ms = (self._monotonic() - self._pending.pop(command)) * 1000
            header += f" +{elapsed_ms:.0f}ms"

        with self.path.open("a", encoding="utf-8") as f:
            f.write(header + "\n")
            for ln in lines:
                f.write(f"  {ln}\n")
