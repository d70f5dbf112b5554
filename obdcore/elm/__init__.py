from .init import INIT_COMMANDS, InitReport, extract_version, initialize_elm
from .transport import CommandTransport, response_lines

__all__ = [
    "INIT_COMMANDS",
    "InitReport",
    "extract_version",
    "initialize_elm",
    "CommandTransport",
    "response_lines",
]
