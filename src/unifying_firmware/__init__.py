"""
Unifying Firmware Tool - firmware image engine for Logitech USB receivers

HEX/BIN loading, TI/Nordic detection, CRC validation and the
BOT03.02 -> BOT03.01 downgrade patch for CC2544 based receivers.
"""

__version__ = "0.1.0"

from unifying_firmware.detectors import FirmwareLayout, TargetType
from unifying_firmware.errors import FirmwareToolError
from unifying_firmware.firmware import (
    Firmware,
    load_firmware,
    parse_firmware_bin,
    parse_firmware_hex,
    parse_firmware_hex_lines,
)

__all__ = [
    "Firmware",
    "FirmwareLayout",
    "FirmwareToolError",
    "TargetType",
    "load_firmware",
    "parse_firmware_bin",
    "parse_firmware_hex",
    "parse_firmware_hex_lines",
    "__version__",
]
