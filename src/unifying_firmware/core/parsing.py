"""
Centralized parsing helpers for offsets and input formats.

The CLI must import these helpers rather than re-implement them.
"""

from typing import Optional

from unifying_firmware.firmware import detect_input_format  # noqa: F401  re-exported

INPUT_FORMATS = ("auto", "hex", "bin")

_FORMAT_ALIASES = {
    "auto": "auto",
    "hex": "hex",
    "ihex": "hex",
    "ihx": "hex",
    "intel-hex": "hex",
    "bin": "bin",
    "raw": "bin",
    "binary": "bin",
}


def parse_offset(value: Optional[str]) -> Optional[int]:
    """
    Parse offset value from string, supporting multiple formats.

    Accepts:
        - Decimal: "1024"
        - Hex with 0x prefix: "0x400" or "0X400"
        - Hex with h suffix: "400h" or "400H"
        - None or empty for "not given"

    Raises:
        ValueError: If value cannot be parsed.
    """
    if value is None:
        return None

    value = value.strip()
    if not value:
        return None

    try:
        if value.lower().startswith("0x"):
            return int(value, 16)
        if value.lower().endswith("h"):
            return int(value[:-1], 16)
        return int(value)
    except ValueError:
        raise ValueError(
            f"Invalid offset '{value}'. Use decimal (1024), hex (0x400), or suffix (400h)."
        )


def parse_input_format(value: Optional[str]) -> str:
    """
    Normalize an input format name to one of "auto", "hex", "bin".

    Raises:
        ValueError: If format is not recognized.
    """
    if value is None:
        return "auto"
    key = value.strip().lower()
    if key not in _FORMAT_ALIASES:
        raise ValueError(
            f"Invalid input format '{value}'. Valid formats: {', '.join(INPUT_FORMATS)}"
        )
    return _FORMAT_ALIASES[key]
