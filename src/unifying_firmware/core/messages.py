"""
Standardized warning and message system.

Provides structured warning items with stable codes so the CLI can show
the same condition the same way every time.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Dict, Any


class MessageLevel(Enum):
    """Severity level for messages."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class WarningCode(Enum):
    """Stable warning codes for known conditions."""
    # Input warnings
    W_LINE_SKIPPED = "W_LINE_SKIPPED"
    W_LINE_CHECKSUM = "W_LINE_CHECKSUM"
    W_UNSUPPORTED_FORMAT = "W_UNSUPPORTED_FORMAT"
    W_CRC_MISMATCH = "W_CRC_MISMATCH"

    # Signature warnings
    W_NO_SIGNATURE = "W_NO_SIGNATURE"
    W_SIGNATURE_SIZE = "W_SIGNATURE_SIZE"

    # Patch warnings
    W_HEURISTIC_PATCH = "W_HEURISTIC_PATCH"
    W_RELEASE_UNTESTED = "W_RELEASE_UNTESTED"
    W_NOT_DOWNGRADABLE = "W_NOT_DOWNGRADABLE"

    # Output warnings
    W_DRY_RUN = "W_DRY_RUN"
    W_OUTPUT_EXISTS = "W_OUTPUT_EXISTS"

    # Generic
    W_UNKNOWN = "W_UNKNOWN"


# Default remediation hints for each warning code
WARNING_REMEDIATIONS: Dict[WarningCode, str] = {
    WarningCode.W_LINE_SKIPPED:
        "Lines that are not data (0x00) or signature (0xFD) records are ignored.",
    WarningCode.W_LINE_CHECKSUM:
        "Per-line checksums are not enforced. Compare the file against a known-good copy.",
    WarningCode.W_UNSUPPORTED_FORMAT:
        "Only Logitech receiver images for TI (CC2544) or Nordic (nRF24LU1+) are supported.",
    WarningCode.W_CRC_MISMATCH:
        "Check the range with --start/--end, or the image may be corrupted.",
    WarningCode.W_NO_SIGNATURE:
        "Bootloader BOT03.02 refuses unsigned images. Use --signature or downgrade for BOT03.01.",
    WarningCode.W_SIGNATURE_SIZE:
        "A signature blob must be exactly 256 bytes.",
    WarningCode.W_HEURISTIC_PATCH:
        "The patch set is a fixed byte-pattern list. Keep a dump of the original firmware.",
    WarningCode.W_RELEASE_UNTESTED:
        "Check supported releases with 'list-releases' command.",
    WarningCode.W_NOT_DOWNGRADABLE:
        "Only 0x6000-byte TI images (BOT03.02) can be downgraded.",
    WarningCode.W_DRY_RUN:
        "Dry run complete. Add --write flag to write the output file.",
    WarningCode.W_OUTPUT_EXISTS:
        "Add --overwrite to replace the existing output file.",
    WarningCode.W_UNKNOWN:
        "Check logs for more details.",
}


@dataclass
class WarningItem:
    """
    Structured warning message with stable code.

    Attributes:
        level: Severity (INFO, WARN, ERROR)
        code: Stable warning code for programmatic handling
        title: Short, user-facing title
        detail: Longer explanation of the issue
        remediation: Suggested action to resolve the issue
    """
    level: MessageLevel
    code: WarningCode
    title: str
    detail: str = ""
    remediation: str = ""

    def __post_init__(self):
        """Set default remediation if not provided."""
        if not self.remediation and self.code in WARNING_REMEDIATIONS:
            self.remediation = WARNING_REMEDIATIONS[self.code]

    @classmethod
    def info(cls, code: WarningCode, title: str, detail: str = "", remediation: str = "") -> "WarningItem":
        """Create an INFO-level warning."""
        return cls(MessageLevel.INFO, code, title, detail, remediation)

    @classmethod
    def warn(cls, code: WarningCode, title: str, detail: str = "", remediation: str = "") -> "WarningItem":
        """Create a WARN-level warning."""
        return cls(MessageLevel.WARN, code, title, detail, remediation)

    @classmethod
    def error(cls, code: WarningCode, title: str, detail: str = "", remediation: str = "") -> "WarningItem":
        """Create an ERROR-level warning."""
        return cls(MessageLevel.ERROR, code, title, detail, remediation)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON/display."""
        return {
            "level": self.level.value,
            "code": self.code.value,
            "title": self.title,
            "detail": self.detail,
            "remediation": self.remediation,
        }

    def to_cli_string(self, verbose: bool = False) -> str:
        """Format for CLI output."""
        icons = {
            MessageLevel.INFO: "ℹ️ ",
            MessageLevel.WARN: "⚠️ ",
            MessageLevel.ERROR: "❌",
        }
        icon = icons.get(self.level, "")

        if verbose:
            lines = [f"{icon} [{self.code.value}] {self.title}"]
            if self.detail:
                lines.append(f"   {self.detail}")
            if self.remediation:
                lines.append(f"   → {self.remediation}")
            return "\n".join(lines)
        return f"{icon} {self.title}"


def _code_for_message(msg: str) -> WarningCode:
    """Map a plain message to a stable code by known patterns."""
    msg_lower = msg.lower()
    if msg_lower.startswith("dry run"):
        return WarningCode.W_DRY_RUN
    if msg_lower.startswith("output file exists"):
        return WarningCode.W_OUTPUT_EXISTS
    if "skipped" in msg_lower:
        return WarningCode.W_LINE_SKIPPED
    if "line checksum" in msg_lower:
        return WarningCode.W_LINE_CHECKSUM
    if "unsupported firmware format" in msg_lower:
        return WarningCode.W_UNSUPPORTED_FORMAT
    if "crc" in msg_lower and "mismatch" in msg_lower:
        return WarningCode.W_CRC_MISMATCH
    if "signature" in msg_lower and "size" in msg_lower:
        return WarningCode.W_SIGNATURE_SIZE
    if "signature" in msg_lower:
        return WarningCode.W_NO_SIGNATURE
    if "heuristic" in msg_lower:
        return WarningCode.W_HEURISTIC_PATCH
    if "release" in msg_lower and ("untested" in msg_lower or "unknown" in msg_lower):
        return WarningCode.W_RELEASE_UNTESTED
    if "downgrade" in msg_lower:
        return WarningCode.W_NOT_DOWNGRADABLE
    return WarningCode.W_UNKNOWN


def warnings_from_strings(
    warning_strings: List[str],
    default_level: MessageLevel = MessageLevel.WARN,
) -> List[WarningItem]:
    """
    Convert plain warning strings to WarningItem list.

    Attempts to detect known patterns and assign appropriate codes.
    """
    return [
        WarningItem(level=default_level, code=_code_for_message(msg), title=msg)
        for msg in warning_strings
    ]


def result_to_warnings(result: "OperationResult") -> List[WarningItem]:
    """Convert an OperationResult's warnings and errors to WarningItem list."""
    items = []
    for msg in result.warnings:
        code = _code_for_message(msg)
        if code == WarningCode.W_DRY_RUN:
            items.append(WarningItem.info(code, msg))
        else:
            items.append(WarningItem.warn(code, msg))
    for err in result.errors:
        items.append(WarningItem.error(_code_for_message(err), err))
    return items
