"""
Core module for the Unifying firmware tool.

This module provides the single source of truth for:
- Write gating (safety.py)
- Offset and format parsing (parsing.py)
- Result objects (results.py)
- Unified inspect/patch workflows (actions.py)
- Standardized warnings/messages (messages.py)

The CLI should call into this module rather than implementing its own logic.
"""

from .safety import SafetyContext, require_write_permission, WritePermissionError
from .parsing import parse_offset, parse_input_format, detect_input_format
from .results import OperationResult
from .messages import (
    MessageLevel,
    WarningCode,
    WarningItem,
    warnings_from_strings,
    result_to_warnings,
)
from .actions import (
    inspect_firmware,
    compute_crc,
    extract_base_image,
    extract_signature,
    downgrade_firmware,
)

__all__ = [
    # Safety
    "SafetyContext",
    "require_write_permission",
    "WritePermissionError",
    # Parsing
    "parse_offset",
    "parse_input_format",
    "detect_input_format",
    # Results
    "OperationResult",
    # Messages
    "MessageLevel",
    "WarningCode",
    "WarningItem",
    "warnings_from_strings",
    "result_to_warnings",
    # Actions
    "inspect_firmware",
    "compute_crc",
    "extract_base_image",
    "extract_signature",
    "downgrade_firmware",
]
