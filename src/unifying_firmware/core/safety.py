"""
Safety context and write gating for output files.

Every action that writes an image goes through require_write_permission so
that the CLI behaves the same for all of them: dry run unless --write, and
no silent overwrite of an existing file.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class WritePermissionError(Exception):
    """
    Raised when a write operation is not permitted.

    Attributes:
        reason: Human-readable explanation of why write was denied
        details: Additional context (path, size, ...)
    """
    def __init__(self, reason: str, details: Optional[dict] = None):
        self.reason = reason
        self.details = details or {}
        super().__init__(reason)


@dataclass
class SafetyContext:
    """
    Safety context for write operations.

    Attributes:
        write_enabled: Whether the --write flag was provided
        overwrite: Whether an existing output file may be replaced
    """
    write_enabled: bool = False
    overwrite: bool = False

    @property
    def is_dry_run(self) -> bool:
        return not self.write_enabled


def require_write_permission(ctx: SafetyContext, out_path: Path, bytes_length: int = 0) -> None:
    """
    Check whether `out_path` may be written.

    Raises:
        WritePermissionError: dry run, or the file exists and overwrite is off
    """
    out_path = Path(out_path)
    details = {"path": str(out_path), "bytes_length": bytes_length}

    if not ctx.write_enabled:
        raise WritePermissionError("Dry run: write not enabled", details)

    if out_path.exists() and not ctx.overwrite:
        raise WritePermissionError(f"Output file exists: {out_path}", details)
