"""
Result objects for core operations.

An OperationResult describes one run over one firmware file: the receiver
family and image span it touched, the image CRC, what was written, and the
warnings the user should see. The CLI renders it as text or JSON.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from unifying_firmware.firmware import Firmware
from unifying_firmware.hex_records import HexLoadReport


@dataclass
class OperationResult:
    """
    Outcome of a core operation.

    Attributes:
        ok: Whether the operation completed successfully
        operation: Name of the operation (e.g., "inspect", "downgrade")
        target: Receiver family label ("Texas Instruments", "Nordic")
        region: Image span as "0xSSSS-0xEEEE"
        bytes_len: Size of the image inspected or produced
        crc: CRC16 of that image, None when not applicable
        output_path: File written, None for dry runs and read-only operations
        hashes: SHA-256 digests by name (image, input, output, signature)
        warnings: Non-blocking issues encountered
        errors: Blocking errors that caused failure
        metadata: Additional operation-specific data
        logs: Captured log lines from the operation
    """
    ok: bool
    operation: str
    target: str = ""
    region: str = ""
    bytes_len: int = 0
    crc: Optional[int] = None
    output_path: Optional[str] = None
    hashes: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    logs: List[str] = field(default_factory=list)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def add_error(self, message: str) -> None:
        """Add an error message and mark result as failed."""
        self.errors.append(message)
        self.ok = False

    def add_hash(self, name: str, data: bytes) -> str:
        digest = hashlib.sha256(data).hexdigest()
        self.hashes[name] = digest
        return digest

    def describe_firmware(self, fw: Firmware) -> None:
        """Take target, image span and CRC from a classified entity."""
        self.target = fw.target_type.label
        self.region = f"0x{fw.start_offset:04X}-0x{fw.last_offset:04X}"
        self.bytes_len = fw.size
        self.crc = fw.crc
        self.metadata["firmware"] = fw.to_dict()

    def add_load_report(self, report: Optional[HexLoadReport]) -> None:
        """Record a HEX load report and warn about what it could not use."""
        if report is None:
            return
        self.metadata["hex"] = report.to_dict()
        # trailing EOF/address records are expected, only report real junk
        bad = [(n, r) for n, r in report.skipped if "ignored" not in r and r != "empty line"]
        if bad:
            self.add_warning(f"{len(bad)} malformed HEX line(s) skipped (first: line {bad[0][0]})")
        if report.checksum_mismatches:
            self.add_warning(
                f"{len(report.checksum_mismatches)} HEX line checksum mismatch(es), "
                f"first at line {report.checksum_mismatches[0]}"
            )

    def to_summary(self) -> str:
        """
        Short multi-line description for the terminal.

        Warnings and errors are not included; the CLI prints them separately.
        """
        head = f"{self.operation}: {'OK' if self.ok else 'FAILED'}"
        if self.target:
            head += f" ({self.target})"
        lines = [head]
        if self.region:
            lines.append(f"  image   {self.region}, {self.bytes_len:#06x} bytes")
        elif self.bytes_len:
            lines.append(f"  size    {self.bytes_len:#06x} bytes")
        if self.crc is not None:
            lines.append(f"  crc     0x{self.crc:04X}")
        for name, digest in self.hashes.items():
            lines.append(f"  {name}  {digest[:16]}")
        if self.output_path:
            lines.append(f"  written {self.output_path}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ok": self.ok,
            "operation": self.operation,
            "target": self.target,
            "region": self.region,
            "bytes_len": self.bytes_len,
            "crc": f"0x{self.crc:04X}" if self.crc is not None else None,
            "output_path": self.output_path,
            "hashes": self.hashes,
            "warnings": self.warnings,
            "errors": self.errors,
            "metadata": self.metadata,
            "logs": self.logs,
        }

    @classmethod
    def success(cls, operation: str, **kwargs) -> "OperationResult":
        return cls(ok=True, operation=operation, **kwargs)

    @classmethod
    def failure(cls, operation: str, error: str, **kwargs) -> "OperationResult":
        result = cls(ok=False, operation=operation, **kwargs)
        result.errors.append(error)
        return result
