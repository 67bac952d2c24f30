"""
Intel-HEX style record decoding.

Only two record types carry data we care about:
- 0x00: firmware data at a 16-bit address
- 0xFD: signature data (non-standard extension), offset into a 256-byte blob

The per-line checksum byte is decoded and exposed but never enforced here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import MalformedRecordError, SignatureBoundsError

RECORD_TYPE_DATA = 0x00
RECORD_TYPE_SIGNATURE = 0xFD
SUPPORTED_RECORD_TYPES = (RECORD_TYPE_DATA, RECORD_TYPE_SIGNATURE)

SIGNATURE_SIZE = 256


def decode_hex_line(line: str) -> bytes:
    """Decode one HEX line (optional leading ':') into raw bytes."""
    text = line.strip()
    if text.startswith(":"):
        text = text[1:]
    if not text:
        raise MalformedRecordError("empty line")
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise MalformedRecordError(f"not a hex line: {text[:32]!r}")


@dataclass(frozen=True)
class HexRecord:
    """Single decoded record: [length, addr_hi, addr_lo, type, data..., (checksum)]."""

    length: int
    address: int
    record_type: int
    data: bytes
    checksum: Optional[int] = None

    @classmethod
    def from_bytes(cls, raw: bytes) -> "HexRecord":
        if raw is None or len(raw) < 4:
            raise MalformedRecordError("record shorter than 4 bytes")
        length = raw[0]
        if len(raw) < 4 + length:
            raise MalformedRecordError(
                f"record length mismatch: header says {length}, got {len(raw) - 4} data bytes"
            )
        address = (raw[1] << 8) | raw[2]
        checksum = raw[4 + length] if len(raw) > 4 + length else None
        return cls(
            length=length,
            address=address,
            record_type=raw[3],
            data=bytes(raw[4 : 4 + length]),
            checksum=checksum,
        )

    @classmethod
    def from_line(cls, line: str) -> "HexRecord":
        return cls.from_bytes(decode_hex_line(line))

    @property
    def end_address(self) -> int:
        return self.address + self.length

    @property
    def checksum_ok(self) -> Optional[bool]:
        """Intel HEX two's-complement check, None when the line carries no checksum."""
        if self.checksum is None:
            return None
        total = self.length + (self.address >> 8) + (self.address & 0xFF) + self.record_type
        total += sum(self.data) + self.checksum
        return (total & 0xFF) == 0


class SignatureBuffer:
    """Fixed 256-byte signature storage with bounds-checked partial writes."""

    def __init__(self) -> None:
        self._data = bytearray(SIGNATURE_SIZE)
        self.valid = False

    def write(self, offset: int, data: bytes) -> None:
        end = offset + len(data)
        if offset < 0 or end > SIGNATURE_SIZE:
            raise SignatureBoundsError(
                f"invalid signature data, out of bounds (0x{offset:X}..0x{end:X} > 0x{SIGNATURE_SIZE:X})"
            )
        self._data[offset:end] = data
        self.valid = True

    def replace(self, data: bytes) -> None:
        if len(data) != SIGNATURE_SIZE:
            raise SignatureBoundsError(f"signature must be {SIGNATURE_SIZE} bytes")
        self._data[:] = data
        self.valid = True

    def invalidate(self) -> None:
        self.valid = False

    def to_bytes(self) -> bytes:
        return bytes(self._data)


@dataclass
class HexLoadReport:
    """Bookkeeping for one HEX load: what was used and what was skipped."""

    lines: int = 0
    data_records: int = 0
    signature_records: int = 0
    skipped: List[Tuple[int, str]] = field(default_factory=list)
    checksum_mismatches: List[int] = field(default_factory=list)

    def skip(self, line_no: int, reason: str) -> None:
        self.skipped.append((line_no, reason))

    def to_dict(self) -> dict:
        return {
            "lines": self.lines,
            "data_records": self.data_records,
            "signature_records": self.signature_records,
            "skipped": [{"line": n, "reason": r} for n, r in self.skipped],
            "checksum_mismatches": list(self.checksum_mismatches),
        }
