"""
Firmware entity and loaders for Unifying receiver images.

A Firmware is built either from a raw binary dump (classified at once) or
from Intel HEX lines (records folded into a sparse buffer, trimmed, then
classified). Classification happens exactly once per entity.

Usage:
    fw = parse_firmware_hex("RQR24.07_B0030.hex")
    print(fw.summary())
    if fw.target_type == TargetType.TI:
        image = fw.downgrade_bl0302_to_bl0301()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .detectors import (
    BootloaderHeader,
    FirmwareLayout,
    TargetType,
    classify_buffer,
    read_bootloader_header,
)
from .downgrade import downgrade_bl0302_to_bl0301, downgrade_with_report, DowngradeReport
from .errors import (
    FirmwareToolError,
    MalformedRecordError,
    SignatureSizeError,
    UnsupportedFormatError,
)
from .hex_records import (
    RECORD_TYPE_DATA,
    RECORD_TYPE_SIGNATURE,
    SIGNATURE_SIZE,
    SUPPORTED_RECORD_TYPES,
    HexLoadReport,
    HexRecord,
    SignatureBuffer,
    decode_hex_line,
)

logger = logging.getLogger(__name__)

HEX_SUFFIXES = (".hex", ".ihx", ".ihex")


class Firmware:
    """
    Firmware image with layout, classification and optional signature.

    Attributes:
        raw_data: Owned image buffer (may still contain a bootloader)
        size: Image size in bytes
        start_offset: Image start within raw_data
        last_offset: Last image byte within raw_data
        has_bootloader: Bootloader found next to the image
        crc: CRC16 stored in the image
        tail_position: Offset of the CRC field (TI only)
        target_type: Receiver family, UNKNOWN until classified
        bootloader: Parsed TI bootloader header, if one is prepended
        load_report: HEX load bookkeeping (HEX sources only)
        load_address: Absolute address of raw_data[0] (set by trim)
    """

    def __init__(self, raw_data: Optional[bytes] = None):
        self.raw_data = bytearray(raw_data) if raw_data is not None else bytearray()
        self.size = 0
        self.start_offset = 0
        self.last_offset = 0
        self.has_bootloader = False
        self.crc = 0
        self.tail_position = 0
        self.target_type = TargetType.UNKNOWN
        self.layout: Optional[FirmwareLayout] = None
        self.bootloader: Optional[BootloaderHeader] = None
        self.load_report: Optional[HexLoadReport] = None
        self._signature = SignatureBuffer()
        self.load_address = 0
        self._has_data = raw_data is not None and len(raw_data) > 0
        self._max_end = 0
        self._trimmed = False

    # ------------------------------------------------------------------
    # HEX loading
    # ------------------------------------------------------------------

    def push_record(self, record: HexRecord) -> None:
        """
        Fold one decoded record into the image or signature buffer.

        Raises:
            MalformedRecordError: unsupported record type
            SignatureBoundsError: signature data past 256 bytes
        """
        if record.record_type == RECORD_TYPE_DATA:
            self._push_data(record.address, record.data)
        elif record.record_type == RECORD_TYPE_SIGNATURE:
            if not self._signature.valid:
                logger.debug("signature data added")
            self._signature.write(record.address, record.data)
        else:
            raise MalformedRecordError(f"invalid record type 0x{record.record_type:02X}")

    def push_raw_record(self, raw: bytes) -> None:
        """Decode `raw` as a record and push it."""
        self.push_record(HexRecord.from_bytes(raw))

    def push_hex_line(self, line: str) -> HexRecord:
        """Decode one HEX text line and push it; returns the record."""
        record = HexRecord.from_bytes(decode_hex_line(line))
        self.push_record(record)
        return record

    def _push_data(self, address: int, data: bytes) -> None:
        if self._trimmed:
            raise FirmwareToolError("image already trimmed, no more data records accepted")
        end = address + len(data)
        if not self._has_data:
            self.start_offset = address
            self._has_data = True

        # unprogrammed flash reads as 0xFF
        if len(self.raw_data) < end:
            self.raw_data.extend(b"\xff" * (end - len(self.raw_data)))
        self.raw_data[address:end] = data

        self.start_offset = min(self.start_offset, address)
        self._max_end = max(self._max_end, end)
        self.size = self._max_end - self.start_offset
        self.last_offset = self.start_offset + self.size - 1

    def trim(self) -> None:
        """
        Cut raw_data down to the loaded span and rebase it to offset 0.

        The absolute address of the first data byte is kept in load_address.
        """
        if not self._has_data:
            raise UnsupportedFormatError("no firmware data records found")
        if self._trimmed:
            return
        self.load_address = self.start_offset
        self.raw_data = self.raw_data[self.start_offset:self.start_offset + self.size]
        self.start_offset = 0
        self.last_offset = self.size - 1
        self._trimmed = True
        logger.debug(
            "trimmed image to 0x%04X bytes (loaded at 0x%04X)",
            len(self.raw_data), self.load_address,
        )

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    @property
    def is_classified(self) -> bool:
        return self.target_type != TargetType.UNKNOWN

    def classify(self) -> FirmwareLayout:
        """
        Detect the target family and apply its layout.

        Raises:
            FirmwareToolError: entity already classified
            UnsupportedFormatError: neither TI nor Nordic
        """
        if self.is_classified:
            raise FirmwareToolError(f"firmware already classified as {self.target_type.label}")
        layout = classify_buffer(bytes(self.raw_data))
        self._apply_layout(layout)
        return layout

    def _apply_layout(self, layout: FirmwareLayout) -> None:
        self.start_offset = layout.start_offset
        self.size = layout.size
        self.last_offset = layout.last_offset
        self.crc = layout.crc
        self.has_bootloader = layout.has_bootloader
        self.tail_position = layout.tail_position or 0
        self.target_type = layout.target_type
        self.layout = layout
        if layout.target_type == TargetType.TI and layout.has_bootloader:
            self.bootloader = read_bootloader_header(self.raw_data)

    # ------------------------------------------------------------------
    # Signature
    # ------------------------------------------------------------------

    @property
    def has_signature(self) -> bool:
        return self._signature.valid

    @property
    def signature(self) -> Optional[bytes]:
        return self._signature.to_bytes() if self._signature.valid else None

    def attach_signature(self, sig: bytes) -> None:
        """
        Store a 256-byte signature blob (no cryptographic check).

        Raises:
            SignatureSizeError: len(sig) != 256
        """
        logger.debug("signature length: %#x (%d) bytes", len(sig), len(sig))
        if len(sig) != SIGNATURE_SIZE:
            self._signature.invalidate()
            raise SignatureSizeError(
                f"wrong size of firmware signature: {len(sig)} bytes, expected {SIGNATURE_SIZE}"
            )
        self._signature.replace(bytes(sig))

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def base_image(self) -> bytes:
        """Copy of the image span without any bootloader bytes."""
        return bytes(self.raw_data[self.start_offset:self.start_offset + self.size])

    def downgrade_bl0302_to_bl0301(self) -> bytes:
        """Patched 0x6800-byte image for bootloader BOT03.01."""
        return downgrade_bl0302_to_bl0301(self)

    def downgrade_with_report(self) -> DowngradeReport:
        return downgrade_with_report(self)

    def summary(self) -> str:
        return (
            f"Size {self.size:#06x} start: {self.start_offset:#06x} "
            f"end {self.last_offset:#06x} CRC {self.crc:#06x}"
        )

    def __str__(self) -> str:
        return self.summary()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "target": self.target_type.label,
            "size": f"0x{self.size:04X}",
            "start_offset": f"0x{self.start_offset:04X}",
            "last_offset": f"0x{self.last_offset:04X}",
            "crc": f"0x{self.crc:04X}",
            "has_bootloader": self.has_bootloader,
            "tail_position": f"0x{self.tail_position:04X}" if self.target_type == TargetType.TI else None,
            "bootloader": self.bootloader.to_dict() if self.bootloader else None,
            "has_signature": self.has_signature,
            "load_address": f"0x{self.load_address:04X}",
        }


def parse_firmware_bin(blob: bytes) -> Firmware:
    """
    Classify a raw firmware dump.

    Raises:
        UnsupportedFormatError: neither TI nor Nordic
    """
    logger.info("Parsing raw firmware blob (%d bytes) ...", len(blob))
    fw = Firmware(blob)
    fw.classify()
    return fw


def parse_firmware_hex_lines(lines: Iterable[str]) -> Firmware:
    """
    Load Intel HEX lines, trim to the data span and classify.

    Bad lines are skipped and recorded in `Firmware.load_report`.

    Raises:
        SignatureBoundsError: signature record past 256 bytes
        UnsupportedFormatError: no data, or neither TI nor Nordic
    """
    fw = Firmware()
    report = HexLoadReport()
    fw.load_report = report

    for line_no, line in enumerate(lines, start=1):
        report.lines += 1
        try:
            record = HexRecord.from_line(line)
        except MalformedRecordError as e:
            logger.debug("Skip invalid line %d: %s", line_no, e)
            report.skip(line_no, str(e))
            continue

        if record.record_type not in SUPPORTED_RECORD_TYPES:
            # EOF, extended address, ... are out of interest
            report.skip(line_no, f"record type 0x{record.record_type:02X} ignored")
            continue
        if record.checksum_ok is False:
            report.checksum_mismatches.append(line_no)

        fw.push_record(record)
        if record.record_type == RECORD_TYPE_DATA:
            report.data_records += 1
        else:
            report.signature_records += 1

    fw.trim()

    logger.info("Determine firmware type...")
    fw.classify()
    return fw


def parse_firmware_hex(path: str | Path) -> Firmware:
    """Load and classify an Intel HEX file."""
    path = Path(path)
    logger.info("Parsing firmware hex file '%s'", path)
    with path.open("r", encoding="ascii", errors="replace") as f:
        return parse_firmware_hex_lines(f)


def detect_input_format(path: str | Path) -> str:
    """Guess "hex" or "bin" from a file name."""
    return "hex" if Path(path).suffix.lower() in HEX_SUFFIXES else "bin"


def load_firmware(path: str | Path, input_format: str = "auto") -> Firmware:
    """
    Load a firmware file as HEX or raw binary.

    With input_format="auto", HEX is chosen by file suffix.
    """
    path = Path(path)
    if input_format == "auto":
        input_format = detect_input_format(path)
        logger.debug("input format for %s: %s", path.name, input_format)
    if input_format == "hex":
        return parse_firmware_hex(path)
    if input_format == "bin":
        return parse_firmware_bin(path.read_bytes())
    raise FirmwareToolError(f"Unknown input format: {input_format}")
