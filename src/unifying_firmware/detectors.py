"""
Firmware family detection.

Two detectors, each a pure function over a raw buffer:

- detect_ti(): CC2544 images end with the magic FE C0 AD DE, preceded by a
  little-endian CRC16. A bootloader may be prepended (VID at 0x3F8).
- detect_nordic(): nRF24LU1+ images have a fixed size (0x6400 or 0x6800)
  with a big-endian CRC16 in the last two bytes.

Detectors never mutate anything. On success they return a FirmwareLayout,
which the Firmware entity applies in one step.
"""

import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .checksum import crc_matches
from .errors import ClassificationError, UnsupportedFormatError

logger = logging.getLogger(__name__)

LOGITECH_VID = 0x046D

# TI: optional bootloader occupies 0x0000-0x03FF, header in its last 8 bytes
TI_BOOTLOADER_SIZE = 0x0400
TI_BOOTLOADER_HEADER_OFFSET = 0x03F8
TI_END_MARKER = b"\xfe\xc0\xad\xde"
TI_TAIL_SIZE = 6  # CRC16 + end marker

# Nordic: bootloader appended at 0x7400, VID stored big-endian at +0xBB0
NORDIC_BOOTLOADER_OFFSET = 0x7400
NORDIC_BOOTLOADER_VID_OFFSET = NORDIC_BOOTLOADER_OFFSET + 0x0BB0
NORDIC_CANDIDATE_SIZES = (0x6400, 0x6800)


class TargetType(Enum):
    """Receiver hardware family a firmware image is built for."""
    UNKNOWN = 0x00
    NORDIC = 0x01
    TI = 0x02

    @property
    def label(self) -> str:
        return {
            TargetType.UNKNOWN: "Unknown",
            TargetType.NORDIC: "Nordic",
            TargetType.TI: "Texas Instruments",
        }[self]


@dataclass(frozen=True)
class FirmwareLayout:
    """Result of a successful classification."""
    target_type: TargetType
    start_offset: int
    size: int
    crc: int
    has_bootloader: bool
    tail_position: Optional[int] = None

    @property
    def last_offset(self) -> int:
        return self.start_offset + self.size - 1


@dataclass(frozen=True)
class BootloaderHeader:
    """Identification block at the end of a prepended TI bootloader."""
    vid: int
    pid: int
    major: int
    minor: int
    build: int

    @property
    def version(self) -> str:
        return f"BOT{self.major:02X}.{self.minor:02X}_B{self.build:04X}"

    def to_dict(self) -> dict:
        return {
            "vid": f"0x{self.vid:04X}",
            "pid": f"0x{self.pid:04X}",
            "version": self.version,
        }


def has_ti_bootloader(buf: bytes) -> bool:
    """True when a Logitech VID sits in the bootloader header slot."""
    end = TI_BOOTLOADER_HEADER_OFFSET + 2
    if len(buf) < end:
        return False
    vid = int.from_bytes(buf[TI_BOOTLOADER_HEADER_OFFSET:end], "little")
    return vid == LOGITECH_VID


def read_bootloader_header(buf: bytes) -> Optional[BootloaderHeader]:
    """
    Parse the TI bootloader header, if a bootloader is prepended.

    Layout at 0x03F8: VID (LE u16), PID (LE u16), major, minor, build (LE u16).
    """
    if not has_ti_bootloader(buf) or len(buf) < TI_BOOTLOADER_SIZE:
        return None
    vid, pid, major, minor, build = struct.unpack_from("<HHBBH", buf, TI_BOOTLOADER_HEADER_OFFSET)
    return BootloaderHeader(vid=vid, pid=pid, major=major, minor=minor, build=build)


def has_nordic_bootloader(buf: bytes) -> bool:
    """True when the appended Nordic bootloader carries the Logitech VID."""
    if len(buf) <= NORDIC_BOOTLOADER_VID_OFFSET + 2:
        return False
    vid = int.from_bytes(buf[NORDIC_BOOTLOADER_VID_OFFSET:NORDIC_BOOTLOADER_VID_OFFSET + 2], "big")
    return vid == LOGITECH_VID


def detect_ti(buf: bytes) -> FirmwareLayout:
    """
    Interpret `buf` as a TI (CC2544) image.

    Raises:
        ClassificationError: marker missing or CRC mismatch
    """
    if has_ti_bootloader(buf):
        has_bootloader = True
        start = TI_BOOTLOADER_SIZE
        logger.debug("firmware blob has a bootloader prepended")
    else:
        has_bootloader = False
        start = 0x0000
        logger.debug("firmware blob has no bootloader prepended")

    # TODO: the bootloader PID could tell receiver variants apart
    pos = bytes(buf[start:]).find(TI_END_MARKER)
    if pos < 0:
        raise ClassificationError(TargetType.TI, "end marker FE C0 AD DE missing")

    size = pos + len(TI_END_MARKER)
    if size < TI_TAIL_SIZE:
        raise ClassificationError(TargetType.TI, "end marker leaves no room for a CRC")
    tail = start + size - TI_TAIL_SIZE
    stored = int.from_bytes(buf[tail:tail + 2], "little")

    if not crc_matches(buf, start, tail, stored):
        raise ClassificationError(TargetType.TI, f"wrong CRC (stored 0x{stored:04X})")
    logger.debug("TI firmware CRC correct: 0x%04X", stored)

    return FirmwareLayout(
        target_type=TargetType.TI,
        start_offset=start,
        size=size,
        crc=stored,
        has_bootloader=has_bootloader,
        tail_position=tail,
    )


def detect_nordic(buf: bytes) -> FirmwareLayout:
    """
    Interpret `buf` as a Nordic image by trying each candidate size in order.

    Raises:
        ClassificationError: no candidate size is reachable and CRC-valid
    """
    has_bootloader = has_nordic_bootloader(buf)
    logger.debug(
        "firmware blob has %s bootloader appended", "a" if has_bootloader else "no"
    )

    for size in NORDIC_CANDIDATE_SIZES:
        if len(buf) < size:
            break
        stored = int.from_bytes(buf[size - 2:size], "big")
        if crc_matches(buf, 0, size - 2, stored):
            logger.debug("Nordic firmware CRC correct: 0x%04X (size 0x%04X)", stored, size)
            return FirmwareLayout(
                target_type=TargetType.NORDIC,
                start_offset=0,
                size=size,
                crc=stored,
                has_bootloader=has_bootloader,
            )
        logger.debug("no Nordic image of size 0x%04X (stored CRC 0x%04X)", size, stored)

    raise ClassificationError(TargetType.NORDIC, "no valid firmware image")


def classify_buffer(buf: bytes) -> FirmwareLayout:
    """
    Classify `buf`: TI first, Nordic as fallback.

    Raises:
        UnsupportedFormatError: neither family accepts the buffer
    """
    failures = []
    for detector in (detect_ti, detect_nordic):
        try:
            layout = detector(buf)
        except ClassificationError as e:
            logger.info("No %s firmware: %s", e.family.label, e.reason)
            failures.append(e)
            continue
        logger.info("Provided firmware targets %s based receiver", layout.target_type.label)
        return layout

    raise UnsupportedFormatError(
        "unsupported firmware format - neither Nordic nor TI", failures
    )
