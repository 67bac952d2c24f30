"""
Downgrade of TI (CC2544) images from bootloader BOT03.02 to BOT03.01.

BOT03.02 only flashes signed images spanning 0x0400-0x63FF and expects
device data at 0x6400/0x6800. BOT03.01 does not check signatures, but its
images span 0x0400-0x6BFF with device data at 0x6C00/0x7000. Resizing a
BOT03.02 image is therefore not enough: a resized image runs exactly once,
then the dongle stays in bootloader mode, because the firmware still reads
and writes device data at the old pages.

The CC2544 is an 8051 (Harvard architecture). Flash is visible as CODE at
0x0000 and as XDATA at 0x8000, so device data accesses show up as
0xE400/0xE800 (mostly `mov dptr, #imm16`) and have to become 0xEC00/0xF000.
Loop counters and code using only the address MSB need adjusting as well,
so the substitutions below are a hand-curated list, not a generic rewriter.

CAUTION: the patch set was only tested for RQR39.04 (G603 receiver) and
RQR24.07 (Unifying, ends up behaving like RQR24.06). It very likely works
for RQR41.00 and RQR45.00. Other firmwares may silently produce an image
that does not boot.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Sequence, Tuple

from .checksum import crc16_ccitt
from .detectors import TI_END_MARKER, TI_TAIL_SIZE, TargetType
from .errors import PatchPreconditionError
from .models.registry import downgrade_plan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BytePatch:
    """Global search/replace of one byte sequence."""
    search: bytes
    replace: bytes
    note: str = ""


DOWNGRADE_PATCHES: Tuple[BytePatch, ...] = (
    BytePatch(b"\x90\xe4\x00", b"\x90\xec\x00", "mov dptr, #0xe400"),
    BytePatch(b"\x7a\x04\x7b\xe4", b"\x7a\x04\x7b\xec", "mov r2, #0x04; mov r3, #0xe4"),
    BytePatch(b"\x90\xe8\x00", b"\x90\xf0\x00", "mov dptr, #0xe800"),
    BytePatch(b"\x7a\x04\x7b\xe8", b"\x7a\x04\x7b\xf0", "mov r2, #0x04; mov r3, #0xe8"),
    BytePatch(b"\x08\x74\xe4", b"\x08\x74\xec", "mov a, #0xe4"),
    BytePatch(b"\x75\x0f\xe8", b"\x75\x0f\xf0", "mov 0x0f, #0xe8"),
    BytePatch(b"\x79\x1a", b"\x79\x1c", "mov r1, #0x1a (flash page)"),
    BytePatch(b"\x7f\x1a\x79\x7f", b"\x7f\x1c\x79\x7f", "mov r7, #0x1a (flash page)"),
    BytePatch(b"\x7f\x19", b"\x7f\x1b", "mov r7, #0x19 (flash page)"),
    BytePatch(b"\x79\x19", b"\x79\x1b", "mov r1, #0x19 (flash page)"),
    BytePatch(b"\xf2\x08\x74\xe8", b"\xf2\x08\x74\xf0", "mov a, #0xe8"),
    BytePatch(b"\x0f\xe4\x22", b"\x0f\xec\x22", "0xe4 MSB before ret"),
    BytePatch(b"\x00\x7b\x64", b"\x00\x7b\x6c", "mov r3, #0x64 (code address MSB)"),
    BytePatch(b"\x05\x79\x19", b"\x05\x79\x1b", "mov r1, #0x19 (flash page)"),
)


@dataclass
class DowngradeReport:
    """Patched image plus what the patcher did to produce it."""
    image: bytes
    crc: int
    patch_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def patches_applied(self) -> int:
        return sum(self.patch_counts.values())


def apply_byte_patches(
    image: bytes,
    patches: Sequence[BytePatch] = DOWNGRADE_PATCHES,
) -> Tuple[bytes, Dict[str, int]]:
    """
    Apply `patches` in order, replacing all occurrences of each.

    Returns:
        (patched image, {search_hex: occurrences})
    """
    out = bytes(image)
    counts: Dict[str, int] = {}
    for patch in patches:
        counts[patch.search.hex()] = out.count(patch.search)
        out = out.replace(patch.search, patch.replace)
    return out, counts


def downgrade_with_report(firmware) -> DowngradeReport:
    """
    Resize and patch a BOT03.02 TI image for BOT03.01.

    Args:
        firmware: classified Firmware entity (left untouched)

    Raises:
        PatchPreconditionError: not a TI image, or not a BOT03.02-sized image
    """
    source, target = downgrade_plan()

    if firmware.target_type != TargetType.TI:
        raise PatchPreconditionError("downgrade only supported for CC2544 (TI) firmware")
    if firmware.size != source.image_size:
        raise PatchPreconditionError(
            f"can't downgrade an image which hasn't a size of 0x{source.image_size:04X} "
            f"(size is 0x{firmware.size:04X})"
        )

    size = firmware.size
    grow = target.image_size - source.image_size

    logger.info("... resizing firmware from 0x%04X to 0x%04X bytes", size, size + grow)
    patched = bytearray(b"\xff" * (size + grow))
    patched[:size] = firmware.raw_data[firmware.start_offset:firmware.start_offset + size]
    # old CRC + end marker
    patched[size - TI_TAIL_SIZE:size] = b"\xff" * TI_TAIL_SIZE

    logger.info("... patching firmware")
    image, counts = apply_byte_patches(bytes(patched))
    for search, count in counts.items():
        if count:
            logger.debug("patch %s applied %d time(s)", search, count)

    patched = bytearray(image)
    patched[-len(TI_END_MARKER):] = TI_END_MARKER

    logger.info("... recalculating firmware CRC")
    crc = crc16_ccitt(patched, offset=0, count=len(patched) - TI_TAIL_SIZE)
    patched[-TI_TAIL_SIZE:-TI_TAIL_SIZE + 2] = crc.to_bytes(2, "little")

    return DowngradeReport(image=bytes(patched), crc=crc, patch_counts=counts)


def downgrade_bl0302_to_bl0301(firmware) -> bytes:
    """Return the downgraded image for `firmware` (see downgrade_with_report)."""
    return downgrade_with_report(firmware).image
