"""Shared firmware image builders for the test suite."""

import struct

import pytest

from unifying_firmware.checksum import crc16_ccitt
from unifying_firmware.detectors import LOGITECH_VID, TI_END_MARKER


def build_ti_image(size: int = 0x6000, body: bytes = b"", fill: int = 0x00) -> bytes:
    """TI image: body, fill, LE CRC16 and FE C0 AD DE in the last 6 bytes."""
    img = bytearray([fill]) * size
    img[:len(body)] = body
    img[-4:] = TI_END_MARKER
    crc = crc16_ccitt(img, offset=0, count=size - 6)
    img[size - 6:size - 4] = crc.to_bytes(2, "little")
    return bytes(img)


def build_ti_bootloader(pid: int = 0xAAAA, major: int = 0x03, minor: int = 0x02, build: int = 0x0009) -> bytes:
    """0x400-byte bootloader region with the VID/PID/version header at 0x3F8."""
    bl = bytearray(b"\xff" * 0x400)
    bl[0x3F8:0x400] = struct.pack("<HHBBH", LOGITECH_VID, pid, major, minor, build)
    return bytes(bl)


def build_nordic_image(size: int = 0x6400, fill: int = 0x00) -> bytes:
    """Nordic image with a big-endian CRC16 in the last two bytes."""
    img = bytearray([fill]) * size
    if size > 0x6400:
        # make sure the smaller candidate does not validate by accident
        wrong = crc16_ccitt(img, offset=0, count=0x63FE) ^ 0xFFFF
        img[0x63FE:0x6400] = wrong.to_bytes(2, "big")
    crc = crc16_ccitt(img, offset=0, count=size - 2)
    img[size - 2:] = crc.to_bytes(2, "big")
    return bytes(img)


def with_nordic_bootloader(image: bytes, total: int = 0x8000) -> bytes:
    """Append 0xFF up to `total` and place the big-endian VID at 0x7FB0."""
    buf = bytearray(image) + b"\xff" * (total - len(image))
    buf[0x7FB0:0x7FB2] = LOGITECH_VID.to_bytes(2, "big")
    return bytes(buf)


def hex_record_line(address: int, data: bytes, record_type: int = 0x00, checksum: bool = True) -> str:
    raw = bytes([len(data), (address >> 8) & 0xFF, address & 0xFF, record_type]) + data
    if checksum:
        raw += bytes([(-sum(raw)) & 0xFF])
    return ":" + raw.hex().upper()


def to_hex_lines(
    image: bytes,
    base: int = 0x0000,
    record_size: int = 16,
    signature: bytes = b"",
) -> list:
    """Intel HEX text lines for `image` at `base`, optional 0xFD signature records, EOF."""
    lines = []
    for off in range(0, len(image), record_size):
        lines.append(hex_record_line(base + off, image[off:off + record_size]))
    for off in range(0, len(signature), record_size):
        lines.append(hex_record_line(off, signature[off:off + record_size], record_type=0xFD))
    lines.append(":00000001FF")
    return lines


@pytest.fixture
def ti_image() -> bytes:
    """Plain 0x6000-byte TI image (BOT03.02 size), no bootloader."""
    return build_ti_image()


@pytest.fixture
def nordic_image() -> bytes:
    return build_nordic_image()


@pytest.fixture
def signature_blob() -> bytes:
    return bytes(range(256))


@pytest.fixture
def ti_hex_file(tmp_path, ti_image, signature_blob):
    """TI image as Intel HEX at 0x0400 with signature records."""
    path = tmp_path / "RQR24.07_B0030.hex"
    path.write_text("\n".join(to_hex_lines(ti_image, base=0x0400, signature=signature_blob)) + "\n")
    return path


@pytest.fixture
def ti_bin_file(tmp_path, ti_image):
    path = tmp_path / "dump.bin"
    path.write_bytes(build_ti_bootloader() + ti_image)
    return path


@pytest.fixture
def nordic_bin_file(tmp_path, nordic_image):
    path = tmp_path / "nordic.bin"
    path.write_bytes(nordic_image)
    return path
