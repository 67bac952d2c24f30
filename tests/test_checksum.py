import pytest

from unifying_firmware.checksum import crc16_ccitt, crc_matches
from unifying_firmware.errors import FirmwareToolError


def test_crc16_ccitt_false_vector_123456789():
    # CRC-16/CCITT-FALSE (poly 0x1021, init 0xFFFF) check value.
    assert crc16_ccitt(b"123456789") == 0x29B1


def test_crc16_xmodem_variant_with_zero_init():
    assert crc16_ccitt(b"123456789", init=0) == 0x31C3


def test_crc16_empty_range_is_init_value():
    assert crc16_ccitt(b"") == 0xFFFF
    assert crc16_ccitt(b"abc", offset=1, count=0) == 0xFFFF


def test_crc16_sub_range_matches_slice():
    data = b"xx123456789yy"
    assert crc16_ccitt(data, offset=2, count=9) == crc16_ccitt(b"123456789")


def test_crc16_is_deterministic():
    data = bytes(range(256)) * 16
    assert crc16_ccitt(data) == crc16_ccitt(data) == crc16_ccitt(bytearray(data))


def test_crc16_rejects_out_of_range():
    with pytest.raises(FirmwareToolError):
        crc16_ccitt(b"1234", offset=2, count=3)
    with pytest.raises(FirmwareToolError):
        crc16_ccitt(b"1234", offset=-1)
    with pytest.raises(FirmwareToolError):
        crc16_ccitt(b"1234", offset=3, count=-1)


def test_crc_matches():
    data = b"\x00" + b"123456789"
    assert crc_matches(data, 1, len(data), 0x29B1)
    assert not crc_matches(data, 0, len(data), 0x29B1)
