"""
CRC-16/CCITT-FALSE helpers.

All three image checks (TI validation, Nordic validation and the checksum
rewritten by the downgrade patcher) use the same variant: poly 0x1021,
init 0xFFFF, no reflection, no final xor.
"""

from typing import List, Optional

from .errors import FirmwareToolError

CRC16_POLY = 0x1021
CRC16_INIT = 0xFFFF


def _make_table(poly: int) -> List[int]:
    table = []
    for i in range(256):
        crc = i << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ poly) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
        table.append(crc)
    return table


_TABLES = {CRC16_POLY: _make_table(CRC16_POLY)}


def crc16_ccitt(
    data: bytes,
    offset: int = 0,
    count: Optional[int] = None,
    *,
    poly: int = CRC16_POLY,
    init: int = CRC16_INIT,
) -> int:
    """
    CRC16-CCITT over `data[offset:offset + count]`.

    Defaults give CRC-16/CCITT-FALSE (check value 0x29B1 for b"123456789").
    Passing init=0 yields the XMODEM variant.
    """
    if offset < 0:
        raise FirmwareToolError("offset must be >= 0")
    if count is None:
        count = len(data) - offset
    if count < 0:
        raise FirmwareToolError("count must be >= 0")
    end = offset + count
    if end > len(data):
        raise FirmwareToolError("crc range out of bounds")

    table = _TABLES.get(poly)
    if table is None:
        table = _TABLES[poly] = _make_table(poly)

    crc = init & 0xFFFF
    for b in data[offset:end]:
        crc = ((crc << 8) & 0xFFFF) ^ table[((crc >> 8) ^ b) & 0xFF]
    return crc


def crc_matches(data: bytes, start: int, end: int, expected: int) -> bool:
    """Compute the checksum over [start, end) and compare it to `expected`."""
    return crc16_ccitt(data, offset=start, count=end - start) == (expected & 0xFFFF)
