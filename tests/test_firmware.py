"""Tests for the Firmware entity and its HEX/BIN loaders."""

import pytest

from unifying_firmware.detectors import TargetType
from unifying_firmware.errors import (
    FirmwareToolError,
    MalformedRecordError,
    SignatureBoundsError,
    SignatureSizeError,
    UnsupportedFormatError,
)
from unifying_firmware.firmware import (
    Firmware,
    load_firmware,
    parse_firmware_bin,
    parse_firmware_hex,
    parse_firmware_hex_lines,
)
from unifying_firmware.hex_records import HexRecord

from conftest import build_ti_bootloader, build_ti_image, hex_record_line, to_hex_lines


def _record(address: int, data: bytes, record_type: int = 0x00) -> HexRecord:
    return HexRecord(length=len(data), address=address, record_type=record_type, data=data)


class TestRecordLoading:

    def test_two_contiguous_records(self):
        fw = Firmware()
        fw.push_raw_record(bytes([4, 0x04, 0x00, 0x00, 0xAA, 0xBB, 0xCC, 0xDD]))
        fw.push_raw_record(bytes([4, 0x04, 0x04, 0x00, 0xEE, 0xFF, 0x00, 0x11]))

        assert fw.start_offset == 0x0400
        assert fw.size == 8
        assert fw.last_offset == 0x0407

        fw.trim()
        assert bytes(fw.raw_data) == b"\xAA\xBB\xCC\xDD\xEE\xFF\x00\x11"
        assert len(fw.raw_data) == fw.size
        assert fw.start_offset == 0
        assert fw.last_offset == 7
        assert fw.load_address == 0x0400
        assert len(fw.raw_data) >= fw.start_offset + fw.size
        assert fw.base_image() == b"\xAA\xBB\xCC\xDD\xEE\xFF\x00\x11"

    def test_trim_twice_is_noop(self):
        fw = Firmware()
        fw.push_raw_record(bytes([2, 0x02, 0x00, 0x00, 0x12, 0x34]))
        fw.trim()
        fw.trim()
        assert fw.load_address == 0x0200
        assert bytes(fw.raw_data) == b"\x12\x34"

    def test_no_data_after_trim(self):
        fw = Firmware()
        fw.push_raw_record(bytes([2, 0x02, 0x00, 0x00, 0x12, 0x34]))
        fw.trim()
        with pytest.raises(FirmwareToolError):
            fw.push_raw_record(bytes([2, 0x02, 0x02, 0x00, 0x56, 0x78]))
        assert fw.size == 2

    def test_gap_is_filled_with_ff(self):
        fw = Firmware()
        fw.push_record(_record(0x0100, b"\x01\x02"))
        fw.push_record(_record(0x0110, b"\x03\x04"))
        fw.trim()
        assert fw.size == 0x12
        assert bytes(fw.raw_data[2:0x10]) == b"\xff" * 0x0E
        assert fw.raw_data[-2:] == b"\x03\x04"

    def test_out_of_order_records(self):
        fw = Firmware()
        fw.push_record(_record(0x0408, b"\x09\x0A"))
        fw.push_record(_record(0x0400, b"\x01\x02"))

        assert fw.start_offset == 0x0400
        assert fw.size == 0x0A
        assert fw.last_offset == fw.start_offset + fw.size - 1

        fw.trim()
        assert bytes(fw.raw_data) == b"\x01\x02" + b"\xff" * 6 + b"\x09\x0A"

    def test_overlapping_record_overwrites(self):
        fw = Firmware()
        fw.push_record(_record(0x0000, b"\x00" * 8))
        fw.push_record(_record(0x0002, b"\x11\x22"))
        fw.trim()
        assert bytes(fw.raw_data) == b"\x00\x00\x11\x22\x00\x00\x00\x00"

    def test_invalid_record_type_rejected(self):
        fw = Firmware()
        with pytest.raises(MalformedRecordError):
            fw.push_record(_record(0x0000, b"", record_type=0x01))
        assert len(fw.raw_data) == 0

    def test_malformed_raw_record_does_not_mutate(self):
        fw = Firmware()
        fw.push_record(_record(0x0010, b"\x01"))
        with pytest.raises(MalformedRecordError):
            fw.push_raw_record(b"\x04\x00\x20\x00\xAA")
        assert fw.size == 1
        assert len(fw.raw_data) == 0x11

    def test_push_hex_line(self):
        fw = Firmware()
        rec = fw.push_hex_line(hex_record_line(0x0020, b"\xDE\xAD"))
        assert rec.address == 0x0020
        assert fw.start_offset == 0x0020
        assert fw.size == 2

    def test_signature_records(self, signature_blob):
        fw = Firmware()
        for off in range(0, 256, 32):
            fw.push_record(_record(off, signature_blob[off:off + 32], record_type=0xFD))
        assert fw.has_signature
        assert fw.signature == signature_blob
        assert len(fw.raw_data) == 0

    def test_signature_record_out_of_bounds(self):
        fw = Firmware()
        with pytest.raises(SignatureBoundsError):
            fw.push_record(_record(0xFC, b"\x00" * 8, record_type=0xFD))
        assert not fw.has_signature

    def test_trim_without_data(self):
        with pytest.raises(UnsupportedFormatError):
            Firmware().trim()


class TestHexLoading:

    def test_ti_image_from_hex(self, ti_image, signature_blob):
        lines = to_hex_lines(ti_image, base=0x0400, signature=signature_blob)
        fw = parse_firmware_hex_lines(lines)

        assert fw.target_type == TargetType.TI
        assert fw.start_offset == 0x0000
        assert fw.size == 0x6000
        assert fw.last_offset == 0x5FFF
        assert fw.has_bootloader is False
        assert fw.load_address == 0x0400
        assert fw.has_signature
        assert fw.signature == signature_blob
        assert fw.base_image() == ti_image
        assert fw.load_report.data_records == 0x6000 // 16
        assert fw.load_report.signature_records == 16

    def test_hex_with_prepended_bootloader(self, ti_image):
        lines = to_hex_lines(build_ti_bootloader() + ti_image, base=0x0000)
        fw = parse_firmware_hex_lines(lines)

        assert fw.target_type == TargetType.TI
        assert fw.has_bootloader is True
        assert fw.start_offset == 0x0400
        assert fw.base_image() == ti_image
        assert fw.bootloader.version == "BOT03.02_B0009"

    def test_bad_lines_are_skipped(self, ti_image):
        lines = to_hex_lines(ti_image, base=0x0400)
        lines.insert(3, ":not hex at all")
        lines.insert(5, "")
        lines.insert(7, ":0400")
        lines.insert(9, ":020000040000FA")  # extended linear address, ignored
        fw = parse_firmware_hex_lines(lines)

        assert fw.target_type == TargetType.TI
        skipped_lines = [n for n, _ in fw.load_report.skipped]
        assert 4 in skipped_lines
        assert 6 in skipped_lines
        assert 8 in skipped_lines
        assert 10 in skipped_lines
        # EOF record
        assert len(lines) in skipped_lines

    def test_line_checksum_not_enforced(self, ti_image):
        lines = to_hex_lines(ti_image, base=0x0400)
        # corrupt the checksum byte of the first record
        lines[0] = lines[0][:-2] + ("00" if lines[0][-2:] != "00" else "01")
        fw = parse_firmware_hex_lines(lines)
        assert fw.target_type == TargetType.TI
        assert fw.load_report.checksum_mismatches == [1]

    def test_signature_out_of_bounds_is_fatal(self, ti_image):
        lines = to_hex_lines(ti_image, base=0x0400)
        lines.insert(0, hex_record_line(0xF8, b"\x00" * 16, record_type=0xFD))
        with pytest.raises(SignatureBoundsError):
            parse_firmware_hex_lines(lines)

    def test_hex_without_data(self):
        with pytest.raises(UnsupportedFormatError):
            parse_firmware_hex_lines([":00000001FF"])

    def test_hex_unknown_content(self):
        lines = to_hex_lines(b"\x12" * 64, base=0x0400)
        with pytest.raises(UnsupportedFormatError):
            parse_firmware_hex_lines(lines)

    def test_parse_firmware_hex_file(self, ti_hex_file, ti_image):
        fw = parse_firmware_hex(ti_hex_file)
        assert fw.target_type == TargetType.TI
        assert fw.base_image() == ti_image


class TestBinLoading:

    def test_bin_with_bootloader(self, ti_bin_file, ti_image):
        fw = parse_firmware_bin(ti_bin_file.read_bytes())
        assert fw.target_type == TargetType.TI
        assert fw.has_bootloader
        assert fw.start_offset == 0x0400
        assert fw.size == 0x6000
        assert fw.tail_position == 0x0400 + 0x6000 - 6
        assert len(fw.raw_data) >= fw.start_offset + fw.size
        assert fw.base_image() == ti_image

    def test_load_firmware_by_suffix(self, ti_hex_file, nordic_bin_file):
        assert load_firmware(ti_hex_file).target_type == TargetType.TI
        assert load_firmware(nordic_bin_file).target_type == TargetType.NORDIC

    def test_load_firmware_forced_format(self, tmp_path, ti_image):
        path = tmp_path / "image.dat"
        path.write_text("\n".join(to_hex_lines(ti_image, base=0x0400)))
        assert load_firmware(path, "hex").target_type == TargetType.TI

    def test_load_firmware_unknown_format(self, ti_bin_file):
        with pytest.raises(FirmwareToolError):
            load_firmware(ti_bin_file, "srec")

    def test_unsupported_blob(self):
        with pytest.raises(UnsupportedFormatError) as ei:
            parse_firmware_bin(b"\x00" * 0x100)
        assert "neither Nordic nor TI" in str(ei.value)
        assert [f.family for f in ei.value.failures] == [TargetType.TI, TargetType.NORDIC]


class TestClassification:

    def test_classify_only_once(self, ti_image):
        fw = parse_firmware_bin(ti_image)
        with pytest.raises(FirmwareToolError):
            fw.classify()
        assert fw.target_type == TargetType.TI

    def test_failed_classification_leaves_layout_untouched(self):
        fw = Firmware(b"\x00" * 0x500)
        with pytest.raises(UnsupportedFormatError):
            fw.classify()
        assert fw.target_type == TargetType.UNKNOWN
        assert fw.size == 0
        assert fw.start_offset == 0
        assert fw.crc == 0
        assert fw.layout is None

    def test_summary_and_dict(self, ti_image):
        fw = parse_firmware_bin(ti_image)
        assert fw.summary().startswith("Size 0x6000 start: 0x0000 end 0x5fff CRC")
        d = fw.to_dict()
        assert d["target"] == "Texas Instruments"
        assert d["size"] == "0x6000"
        assert d["tail_position"] == "0x5FFA"
        assert d["has_signature"] is False


class TestSignatureAttachment:

    def test_attach_valid_signature(self, ti_image, signature_blob):
        fw = parse_firmware_bin(ti_image)
        fw.attach_signature(signature_blob)
        assert fw.has_signature
        assert fw.signature == signature_blob

    def test_attach_wrong_size(self, ti_image):
        fw = parse_firmware_bin(ti_image)
        with pytest.raises(SignatureSizeError):
            fw.attach_signature(b"\x00" * 255)
        assert fw.has_signature is False
        assert fw.signature is None
        # entity stays usable
        assert fw.base_image() == ti_image

    def test_wrong_size_invalidates_previous_signature(self, ti_image, signature_blob):
        fw = parse_firmware_bin(ti_image)
        fw.attach_signature(signature_blob)
        with pytest.raises(SignatureSizeError):
            fw.attach_signature(signature_blob + b"\x00")
        assert fw.has_signature is False
