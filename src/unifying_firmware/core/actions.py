"""
Core workflow actions for the Unifying firmware tool.

This module exposes pure-ish functions the CLI calls. Each returns an
OperationResult; engine errors never escape as exceptions. All file writes
go through the safety context for gating.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from unifying_firmware.checksum import crc16_ccitt
from unifying_firmware.detectors import TargetType
from unifying_firmware.errors import FirmwareToolError, SignatureSizeError
from unifying_firmware.firmware import Firmware, load_firmware
from unifying_firmware.models.registry import (
    DowngradeSupport,
    bootloader_for_image_size,
    bootloader_for_version,
    get_release,
)

from .parsing import detect_input_format, parse_input_format
from .results import OperationResult
from .safety import SafetyContext, WritePermissionError, require_write_permission

logger = logging.getLogger(__name__)


class _ListLogHandler(logging.Handler):
    """Capture log records into a list of formatted strings."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.records = []
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


@contextmanager
def _capture_logs(logger_name: str = "unifying_firmware"):
    """Capture logs for core operations into a list."""
    target_logger = logging.getLogger(logger_name)
    handler = _ListLogHandler()
    previous_level = target_logger.level
    if previous_level in (logging.NOTSET, logging.WARNING, logging.ERROR, logging.CRITICAL):
        target_logger.setLevel(logging.INFO)
    target_logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        target_logger.removeHandler(handler)
        target_logger.setLevel(previous_level)


def _write_output(result: OperationResult, data: bytes, out_path: Path, ctx: SafetyContext) -> None:
    """Write `data` if permitted; dry runs become a warning, refusals an error."""
    try:
        require_write_permission(ctx, out_path, len(data))
    except WritePermissionError as e:
        if ctx.is_dry_run:
            result.add_warning(f"Dry run: {out_path} not written ({len(data)} bytes)")
        else:
            result.add_error(e.reason)
        return
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(data)
    result.output_path = str(out_path)
    logger.info("Wrote %d bytes to %s", len(data), out_path)


def _load(path: str, input_format: str) -> Firmware:
    if not Path(path).exists():
        raise FileNotFoundError(f"Firmware file not found: {path}")
    try:
        input_format = parse_input_format(input_format)
    except ValueError as e:
        raise FirmwareToolError(str(e)) from e
    return load_firmware(path, input_format)


def inspect_firmware(
    path: str,
    input_format: str = "auto",
    signature_path: Optional[str] = None,
) -> OperationResult:
    """
    Load, classify and describe a firmware file.

    Args:
        path: HEX or BIN firmware file
        input_format: "auto", "hex" or "bin"
        signature_path: Optional 256-byte signature blob to attach; a blob
            of the wrong size is reported as a warning

    Returns:
        OperationResult with the layout in metadata["firmware"]
    """
    with _capture_logs() as logs:
        try:
            fw = _load(path, input_format)
            result = OperationResult.success(operation="inspect")
            if signature_path:
                try:
                    fw.attach_signature(Path(signature_path).read_bytes())
                except SignatureSizeError as e:
                    result.add_warning(str(e))

            result.describe_firmware(fw)
            result.add_hash("image_sha256", fw.base_image())
            result.metadata["summary"] = fw.summary()
            fmt = parse_input_format(input_format)
            result.metadata["input_format"] = detect_input_format(path) if fmt == "auto" else fmt
            result.add_load_report(fw.load_report)

            if fw.target_type == TargetType.TI:
                gen = bootloader_for_image_size(fw.size)
                if gen is not None:
                    result.metadata["image_for"] = gen.name
                    if gen.signed and not fw.has_signature:
                        result.add_warning(
                            f"No signature present, {gen.name} will refuse this image"
                        )
                if fw.bootloader is not None:
                    bl_gen = bootloader_for_version(fw.bootloader.major, fw.bootloader.minor)
                    result.metadata["bootloader_generation"] = bl_gen.name if bl_gen else "unknown"

        except (FirmwareToolError, OSError) as e:
            logger.debug("inspect failed: %s", e)
            result = OperationResult.failure(operation="inspect", error=str(e))
        result.logs = logs
        return result


def compute_crc(
    path: str,
    start: Optional[int] = None,
    end: Optional[int] = None,
    expected: Optional[int] = None,
) -> OperationResult:
    """
    CRC-16/CCITT-FALSE over [start, end) of a raw file.

    Args:
        path: Binary file
        start: First byte (default 0)
        end: End offset, exclusive (default file size)
        expected: Optional value to compare against
    """
    try:
        data = Path(path).read_bytes()
        start = 0 if start is None else start
        end = len(data) if end is None else end
        crc = crc16_ccitt(data, offset=start, count=end - start)
    except (FirmwareToolError, OSError) as e:
        return OperationResult.failure(operation="crc", error=str(e))

    result = OperationResult.success(
        operation="crc",
        region=f"0x{start:04X}-0x{end:04X}",
        bytes_len=end - start,
        crc=crc,
    )
    if expected is not None:
        result.metadata["expected"] = f"0x{expected:04X}"
        if crc != expected:
            result.add_error(f"CRC mismatch: calculated 0x{crc:04X}, expected 0x{expected:04X}")
    return result


def extract_base_image(
    path: str,
    out_path: str,
    safety_ctx: SafetyContext,
    input_format: str = "auto",
) -> OperationResult:
    """Write the image span (no bootloader, no padding) to `out_path`."""
    with _capture_logs() as logs:
        try:
            fw = _load(path, input_format)
            image = fw.base_image()
            result = OperationResult.success(operation="base_image")
            result.describe_firmware(fw)
            result.add_hash("image_sha256", image)
            result.add_load_report(fw.load_report)
            _write_output(result, image, Path(out_path), safety_ctx)
        except (FirmwareToolError, OSError) as e:
            result = OperationResult.failure(operation="base_image", error=str(e))
        result.logs = logs
        return result


def extract_signature(
    path: str,
    out_path: str,
    safety_ctx: SafetyContext,
    input_format: str = "auto",
) -> OperationResult:
    """Write the 256-byte signature carried by 0xFD HEX records to `out_path`."""
    with _capture_logs() as logs:
        try:
            fw = _load(path, input_format)
            if not fw.has_signature:
                result = OperationResult.failure(
                    operation="extract_signature",
                    error="Firmware carries no signature data",
                    target=fw.target_type.label,
                )
            else:
                sig = fw.signature
                result = OperationResult.success(
                    operation="extract_signature",
                    target=fw.target_type.label,
                    bytes_len=len(sig),
                )
                result.add_hash("signature_sha256", sig)
                _write_output(result, sig, Path(out_path), safety_ctx)
        except (FirmwareToolError, OSError) as e:
            result = OperationResult.failure(operation="extract_signature", error=str(e))
        result.logs = logs
        return result


def downgrade_firmware(
    path: str,
    out_path: str,
    safety_ctx: SafetyContext,
    input_format: str = "auto",
    release: Optional[str] = None,
) -> OperationResult:
    """
    Patch a BOT03.02 TI image so BOT03.01 accepts it without a signature.

    Args:
        path: Firmware file (0x6000-byte TI image, bootloader optional)
        out_path: Where to write the 0x6800-byte raw image
        safety_ctx: Write gating
        input_format: "auto", "hex" or "bin"
        release: Optional release name (e.g. "RQR24.07") to check against
            the list of validated releases
    """
    with _capture_logs() as logs:
        try:
            fw = _load(path, input_format)
            report = fw.downgrade_with_report()

            result = OperationResult.success(
                operation="downgrade",
                target=fw.target_type.label,
                region=f"0x0000-0x{len(report.image) - 1:04X}",
                bytes_len=len(report.image),
                crc=report.crc,
            )
            result.add_hash("input_sha256", fw.base_image())
            result.add_hash("output_sha256", report.image)
            result.metadata["patch_counts"] = report.patch_counts
            result.metadata["patches_applied"] = report.patches_applied
            result.add_load_report(fw.load_report)

            result.add_warning(
                "Downgrade patch set is heuristic, validated only on RQR24.07 and RQR39.04"
            )
            if release:
                known = get_release(release)
                if known is None or known.downgrade == DowngradeSupport.UNTESTED:
                    result.add_warning(f"Release {release} is unknown or untested for downgrade")
                result.metadata["release"] = release

            _write_output(result, report.image, Path(out_path), safety_ctx)

        except (FirmwareToolError, OSError) as e:
            logger.debug("downgrade failed: %s", e)
            result = OperationResult.failure(operation="downgrade", error=str(e))
        result.logs = logs
        return result
