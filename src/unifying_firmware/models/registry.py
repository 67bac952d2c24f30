"""
Registry of TI bootloader generations and known firmware releases.

Provides a single source of truth for:
- Bootloader generations (image span, signature enforcement, device data pages)
- Firmware releases and how far the downgrade patch set was validated on them

Usage:
    from unifying_firmware.models import (
        get_bootloader, bootloader_for_image_size, get_release, downgrade_plan
    )

    source, target = downgrade_plan()
    gen = bootloader_for_image_size(0x6000)   # -> BOT03.02
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from unifying_firmware.detectors import TargetType


class DowngradeSupport(Enum):
    """How well the downgrade patch set is known to work for a release."""
    TESTED = "tested"       # Downgraded image verified on hardware
    LIKELY = "likely"       # Same code base as a tested release
    UNTESTED = "untested"   # No data, output may not boot


@dataclass(frozen=True)
class BootloaderGeneration:
    """
    Flash layout expected by one TI bootloader generation.

    The firmware image spans [image_start, image_end]; the two flash pages
    directly above it hold device (pairing) data.
    """
    name: str
    major: int
    minor: int
    image_start: int
    image_end: int
    signed: bool
    device_data_pages: Tuple[int, int]

    @property
    def image_size(self) -> int:
        return self.image_end - self.image_start + 1

    @property
    def version(self) -> Tuple[int, int]:
        return (self.major, self.minor)

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "image_start": f"0x{self.image_start:04X}",
            "image_end": f"0x{self.image_end:04X}",
            "image_size": f"0x{self.image_size:04X}",
            "signed": self.signed,
            "device_data_pages": [f"0x{p:04X}" for p in self.device_data_pages],
        }


@dataclass(frozen=True)
class FirmwareRelease:
    """A receiver firmware release and its downgrade status."""
    name: str
    target: TargetType
    receiver: str
    downgrade: DowngradeSupport = DowngradeSupport.UNTESTED
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "target": self.target.label,
            "receiver": self.receiver,
            "downgrade": self.downgrade.value,
            "notes": list(self.notes),
        }


# ============================================================================
# REGISTRY
# ============================================================================

_BOOTLOADERS: Dict[str, BootloaderGeneration] = {}
_RELEASES: Dict[str, FirmwareRelease] = {}


def _register_bootloader(gen: BootloaderGeneration) -> None:
    _BOOTLOADERS[gen.name] = gen


def _register_release(release: FirmwareRelease) -> None:
    _RELEASES[release.name] = release


def _init_registry() -> None:
    """Initialize the registry with known generations and releases."""

    # Older generation, accepts unsigned images
    _register_bootloader(BootloaderGeneration(
        name="BOT03.01",
        major=0x03,
        minor=0x01,
        image_start=0x0400,
        image_end=0x6BFF,
        signed=False,
        device_data_pages=(0x6C00, 0x7000),
    ))

    # Newer generation, only flashes images with a valid signature
    _register_bootloader(BootloaderGeneration(
        name="BOT03.02",
        major=0x03,
        minor=0x02,
        image_start=0x0400,
        image_end=0x63FF,
        signed=True,
        device_data_pages=(0x6400, 0x6800),
    ))

    _register_release(FirmwareRelease(
        name="RQR24.07",
        target=TargetType.TI,
        receiver="Unifying (CC2544)",
        downgrade=DowngradeSupport.TESTED,
        notes=["Downgraded image behaves like RQR24.06"],
    ))
    _register_release(FirmwareRelease(
        name="RQR39.04",
        target=TargetType.TI,
        receiver="G-Series G603 (CC2544)",
        downgrade=DowngradeSupport.TESTED,
    ))
    _register_release(FirmwareRelease(
        name="RQR41.00",
        target=TargetType.TI,
        receiver="SPOTLIGHT (CC2544)",
        downgrade=DowngradeSupport.LIKELY,
    ))
    _register_release(FirmwareRelease(
        name="RQR45.00",
        target=TargetType.TI,
        receiver="R500 (CC2544)",
        downgrade=DowngradeSupport.LIKELY,
    ))
    _register_release(FirmwareRelease(
        name="RQR12.11",
        target=TargetType.NORDIC,
        receiver="Unifying (nRF24LU1+)",
        notes=["Nordic receivers do not enforce signatures, no downgrade needed"],
    ))


_init_registry()


def list_bootloaders() -> List[BootloaderGeneration]:
    """List known bootloader generations, oldest first."""
    return sorted(_BOOTLOADERS.values(), key=lambda g: g.version)


def get_bootloader(name: str) -> Optional[BootloaderGeneration]:
    """Get a bootloader generation by name (case-insensitive)."""
    if name in _BOOTLOADERS:
        return _BOOTLOADERS[name]
    name_upper = name.upper()
    for key, gen in _BOOTLOADERS.items():
        if key.upper() == name_upper:
            return gen
    return None


def bootloader_for_version(major: int, minor: int) -> Optional[BootloaderGeneration]:
    """Match a bootloader header version to a known generation."""
    for gen in _BOOTLOADERS.values():
        if gen.version == (major, minor):
            return gen
    return None


def bootloader_for_image_size(size: int) -> Optional[BootloaderGeneration]:
    """Find the generation whose image span has exactly `size` bytes."""
    for gen in _BOOTLOADERS.values():
        if gen.image_size == size:
            return gen
    return None


def list_releases(target: Optional[TargetType] = None) -> List[FirmwareRelease]:
    """List known releases, optionally filtered by target family."""
    releases = sorted(_RELEASES.values(), key=lambda r: r.name)
    if target is None:
        return releases
    return [r for r in releases if r.target == target]


def get_release(name: str) -> Optional[FirmwareRelease]:
    """Get a release by name (case-insensitive)."""
    return _RELEASES.get(name.upper())


def downgrade_plan() -> Tuple[BootloaderGeneration, BootloaderGeneration]:
    """Return (source, target) generations for the downgrade patch."""
    return _BOOTLOADERS["BOT03.02"], _BOOTLOADERS["BOT03.01"]
