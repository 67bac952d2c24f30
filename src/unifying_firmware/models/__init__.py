"""
Registry of bootloader generations and firmware releases.

Provides a unified layer for layout constants the engine and CLI share.
"""

from .registry import (
    BootloaderGeneration,
    DowngradeSupport,
    FirmwareRelease,
    list_bootloaders,
    get_bootloader,
    bootloader_for_version,
    bootloader_for_image_size,
    list_releases,
    get_release,
    downgrade_plan,
)

__all__ = [
    "BootloaderGeneration",
    "DowngradeSupport",
    "FirmwareRelease",
    "list_bootloaders",
    "get_bootloader",
    "bootloader_for_version",
    "bootloader_for_image_size",
    "list_releases",
    "get_release",
    "downgrade_plan",
]
