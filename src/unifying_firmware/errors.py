"""
Exception hierarchy for the firmware image engine.

Every engine failure is a FirmwareToolError subclass so callers (the
operations layer, the CLI) can catch one type and still inspect the
specific condition.
"""

from typing import List, Optional


class FirmwareToolError(Exception):
    """Base exception for firmware image operations."""


class MalformedRecordError(FirmwareToolError):
    """Raised for an undecodable HEX line or an unusable record."""


class SignatureBoundsError(FirmwareToolError):
    """Raised when signature data would be written past the 256-byte buffer."""


class SignatureSizeError(FirmwareToolError):
    """Raised when an attached signature is not exactly 256 bytes."""


class ClassificationError(FirmwareToolError):
    """
    Raised when a buffer is not a valid image of one firmware family.

    Attributes:
        family: TargetType the detector tried to match
    """

    def __init__(self, family, reason: str):
        self.family = family
        self.reason = reason
        super().__init__(f"{family.label}: {reason}")


class UnsupportedFormatError(FirmwareToolError):
    """
    Raised when neither the TI nor the Nordic detector accepts a buffer.

    Attributes:
        failures: Per-family ClassificationError instances, in the order tried
    """

    def __init__(self, message: str, failures: Optional[List[ClassificationError]] = None):
        self.failures = list(failures or [])
        super().__init__(message)


class PatchPreconditionError(FirmwareToolError):
    """Raised when an image does not qualify for the downgrade patch."""
