"""
Flat firmware images.

A FirmwareImage is the contiguous flash content handed to the bootloader:
exactly ``code_size`` bytes, 0xFF wherever the source file supplied nothing.
"""

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

ERASED_BYTE = 0xFF


class FileHint(Enum):
    """Which container formats a file may be decoded as."""
    ANY = "any"
    IHEX = "ihex"
    ELF = "elf"

    def allows(self, fmt: "FileHint") -> bool:
        """Return True if a decoder for ``fmt`` may be tried."""
        return self is FileHint.ANY or self is fmt


class FirmwareLoadError(Exception):
    """Base exception for firmware loading."""


class FirmwareFileError(FirmwareLoadError):
    """The firmware file could not be opened or read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {path}: {reason}")


class NotValidFile(FirmwareLoadError):
    """No decoder accepted the file."""

    def __init__(self, attempted: Sequence[FileHint], path: Optional[str] = None):
        self.attempted = list(attempted)
        self.path = path
        tried = ", ".join(fmt.name for fmt in self.attempted) or "none"
        what = path or "input"
        super().__init__(f"{what} is not a valid firmware file (tried: {tried})")


class AddressTooHigh(FirmwareLoadError):
    """Firmware data extends past the flash capacity of the target."""

    def __init__(self, end_address: int, code_size: int):
        self.end_address = end_address
        self.code_size = code_size
        super().__init__(
            f"Firmware end address 0x{end_address:X} exceeds flash size "
            f"0x{code_size:X}"
        )


def blank(code_size: int) -> bytearray:
    """Return an erased flash buffer."""
    return bytearray([ERASED_BYTE]) * code_size


@dataclass(frozen=True)
class FirmwareImage:
    """
    Decoded firmware ready for programming.

    Attributes:
        data: Flash content, exactly code_size bytes
        written_len: Bytes actually supplied by the source file (reporting only)
        format: Container format the image was decoded from
    """
    data: bytes
    written_len: int
    format: FileHint = FileHint.ANY

    def __len__(self) -> int:
        return len(self.data)

    @property
    def sha256(self) -> str:
        """Hex digest of the flash content."""
        return hashlib.sha256(self.data).hexdigest()
