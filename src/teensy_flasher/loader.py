"""
Firmware file loading with format auto-detection.

Decoders are tried in order; each returns a FirmwareImage or None
("not my format"). ELF goes first because its header is verifiable, so a
binary file is never misread as text.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from teensy_flasher.formats import decode_elf, decode_ihex
from teensy_flasher.image import (
    FileHint,
    FirmwareFileError,
    FirmwareImage,
    NotValidFile,
)
from teensy_flasher.models import McuDescriptor

logger = logging.getLogger(__name__)

Decoder = Callable[[bytes, int], Optional[FirmwareImage]]

DECODERS: List[Tuple[FileHint, Decoder]] = [
    (FileHint.ELF, decode_elf),
    (FileHint.IHEX, decode_ihex),
]


def decode_firmware(
    data: bytes,
    hint: FileHint,
    mcu: McuDescriptor,
    path: Optional[str] = None,
) -> FirmwareImage:
    """
    Decode firmware bytes with the first decoder that accepts them.

    Args:
        data: Raw file contents
        hint: Formats the caller allows
        mcu: Target descriptor (provides code_size)
        path: File name for error messages

    Returns:
        FirmwareImage

    Raises:
        NotValidFile: If every allowed decoder rejected the data
        AddressTooHigh: If the file decodes but does not fit in flash
    """
    attempted = []
    for fmt, decoder in DECODERS:
        if not hint.allows(fmt):
            continue
        attempted.append(fmt)
        image = decoder(data, mcu.code_size)
        if image is not None:
            logger.info(
                f"Loaded {fmt.name} firmware: {image.written_len:,} bytes "
                f"({image.written_len / mcu.code_size:.1%} of {mcu.name} flash)"
            )
            return image
    raise NotValidFile(attempted, path)


def load_file(
    path: Union[str, Path],
    hint: FileHint,
    mcu: McuDescriptor,
) -> FirmwareImage:
    """
    Read and decode a firmware file.

    Raises:
        FirmwareFileError: If the file cannot be opened or read
        NotValidFile: If no allowed decoder accepts the contents
        AddressTooHigh: If the firmware does not fit in flash
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise FirmwareFileError(str(path), e.strerror or str(e)) from e

    logger.debug(f"Read {len(data):,} bytes from {path}")
    return decode_firmware(data, hint, mcu, path=str(path))
