"""
teensy-flasher - command-line firmware loader for Teensy boards

Decodes Intel HEX or ELF32 firmware into a flat flash image and programs it
through the HalfKay USB bootloader.
"""

__version__ = "0.1.0"

from teensy_flasher.image import FileHint, FirmwareImage
from teensy_flasher.loader import load_file
from teensy_flasher.models import McuDescriptor, resolve, list_names
from teensy_flasher.protocol import DeviceSession, wait_for_device

__all__ = [
    "FileHint",
    "FirmwareImage",
    "load_file",
    "McuDescriptor",
    "resolve",
    "list_names",
    "DeviceSession",
    "wait_for_device",
    "__version__",
]
