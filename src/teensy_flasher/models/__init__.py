"""
MCU registry for Teensy boards.

Provides flash capacity and bootloader block size for every supported target.
"""

from .registry import (
    McuDescriptor,
    resolve,
    list_names,
    list_mcus,
    aliases_for,
)

__all__ = [
    "McuDescriptor",
    "resolve",
    "list_names",
    "list_mcus",
    "aliases_for",
]
