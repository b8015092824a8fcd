"""Firmware container decoders (Intel HEX, ELF32)."""

from .ihex import (
    HexRecord,
    parse_record,
    parse_records,
    decode_records,
    decode_ihex,
)
from .elf import Elf32File, decode_elf

__all__ = [
    # Intel HEX
    "HexRecord",
    "parse_record",
    "parse_records",
    "decode_records",
    "decode_ihex",
    # ELF
    "Elf32File",
    "decode_elf",
]
