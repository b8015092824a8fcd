"""
Centralized parsing helpers for user-supplied values.

The CLI wraps these and converts ValueError to typer.BadParameter.
"""

from typing import Optional

from teensy_flasher.image import FileHint
from teensy_flasher.models import McuDescriptor, list_names, resolve

FORMAT_HINT_ALIASES = {
    "auto": FileHint.ANY,
    "any": FileHint.ANY,
    "ihex": FileHint.IHEX,
    "hex": FileHint.IHEX,
    "elf": FileHint.ELF,
}


class UnknownMcu(ValueError):
    """The requested target is not in the MCU registry."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Unknown MCU '{name}'. Valid values: {', '.join(list_names())}"
        )


def parse_mcu(name: str) -> McuDescriptor:
    """
    Resolve a target name or alias.

    Raises:
        UnknownMcu: If the name is not in the registry (exact match)
    """
    mcu = resolve(name)
    if mcu is None:
        raise UnknownMcu(name)
    return mcu


def parse_format_hint(value: str) -> FileHint:
    """
    Parse a firmware format selection.

    Accepts (case-insensitive):
        - "auto" or "any"
        - "ihex" or "hex"
        - "elf"

    Raises:
        ValueError: If the format is not recognized
    """
    key = value.strip().lower()
    if key not in FORMAT_HINT_ALIASES:
        raise ValueError(
            f"Invalid format '{value}'. Use one of: {', '.join(FORMAT_HINT_ALIASES)}"
        )
    return FORMAT_HINT_ALIASES[key]


def parse_timeout(value: Optional[float]) -> Optional[float]:
    """
    Validate a wait timeout in seconds.

    None or 0 means wait forever.

    Raises:
        ValueError: If the timeout is negative
    """
    if value is None or value == 0:
        return None
    if value < 0:
        raise ValueError(f"Invalid timeout {value}: must be >= 0 seconds")
    return float(value)
