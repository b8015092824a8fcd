"""
Core module for teensy-flasher.

This module provides the single source of truth for:
- Run configuration (options.py)
- Target and format parsing (parsing.py)
- Result objects (results.py)
- Load/flash/boot workflows (actions.py)
- Standardized messages (messages.py)

The CLI calls into this module rather than driving the loader and
protocol layers itself.
"""

from .options import FlashOptions
from .parsing import UnknownMcu, parse_mcu, parse_format_hint, parse_timeout
from .results import OperationResult
from .messages import (
    MessageLevel,
    WarningCode,
    WarningItem,
    code_for_exception,
    result_to_warnings,
)
from .actions import inspect_firmware, flash_firmware, boot_device

__all__ = [
    # Options
    "FlashOptions",
    # Parsing
    "UnknownMcu",
    "parse_mcu",
    "parse_format_hint",
    "parse_timeout",
    # Results
    "OperationResult",
    # Messages
    "MessageLevel",
    "WarningCode",
    "WarningItem",
    "code_for_exception",
    "result_to_warnings",
    # Actions
    "inspect_firmware",
    "flash_firmware",
    "boot_device",
]
