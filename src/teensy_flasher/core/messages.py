"""
Standardized messages for teensy-flasher.

Every failure class gets a stable code and a default remediation hint so the
CLI can print the same advice for the same condition.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, TYPE_CHECKING

if TYPE_CHECKING:
    from .results import OperationResult


class MessageLevel(Enum):
    """Severity level for messages."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class WarningCode(Enum):
    """Stable codes for known conditions."""
    # Lookup / file
    E_UNKNOWN_MCU = "E_UNKNOWN_MCU"
    E_FILE_IO = "E_FILE_IO"
    E_NOT_VALID_FILE = "E_NOT_VALID_FILE"
    E_ADDRESS_TOO_HIGH = "E_ADDRESS_TOO_HIGH"

    # Connection
    W_DEVICE_NOT_FOUND = "W_DEVICE_NOT_FOUND"
    E_CONNECT = "E_CONNECT"

    # Programming
    E_WRITE_TIMEOUT = "E_WRITE_TIMEOUT"
    E_WRITE = "E_WRITE"
    E_PROGRAM = "E_PROGRAM"

    # Operation
    W_SIMULATED = "W_SIMULATED"
    W_NO_REBOOT = "W_NO_REBOOT"

    # Generic
    E_UNKNOWN = "E_UNKNOWN"


REMEDIATIONS: Dict[WarningCode, str] = {
    WarningCode.E_UNKNOWN_MCU:
        "Run 'list-mcus' to see supported targets.",
    WarningCode.E_FILE_IO:
        "Check the firmware path and file permissions.",
    WarningCode.E_NOT_VALID_FILE:
        "Pass an Intel HEX or ELF32 executable built for the selected board.",
    WarningCode.E_ADDRESS_TOO_HIGH:
        "The firmware is larger than the target flash. Check the --mcu selection.",
    WarningCode.W_DEVICE_NOT_FOUND:
        "Press the program button on the board, or pass --wait.",
    WarningCode.E_CONNECT:
        "Check USB permissions (udev rules on Linux) and that no other loader holds the device.",
    WarningCode.E_WRITE_TIMEOUT:
        "The board stopped responding. Press the program button and flash again.",
    WarningCode.E_WRITE:
        "USB write failed. The board may be partially programmed; flash again.",
    WarningCode.E_PROGRAM:
        "Internal inconsistency between the MCU table and the image. Please report it.",
    WarningCode.W_SIMULATED:
        "No device was touched. Remove --simulate to flash a board.",
    WarningCode.W_NO_REBOOT:
        "Press the reset button or power-cycle the board to start the new firmware.",
    WarningCode.E_UNKNOWN:
        "Re-run with --verbose for details.",
}


@dataclass
class WarningItem:
    """
    Structured message with stable code.

    Attributes:
        level: Severity (INFO, WARN, ERROR)
        code: Stable code for programmatic handling
        title: Short, user-facing title
        remediation: Suggested action to resolve the issue
    """
    level: MessageLevel
    code: WarningCode
    title: str
    remediation: str = ""

    def __post_init__(self):
        if not self.remediation:
            self.remediation = REMEDIATIONS.get(self.code, "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "code": self.code.value,
            "title": self.title,
            "remediation": self.remediation,
        }


def code_for_exception(exc: BaseException) -> WarningCode:
    """Map an exception raised by the loader or protocol layers to a code."""
    from teensy_flasher.image import AddressTooHigh, FirmwareFileError, NotValidFile
    from teensy_flasher.protocol import (
        BlockWriteError,
        ConnectError,
        DeviceNotFound,
        ProgramError,
        WriteError,
        WriteTimeout,
    )

    if isinstance(exc, BlockWriteError):
        exc = exc.reason

    if isinstance(exc, FirmwareFileError):
        return WarningCode.E_FILE_IO
    if isinstance(exc, NotValidFile):
        return WarningCode.E_NOT_VALID_FILE
    if isinstance(exc, AddressTooHigh):
        return WarningCode.E_ADDRESS_TOO_HIGH
    if isinstance(exc, DeviceNotFound):
        return WarningCode.W_DEVICE_NOT_FOUND
    if isinstance(exc, ConnectError):
        return WarningCode.E_CONNECT
    if isinstance(exc, WriteTimeout):
        return WarningCode.E_WRITE_TIMEOUT
    if isinstance(exc, WriteError):
        return WarningCode.E_WRITE
    if isinstance(exc, ProgramError):
        return WarningCode.E_PROGRAM
    return WarningCode.E_UNKNOWN


def result_to_warnings(result: "OperationResult") -> List[WarningItem]:
    """
    Convert an OperationResult's warnings and errors to WarningItems.

    Warnings are matched to codes by keyword; errors use the result's code.
    """
    items = []

    for msg in result.warnings:
        lowered = msg.lower()
        if "simulat" in lowered:
            code = WarningCode.W_SIMULATED
        elif "reboot" in lowered:
            code = WarningCode.W_NO_REBOOT
        else:
            code = WarningCode.E_UNKNOWN
        items.append(WarningItem(MessageLevel.WARN, code, msg))

    for err in result.errors:
        items.append(WarningItem(MessageLevel.ERROR, result.code or WarningCode.E_UNKNOWN, err))

    return items
