"""
Result objects for core operations.

Actions return an OperationResult instead of raising, so the CLI can print
one consistent summary for every outcome.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .messages import WarningCode


@dataclass
class OperationResult:
    """
    Outcome of a core operation.

    Attributes:
        ok: Whether the operation completed successfully
        operation: Name of the operation (e.g., "flash", "boot")
        mcu: Canonical name of the target MCU
        bytes_len: Firmware bytes supplied by the file
        hashes: Digests of the flashed image
        warnings: Non-blocking issues encountered
        errors: Blocking errors that caused failure
        code: Stable code of the failure, if any
        metadata: Additional operation-specific data
        logs: Captured log lines from the operation
    """
    ok: bool
    operation: str
    mcu: str = ""
    bytes_len: int = 0
    hashes: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    code: Optional[WarningCode] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    logs: List[str] = field(default_factory=list)

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def add_error(self, message: str, code: Optional[WarningCode] = None) -> None:
        """Add an error message and mark result as failed."""
        self.errors.append(message)
        self.ok = False
        if code is not None:
            self.code = code

    def to_summary(self) -> str:
        """Human-readable summary for CLI output."""
        status = "SUCCESS" if self.ok else "FAILED"
        lines = [f"[{status}] {self.operation}"]

        if self.mcu:
            lines.append(f"  MCU: {self.mcu}")
        if self.bytes_len:
            lines.append(f"  Bytes: {self.bytes_len:,}")
        for name, value in self.hashes.items():
            lines.append(f"  {name}: {value[:16]}...")

        if self.warnings:
            lines.append("  Warnings:")
            lines.extend(f"    - {warn}" for warn in self.warnings)
        if self.errors:
            lines.append("  Errors:")
            lines.extend(f"    - {err}" for err in self.errors)

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ok": self.ok,
            "operation": self.operation,
            "mcu": self.mcu,
            "bytes_len": self.bytes_len,
            "hashes": self.hashes,
            "warnings": self.warnings,
            "errors": self.errors,
            "code": self.code.value if self.code else None,
            "metadata": {
                k: v for k, v in self.metadata.items() if not isinstance(v, (bytes, bytearray))
            },
            "logs": self.logs,
        }

    @classmethod
    def success(cls, operation: str, mcu: str = "", bytes_len: int = 0, **kwargs) -> "OperationResult":
        """Create a successful result."""
        return cls(ok=True, operation=operation, mcu=mcu, bytes_len=bytes_len, **kwargs)

    @classmethod
    def failure(
        cls,
        operation: str,
        error: str,
        code: WarningCode = WarningCode.E_UNKNOWN,
        mcu: str = "",
        **kwargs,
    ) -> "OperationResult":
        """Create a failed result."""
        result = cls(ok=False, operation=operation, mcu=mcu, code=code, **kwargs)
        result.errors.append(error)
        return result
