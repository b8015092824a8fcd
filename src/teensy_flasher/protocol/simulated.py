"""
Simulated bootloader device.

Records every frame instead of touching USB. Backs the CLI ``--simulate``
mode and the test suite; failure injection covers the retry and abort paths.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .transport import ConnectError, DeviceNotFound, WriteError, WriteTimeout

logger = logging.getLogger(__name__)


@dataclass
class SimulatedDevice:
    """
    In-memory stand-in for an attached bootloader.

    Attributes:
        absent_polls: Number of connect attempts that report DeviceNotFound
        connect_error: If set, every connect fails with ConnectError(message)
        fail_on_write: Index of the write attempt that raises WriteError
        timeout_on_write: Index of the write attempt that raises WriteTimeout
        writes: Accepted (frame, timeout) pairs in order
        attempts: Number of write attempts, including failed ones
        connects: Number of connect attempts
        closes: Number of times a transport handle was released
    """
    absent_polls: int = 0
    connect_error: Optional[str] = None
    fail_on_write: Optional[int] = None
    timeout_on_write: Optional[int] = None
    writes: List[Tuple[bytes, float]] = field(default_factory=list)
    attempts: int = 0
    connects: int = 0
    closes: int = 0

    def connect(self, vendor_id: int, product_id: int) -> "SimulatedTransport":
        """TransportFactory bound to this device."""
        self.connects += 1
        if self.connect_error:
            raise ConnectError(self.connect_error)
        if self.absent_polls > 0:
            self.absent_polls -= 1
            raise DeviceNotFound(vendor_id, product_id)
        logger.debug(f"Simulated device {vendor_id:04X}:{product_id:04X} connected")
        return SimulatedTransport(self)

    @property
    def frames(self) -> List[bytes]:
        """Accepted frames without their timeouts."""
        return [frame for frame, _ in self.writes]


class SimulatedTransport:
    """Transport writing into a SimulatedDevice."""

    def __init__(self, device: Optional[SimulatedDevice] = None):
        self.device = device or SimulatedDevice()
        self._closed = False

    @classmethod
    def connect(cls, vendor_id: int, product_id: int) -> "SimulatedTransport":
        """Connect to a fresh, always-present simulated device."""
        return SimulatedDevice().connect(vendor_id, product_id)

    def write(self, data: bytes, timeout: float) -> None:
        if self._closed:
            raise WriteError("Simulated device is closed")
        index = self.device.attempts
        self.device.attempts += 1
        if index == self.device.timeout_on_write:
            raise WriteTimeout(timeout)
        if index == self.device.fail_on_write:
            raise WriteError(f"Simulated write failure on write {index}")
        self.device.writes.append((bytes(data), timeout))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.device.closes += 1

    def __enter__(self) -> "SimulatedTransport":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @staticmethod
    def list_devices(vendor_id: int, product_id: int) -> List[Dict[str, Optional[str]]]:
        return [{
            "path": "simulated",
            "vendor_id": f"{vendor_id:04X}",
            "product_id": f"{product_id:04X}",
        }]
