"""
Bootloader USB Transport Layer

Defines the narrow capability every platform backend provides:
- connect to a device by USB vendor/product ID
- perform one timed write of a complete bootloader frame
- release the device handle on close

Backends are independent classes that satisfy the Transport protocol:
- libusb:    control transfers through pyusb (Linux, macOS)
- hid:       HID output reports through hidapi (Windows)
- simulated: in-memory recording device for dry runs and tests
"""

import importlib
import logging
import sys
from typing import Callable, Dict, List, Protocol, Tuple

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Base exception for transport layer errors"""
    pass


class ConnectError(TransportError):
    """Device could not be opened (permissions, OS or driver failure)"""
    pass


class DeviceNotFound(ConnectError):
    """No bootloader device with the requested IDs is attached"""

    def __init__(self, vendor_id: int, product_id: int):
        self.vendor_id = vendor_id
        self.product_id = product_id
        super().__init__(f"No device {vendor_id:04X}:{product_id:04X} found")


class WriteError(TransportError):
    """Write to the device failed"""
    pass


class WriteTimeout(WriteError):
    """Device did not accept the write before the deadline"""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Write timed out after {timeout:.3f}s")


class Transport(Protocol):
    """Capability consumed by DeviceSession."""

    def write(self, data: bytes, timeout: float) -> None:
        """Write one frame, raising WriteError/WriteTimeout on failure."""
        ...

    def close(self) -> None:
        """Release the device handle."""
        ...


TransportFactory = Callable[[int, int], Transport]

# name -> (module, class)
BACKENDS: Dict[str, Tuple[str, str]] = {
    "libusb": ("teensy_flasher.protocol.libusb_transport", "LibUsbTransport"),
    "hid": ("teensy_flasher.protocol.hid_transport", "HidTransport"),
    "simulated": ("teensy_flasher.protocol.simulated", "SimulatedTransport"),
}


def default_backend() -> str:
    """Return the backend name for the running platform."""
    return "hid" if sys.platform.startswith("win") else "libusb"


def list_backends() -> List[str]:
    """Return backend names accepted by get_transport()."""
    return ["auto"] + sorted(BACKENDS)


def get_transport(name: str = "auto"):
    """
    Look up a transport backend class by name.

    Backends are imported lazily so a missing native USB library only
    affects the backend that needs it.

    Args:
        name: "auto", "libusb", "hid" or "simulated"

    Returns:
        Backend class; its ``connect(vendor_id, product_id)`` classmethod
        is a TransportFactory.

    Raises:
        ValueError: If the name is unknown
    """
    if name == "auto":
        name = default_backend()
    if name not in BACKENDS:
        raise ValueError(
            f"Unknown transport '{name}'. Valid transports: {', '.join(list_backends())}"
        )
    module_name, class_name = BACKENDS[name]
    logger.debug(f"Using {name} transport")
    return getattr(importlib.import_module(module_name), class_name)
