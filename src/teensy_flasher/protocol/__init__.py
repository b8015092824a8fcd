"""Bootloader protocol layer - USB transports, HalfKay framing, device sessions."""

from .transport import (
    Transport,
    TransportFactory,
    TransportError,
    ConnectError,
    DeviceNotFound,
    WriteError,
    WriteTimeout,
    get_transport,
    list_backends,
)
from .halfkay import (
    TEENSY_VENDOR_ID,
    TEENSY_PRODUCT_ID,
    FIRST_BLOCK_TIMEOUT,
    BLOCK_TIMEOUT,
    BOOT_TIMEOUT,
    POLL_INTERVAL,
    ProgramError,
    UnknownBlockSize,
    BinaryRemainder,
    BlockWriteError,
    header_size_for,
    encode_header,
    build_block_frame,
    build_boot_frame,
    iter_blocks,
)
from .session import DeviceSession, wait_for_device
from .simulated import SimulatedDevice, SimulatedTransport

__all__ = [
    # Transport
    "Transport",
    "TransportFactory",
    "TransportError",
    "ConnectError",
    "DeviceNotFound",
    "WriteError",
    "WriteTimeout",
    "get_transport",
    "list_backends",
    # HalfKay framing
    "TEENSY_VENDOR_ID",
    "TEENSY_PRODUCT_ID",
    "FIRST_BLOCK_TIMEOUT",
    "BLOCK_TIMEOUT",
    "BOOT_TIMEOUT",
    "POLL_INTERVAL",
    "ProgramError",
    "UnknownBlockSize",
    "BinaryRemainder",
    "BlockWriteError",
    "header_size_for",
    "encode_header",
    "build_block_frame",
    "build_boot_frame",
    "iter_blocks",
    # Session
    "DeviceSession",
    "wait_for_device",
    # Simulation
    "SimulatedDevice",
    "SimulatedTransport",
]
