"""
Device session for the Teensy bootloader.

A DeviceSession owns one connected Transport together with the flash
layout of the target, and offers the two bootloader operations:
program() and boot().

Example:
    mcu = resolve("TEENSYLC")
    with wait_for_device(mcu, LibUsbTransport.connect) as session:
        session.program(image.data, progress=print)
        session.boot()
"""

import logging
import time
from typing import Callable, Optional

from teensy_flasher.models import McuDescriptor

from .halfkay import (
    BOOT_TIMEOUT,
    POLL_INTERVAL,
    TEENSY_PRODUCT_ID,
    TEENSY_VENDOR_ID,
    BinaryRemainder,
    BlockWriteError,
    block_timeout,
    build_block_frame,
    build_boot_frame,
    encode_header,
    header_size_for,
    iter_blocks,
)
from .transport import DeviceNotFound, Transport, TransportFactory, WriteError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class DeviceSession:
    """
    Connected bootloader plus target flash layout.

    Attributes:
        transport: Exclusively owned transport handle
        code_size: Flash capacity in bytes
        block_size: Bootloader block size
        header_size: Address header size (derived from block_size)
    """

    def __init__(self, transport: Transport, mcu: McuDescriptor):
        self.transport = transport
        self.mcu = mcu
        self.code_size = mcu.code_size
        self.block_size = mcu.block_size
        self.header_size = header_size_for(mcu.block_size)
        self._closed = False

    @classmethod
    def connect(
        cls,
        mcu: McuDescriptor,
        transport_factory: TransportFactory,
    ) -> "DeviceSession":
        """
        Open the bootloader device once.

        Raises:
            DeviceNotFound: If no bootloader is attached (retryable)
            ConnectError: On any other connect failure (not retryable)
        """
        transport = transport_factory(TEENSY_VENDOR_ID, TEENSY_PRODUCT_ID)
        logger.info(f"Found bootloader for {mcu.name}")
        return cls(transport, mcu)

    def boot(self) -> None:
        """
        Reboot the device into the application.

        Raises:
            WriteError: If the boot frame was not accepted
        """
        frame = build_boot_frame(self.block_size, self.header_size)
        logger.info("Booting")
        self.transport.write(frame, BOOT_TIMEOUT)

    def program(self, image: bytes, progress: Optional[ProgressCallback] = None) -> int:
        """
        Write an image to flash block by block.

        Blank blocks after the first are skipped. ``progress(addr)`` is
        called before each block is written.

        Args:
            image: Flash content; length must be a multiple of block_size
            progress: Optional callback receiving the block address

        Returns:
            Number of blocks written

        Raises:
            BinaryRemainder: If the image is not a whole number of blocks
            UnknownBlockSize: If the block size has no known framing
            BlockWriteError: If a write fails (raised from the WriteError)
        """
        if len(image) % self.block_size:
            raise BinaryRemainder(len(image), self.block_size)
        # Framing is checked once, before any progress callback or write
        encode_header(0, self.block_size, self.code_size)

        logger.info(f"Programming {len(image):,} bytes in {self.block_size}-byte blocks")
        written = 0
        for addr, block in iter_blocks(image, self.block_size):
            if progress:
                progress(addr)
            frame = build_block_frame(addr, block, self.block_size, self.code_size)
            try:
                self.transport.write(frame, block_timeout(addr))
            except WriteError as e:
                raise BlockWriteError(addr, e) from e
            logger.debug(f"Wrote block at 0x{addr:06X}")
            written += 1

        logger.info(f"Programmed {written} blocks")
        return written

    def close(self) -> None:
        """Release the transport (safe to call more than once)."""
        if self._closed:
            return
        self._closed = True
        self.transport.close()

    def __enter__(self) -> "DeviceSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def wait_for_device(
    mcu: McuDescriptor,
    transport_factory: TransportFactory,
    timeout: Optional[float] = None,
    interval: float = POLL_INTERVAL,
    on_waiting: Optional[Callable[[], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> DeviceSession:
    """
    Poll for the bootloader until it appears.

    Args:
        mcu: Target descriptor
        transport_factory: Backend connect function
        timeout: Give up after this many seconds (None waits forever)
        interval: Delay between attempts
        on_waiting: Called once, the first time the device is missing
        sleep: Sleep function (injectable for tests)
        clock: Monotonic clock (injectable for tests)

    Returns:
        Connected DeviceSession

    Raises:
        DeviceNotFound: If the deadline passes without a device
        ConnectError: Immediately, on any other connect failure
    """
    deadline = None if timeout is None else clock() + timeout
    attempts = 0
    while True:
        attempts += 1
        try:
            return DeviceSession.connect(mcu, transport_factory)
        except DeviceNotFound:
            if attempts == 1 and on_waiting:
                on_waiting()
            if deadline is not None and clock() >= deadline:
                logger.debug(f"Gave up waiting after {attempts} attempts")
                raise
            logger.debug(f"Device not found (attempt {attempts}), retrying")
            sleep(interval)
