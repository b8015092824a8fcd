"""
Intel HEX decoding.

Two stages:
1. parse_records() tokenizes ``:LLAAAATT<data>CC`` lines into HexRecord
   tuples, validating length, checksum and record type. Errors use the
   intelhex exception hierarchy so callers can catch ``HexRecordError``.
2. decode_records() replays the records into a flat flash buffer, tracking
   the segment/linear base address.
"""

import binascii
import logging
from typing import Iterable, List, NamedTuple, Optional

from intelhex import (
    EOFRecordError,
    ExtendedLinearAddressRecordError,
    ExtendedSegmentAddressRecordError,
    HexRecordError,
    RecordChecksumError,
    RecordLengthError,
    RecordTypeError,
)

from teensy_flasher.image import AddressTooHigh, FileHint, FirmwareImage, blank

logger = logging.getLogger(__name__)

# Record types
DATA = 0x00
EOF = 0x01
EXT_SEGMENT = 0x02
START_SEGMENT = 0x03
EXT_LINEAR = 0x04
START_LINEAR = 0x05

_RECORD_TYPES = (DATA, EOF, EXT_SEGMENT, START_SEGMENT, EXT_LINEAR, START_LINEAR)


class HexRecord(NamedTuple):
    """A single checksum-validated Intel HEX record."""
    record_type: int
    offset: int
    data: bytes

    @property
    def value(self) -> int:
        """Big-endian integer carried by address records."""
        return int.from_bytes(self.data, "big")


def parse_record(line: str, lineno: int = 0) -> HexRecord:
    """
    Tokenize one Intel HEX line.

    Args:
        line: Text of the record, including the leading ':'
        lineno: Line number used in error messages

    Returns:
        HexRecord

    Raises:
        HexRecordError: If the line is not a well-formed record
    """
    if not line.startswith(":"):
        raise HexRecordError(line=lineno)
    try:
        raw = binascii.unhexlify(line[1:])
    except (binascii.Error, ValueError):
        raise HexRecordError(line=lineno)

    # length, offset (2), type, checksum
    if len(raw) < 5:
        raise RecordLengthError(line=lineno)
    length = raw[0]
    if len(raw) != 5 + length:
        raise RecordLengthError(line=lineno)
    if sum(raw) & 0xFF:
        raise RecordChecksumError(line=lineno)

    offset = (raw[1] << 8) | raw[2]
    record_type = raw[3]
    data = bytes(raw[4:-1])

    if record_type not in _RECORD_TYPES:
        raise RecordTypeError(line=lineno)
    if record_type == EOF and length != 0:
        raise EOFRecordError()
    if record_type == EXT_SEGMENT and (length != 2 or offset != 0):
        raise ExtendedSegmentAddressRecordError(line=lineno)
    if record_type == EXT_LINEAR and (length != 2 or offset != 0):
        raise ExtendedLinearAddressRecordError(line=lineno)

    return HexRecord(record_type, offset, data)


def parse_records(text: str) -> List[HexRecord]:
    """
    Tokenize Intel HEX text into records.

    Blank lines are skipped. Tokenizing stops at the End-Of-File record,
    which is the last record returned; anything after it (Ctrl-Z or NUL
    padding, trailing text) is never read.

    Raises:
        HexRecordError: On the first malformed line before End-Of-File
    """
    records = []
    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line:
            continue
        record = parse_record(line, lineno)
        records.append(record)
        if record.record_type == EOF:
            break
    return records


def decode_records(records: Iterable[HexRecord], code_size: int) -> FirmwareImage:
    """
    Replay Intel HEX records into a flat flash image.

    A data record whose end address (base + offset + length) reaches
    ``code_size`` aborts the whole decode.

    Args:
        records: Records in file order
        code_size: Flash capacity of the target

    Returns:
        FirmwareImage of exactly code_size bytes

    Raises:
        AddressTooHigh: If a data record does not fit below code_size
    """
    buf = blank(code_size)
    base_address = 0
    written = 0

    for record in records:
        if record.record_type == DATA:
            addr = base_address + record.offset
            end = addr + len(record.data)
            if end >= code_size:
                raise AddressTooHigh(end, code_size)
            buf[addr:end] = record.data
            written += len(record.data)
        elif record.record_type == EXT_SEGMENT:
            base_address = record.value << 4
        elif record.record_type == EXT_LINEAR:
            base_address = record.value << 16
        elif record.record_type == EOF:
            break
        # start segment/linear address records only name an entry point

    return FirmwareImage(data=bytes(buf), written_len=written, format=FileHint.IHEX)


def decode_ihex(data: bytes, code_size: int) -> Optional[FirmwareImage]:
    """
    Decode raw file bytes as Intel HEX.

    Returns:
        FirmwareImage, or None if the bytes are not Intel HEX text.

    Raises:
        AddressTooHigh: If the file is Intel HEX but does not fit in flash
    """
    text = data.decode("utf-8", errors="replace")
    try:
        records = parse_records(text)
    except HexRecordError as e:
        logger.debug(f"Not an Intel HEX file: {e}")
        return None

    if not records:
        logger.debug("Not an Intel HEX file: no records")
        return None

    return decode_records(records, code_size)
