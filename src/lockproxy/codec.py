"""
Lock Proxy - Wire Codec

Binary encoding of the cross-chain transfer payload exchanged between
paired proxies.  The layout is a wire contract shared with every other
proxy implementation, so it is reproduced bit for bit:

  * **varint** - ``< 0xFD`` is a single byte; otherwise a marker byte
    (``0xFD`` / ``0xFE`` / ``0xFF``) followed by 2 / 4 / 8 little-endian
    bytes.  The natural little-endian representation is right-padded
    with zero bytes up to the declared width.
  * **varbytes** - varint length prefix followed by the raw bytes.
  * **uint256** - exactly 32 little-endian bytes, right-padded.

A ``TransferInstruction`` is ``varbytes(asset_hash) || varbytes(recipient)
|| uint256(amount)``.

Usage::

    payload = encode_transfer_instruction(
        TransferInstruction(asset_hash, recipient, 100)
    )
    instruction = decode_transfer_instruction(payload)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import CodecError

logger = logging.getLogger("lockproxy.codec")

UINT256_SIZE = 32
UINT256_MAX = (1 << 256) - 1
VARINT_MAX = 0xFFFFFFFFFFFFFFFF

_MARKER_U16 = 0xFD
_MARKER_U32 = 0xFE
_MARKER_U64 = 0xFF

_MARKER_WIDTHS = {
    _MARKER_U16: 2,
    _MARKER_U32: 4,
    _MARKER_U64: 8,
}


def _natural_bytes(value: int) -> bytes:
    """Minimal little-endian representation (zero is a single 0x00)."""
    return value.to_bytes(max(1, (value.bit_length() + 7) // 8), "little")


def _pad_right(data: bytes, width: int) -> bytes:
    if len(data) > width:
        raise CodecError(f"{len(data)} bytes do not fit in a {width}-byte field")
    return data + b"\x00" * (width - len(data))


# ---------------------------------------------------------------------------
# Sink / Source
# ---------------------------------------------------------------------------

class Sink:
    """Append-only byte buffer for building payloads."""

    def __init__(self):
        self._buf = bytearray()

    def write_bytes(self, data: bytes) -> "Sink":
        self._buf += data
        return self

    def write_byte(self, value: int) -> "Sink":
        self._buf.append(value)
        return self

    def write_varint(self, value: int) -> "Sink":
        if value < 0:
            raise CodecError(f"varint cannot encode negative value {value}")
        if value > VARINT_MAX:
            raise CodecError(f"varint value {value} exceeds 8-byte ceiling")
        if value < _MARKER_U16:
            return self.write_byte(value)
        if value <= 0xFFFF:
            marker, width = _MARKER_U16, 2
        elif value <= 0xFFFFFFFF:
            marker, width = _MARKER_U32, 4
        else:
            marker, width = _MARKER_U64, 8
        self.write_byte(marker)
        return self.write_bytes(_pad_right(_natural_bytes(value), width))

    def write_var_bytes(self, data: bytes) -> "Sink":
        self.write_varint(len(data))
        return self.write_bytes(bytes(data))

    def write_uint256(self, value: int) -> "Sink":
        if value < 0:
            raise CodecError(f"uint256 cannot encode negative value {value}")
        if value > UINT256_MAX:
            raise CodecError(f"uint256 value does not fit in {UINT256_SIZE} bytes")
        return self.write_bytes(_pad_right(_natural_bytes(value), UINT256_SIZE))

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    def __len__(self) -> int:
        return len(self._buf)


class Source:
    """Bounds-checked cursor over an immutable byte buffer.

    Every read either returns exactly the requested bytes or raises
    ``CodecError``; the offset only advances on success.
    """

    def __init__(self, data: bytes, offset: int = 0):
        self._data = bytes(data)
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def read_bytes(self, count: int) -> bytes:
        if count < 0:
            raise CodecError(f"negative read length {count}")
        if count > self.remaining:
            raise CodecError(
                f"need {count} bytes at offset {self._offset}, "
                f"only {self.remaining} remain"
            )
        start = self._offset
        self._offset += count
        return self._data[start:self._offset]

    def read_byte(self) -> int:
        return self.read_bytes(1)[0]

    def read_varint(self) -> int:
        start = self._offset
        marker = self.read_byte()
        width = _MARKER_WIDTHS.get(marker)
        if width is None:
            return marker
        try:
            return int.from_bytes(self.read_bytes(width), "little")
        except CodecError:
            self._offset = start
            raise

    def read_var_bytes(self) -> bytes:
        start = self._offset
        length = self.read_varint()
        try:
            return self.read_bytes(length)
        except CodecError:
            self._offset = start
            raise

    def read_uint256(self) -> int:
        return int.from_bytes(self.read_bytes(UINT256_SIZE), "little")


# ---------------------------------------------------------------------------
# Primitive helpers
# ---------------------------------------------------------------------------

def encode_varint(value: int) -> bytes:
    return Sink().write_varint(value).getvalue()


def decode_varint(data: bytes) -> int:
    return Source(data).read_varint()


def encode_var_bytes(data: bytes) -> bytes:
    return Sink().write_var_bytes(data).getvalue()


def decode_var_bytes(data: bytes) -> bytes:
    return Source(data).read_var_bytes()


def encode_uint256(value: int) -> bytes:
    return Sink().write_uint256(value).getvalue()


def decode_uint256(data: bytes) -> int:
    return Source(data).read_uint256()


# ---------------------------------------------------------------------------
# Transfer instruction
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransferInstruction:
    """The payload one proxy sends to its peer: release *amount* of
    *asset_hash* to *recipient* on the destination chain."""

    asset_hash: bytes
    recipient: bytes
    amount: int

    def encode(self) -> bytes:
        return (
            Sink()
            .write_var_bytes(self.asset_hash)
            .write_var_bytes(self.recipient)
            .write_uint256(self.amount)
            .getvalue()
        )

    @classmethod
    def decode(cls, data: bytes) -> "TransferInstruction":
        source = Source(data)
        asset_hash = source.read_var_bytes()
        recipient = source.read_var_bytes()
        amount = source.read_uint256()
        if source.remaining:
            logger.debug("Ignoring %d trailing payload bytes", source.remaining)
        return cls(asset_hash=asset_hash, recipient=recipient, amount=amount)

    def to_dict(self) -> dict:
        return {
            "asset_hash": self.asset_hash.hex(),
            "recipient": self.recipient.hex(),
            "amount": self.amount,
        }


def encode_transfer_instruction(instruction: TransferInstruction) -> bytes:
    return instruction.encode()


def decode_transfer_instruction(data: bytes) -> TransferInstruction:
    return TransferInstruction.decode(data)
