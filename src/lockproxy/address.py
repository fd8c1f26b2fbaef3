"""Helpers for the 20-byte addresses and asset hashes used throughout."""

from __future__ import annotations

from typing import Union

ADDRESS_SIZE = 20
ZERO_ADDRESS = b"\x00" * ADDRESS_SIZE


def is_hash160(value: bytes) -> bool:
    return isinstance(value, (bytes, bytearray)) and len(value) == ADDRESS_SIZE


def is_legal_address(value: bytes) -> bool:
    """A 20-byte value that is not the all-zero sentinel."""
    return is_hash160(value) and bytes(value) != ZERO_ADDRESS


def parse_hex(text: str) -> bytes:
    """Parse a hex string with an optional ``0x`` prefix."""
    text = text.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise ValueError(f"Not a hex string: {text!r}")


def parse_hash160(value: Union[str, bytes]) -> bytes:
    """Accept raw bytes or hex text and insist on exactly 20 bytes."""
    raw = parse_hex(value) if isinstance(value, str) else bytes(value)
    if len(raw) != ADDRESS_SIZE:
        raise ValueError(
            f"Expected a {ADDRESS_SIZE}-byte address, got {len(raw)} bytes"
        )
    return raw


def to_hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()
