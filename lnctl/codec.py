"""Decoding helpers for fixed-length binary identifiers.

Public keys, payment hashes and transaction ids travel as hex strings on the
command line and as base64 byte fields in the REST gateway's JSON. Both forms
are validated here before anything is sent to the node so that a malformed
value produces a precise message instead of an opaque daemon error.
"""

from __future__ import annotations

import base64
import binascii
import re

PUBKEY_LENGTH = 33
HASH_LENGTH = 32

_HEX_CHARS = re.compile(r"[0-9a-fA-F]*")


class CodecError(ValueError):
    """Base class for identifier decoding failures."""


class InvalidEncodingError(CodecError):
    """Raised when a value is not valid hex (or base64 for RPC fields)."""


class InvalidLengthError(CodecError):
    """Raised when a decoded identifier has the wrong number of bytes."""

    def __init__(self, expected: int, actual: int, *, label: str = "value", unit: str = "chars") -> None:
        if unit == "bytes":
            detail = f"{label} must be {expected} bytes, got {actual} bytes"
        else:
            detail = f"{label} must be {expected} bytes ({expected * 2} hex chars), got {actual} chars"
        super().__init__(detail)
        self.expected = expected
        self.actual = actual
        self.unit = unit


def decode_fixed_length(hex_string: str, expected_length: int, *, label: str = "value") -> bytes:
    """Decode ``hex_string`` and require exactly ``expected_length`` bytes.

    The character set is checked first, then the length, so an odd-length
    string of hex digits is reported as a length problem.
    """

    if not isinstance(hex_string, str) or not _HEX_CHARS.fullmatch(hex_string):
        raise InvalidEncodingError(f"{label} is not a valid hex string: {hex_string!r}")
    if len(hex_string) != expected_length * 2:
        raise InvalidLengthError(expected_length, len(hex_string), label=label)
    return bytes.fromhex(hex_string)


def decode_rpc_bytes(value: str, expected_length: int, *, label: str = "value") -> bytes:
    """Decode a base64 ``bytes`` field from a REST gateway reply."""

    if not isinstance(value, str):
        raise InvalidEncodingError(f"{label} is not a base64 string: {value!r}")
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidEncodingError(f"{label} is not valid base64: {value!r}") from exc
    if len(raw) != expected_length:
        raise InvalidLengthError(expected_length, len(raw), label=label, unit="bytes")
    return raw


def encode_rpc_bytes(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def txid_to_str(raw: bytes) -> str:
    """Return the display form of a hash (byte-reversed hex)."""

    if len(raw) != HASH_LENGTH:
        raise InvalidLengthError(HASH_LENGTH, len(raw), label="txid", unit="bytes")
    return raw[::-1].hex()


def txid_from_str(text: str) -> bytes:
    """Parse a display-form txid back into internal byte order."""

    return decode_fixed_length(text, HASH_LENGTH, label="txid")[::-1]
