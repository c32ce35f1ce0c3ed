"""Helpers for payloads made of a fixed part followed by variable-length fields."""

from __future__ import annotations

from .errors import InvalidPayload, SerializeError, too_small

BytesLike = bytes | bytearray | memoryview


def split(raw: BytesLike, full_data: BytesLike) -> tuple[bytes, bytes]:
    """Split ``raw`` into its fixed part (whose first byte is its length) and the rest."""
    raw = bytes(raw)
    if not raw:
        raise too_small(full_data)
    fixed_len = raw[0]
    if fixed_len < 2 or fixed_len > len(raw):
        raise InvalidPayload(full_data)
    return raw[:fixed_len], raw[fixed_len:]


def peel(varlen: BytesLike, length: int, full_data: BytesLike) -> tuple[bytes, bytes]:
    """Take ``length`` bytes off the front of ``varlen``."""
    varlen = bytes(varlen)
    if length > len(varlen):
        raise InvalidPayload(full_data)
    return varlen[:length], varlen[length:]


def peel_string(varlen: BytesLike, length: int, full_data: BytesLike) -> tuple[str, bytes]:
    """Take a string of ``length`` bytes off the front of ``varlen``, decoded leniently."""
    field, rest = peel(varlen, length, full_data)
    return field.decode("utf-8", errors="replace"), rest


def checked_u8_size(size: int) -> int:
    """Return ``size`` if it fits in one byte."""
    if not 0 <= size <= 0xFF:
        raise SerializeError(f"size {size} does not fit in 8 bits")
    return size


def checked_u16_size(size: int) -> int:
    """Return ``size`` if it fits in two bytes."""
    if not 0 <= size <= 0xFFFF:
        raise SerializeError(f"size {size} does not fit in 16 bits")
    return size


def append_string(varlen: bytearray, value: str) -> int:
    """Append ``value`` encoded as UTF-8 to ``varlen`` and return its encoded length."""
    encoded = value.encode("utf-8")
    varlen.extend(encoded)
    return checked_u8_size(len(encoded))


def extend(
    fixed: BytesLike,
    varlen: BytesLike,
    extra_fixed: BytesLike,
    extra_varlen: BytesLike,
) -> tuple[bytes, bytes]:
    """Append extra fixed and variable bytes, updating the fixed-part length byte."""
    if extra_varlen and not extra_fixed:
        raise SerializeError("variable extension without fixed extension")
    fixed = bytearray(fixed)
    if not fixed or fixed[0] != len(fixed):
        raise SerializeError("fixed part length byte is inconsistent")
    fixed[0] = checked_u8_size(len(fixed) + len(extra_fixed))
    fixed.extend(extra_fixed)
    return bytes(fixed), bytes(varlen) + bytes(extra_varlen)