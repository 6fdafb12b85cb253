"""
TIP-20 memo encoding.

A memo is a bytes32 field. Short text is stored inline (UTF-8, right-padded
with zeros); anything longer is replaced by its keccak256 digest. Both paths
produce 32 opaque bytes on-chain, so a hashed memo can only be matched by
re-hashing the original text held elsewhere.
"""

from __future__ import annotations

from typing import Optional

from eth_utils import keccak

from .config import MEMO_INLINE_LIMIT


MEMO_SIZE = 32


def encode(text: str) -> bytes:
    """Encode memo text into a 32-byte field.

    Text containing NUL is hashed even when short, since zero padding would
    make "abc" and "abc\\x00" collide.
    """
    raw = text.encode("utf-8")
    if is_inline(text):
        return raw.ljust(MEMO_SIZE, b"\x00")
    return keccak(raw)


def is_inline(text: str) -> bool:
    raw = text.encode("utf-8")
    return len(raw) <= MEMO_INLINE_LIMIT and b"\x00" not in raw


def decode_inline(field: bytes) -> Optional[str]:
    """Recover text from an inline memo field, or None for hashed memos."""
    if len(field) != MEMO_SIZE or field[-1] != 0:
        return None
    content = field.rstrip(b"\x00")
    if b"\x00" in content:
        return None
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        return None


def to_hex(field: bytes) -> str:
    return "0x" + field.hex()


def from_hex(value: str) -> bytes:
    candidate = value[2:] if value.startswith(("0x", "0X")) else value
    field = bytes.fromhex(candidate)
    if len(field) != MEMO_SIZE:
        raise ValueError(f"Memo must be {MEMO_SIZE} bytes, got {len(field)}")
    return field
