"""
Hex helpers for 32-byte EVM words.

Stack entries and storage keys arrive from tracers in several shapes
("0x1", "0000...01", ints, HexBytes). Everything that is compared or used as
a dict key goes through normalize_word() first.
"""

from typing import Union

from eth_utils import add_0x_prefix, is_0x_prefixed, remove_0x_prefix

WORD_HEX_CHARS = 64
ZERO_WORD = '0x' + '0' * WORD_HEX_CHARS

HexLike = Union[str, bytes, bytearray, int]


def strip_0x(value: str) -> str:
    """Remove a leading 0x/0X if present."""
    if is_0x_prefixed(value):
        return remove_0x_prefix(value)
    return value


def to_hex_str(value: HexLike) -> str:
    """Return value as lowercase hex without prefix."""
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Negative value cannot be a word: {value}")
        return format(value, 'x')
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    return strip_0x(value.strip()).lower()


def normalize_word(value: HexLike) -> str:
    """
    Normalize a stack/storage word to 0x + 64 lowercase hex characters.

    Longer inputs keep their low-order 32 bytes.
    """
    clean = to_hex_str(value)
    if len(clean) > WORD_HEX_CHARS:
        clean = clean[-WORD_HEX_CHARS:]
    return add_0x_prefix(clean.rjust(WORD_HEX_CHARS, '0'))


def word_to_int(value: HexLike) -> int:
    """Interpret a word as a big-endian unsigned integer."""
    if isinstance(value, int):
        return value
    clean = to_hex_str(value)
    return int(clean, 16) if clean else 0
