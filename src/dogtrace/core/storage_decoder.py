"""
Display decoding of single storage slots.

A slot is 32 bytes; how to read it depends on the declared type from the
storage layout. Only what fits in one slot is decoded. Strings of 32 bytes
or more live in separate slots and are reported as "string (long)". Signed
integers are shown as their unsigned two's-complement value.
"""

import re
from typing import Union

from dogtrace.utils.hexutil import normalize_word, strip_0x

LONG_STRING = "string (long)"

_TYPE_PREFIX = re.compile(r'^t_')
_LOCATION_SUFFIX = re.compile(r'_(storage|memory|calldata)(_ptr)?$')


def clean_type_name(type_name: str) -> str:
    """
    Clean up Solidity internal type names from storage layouts.

    t_uint256 -> uint256, t_string_storage -> string
    """
    return _LOCATION_SUFFIX.sub('', _TYPE_PREFIX.sub('', type_name or ''))


def _decode_short_string(raw: bytes) -> str:
    if not any(raw):
        return '""'
    last_byte = raw[31]
    # Short strings: data left-aligned, length * 2 in the lowest byte
    if last_byte % 2 == 0 and 0 < last_byte <= 62:
        length = last_byte // 2
        text = raw[:length].decode('utf-8')
        return f'"{text}"'
    return LONG_STRING


def decode_storage_value(value: Union[str, bytes, int], declared_type: str) -> str:
    """
    Decode a 32-byte storage word for display according to its type.

    Never raises: undecodable values come back as 0x-prefixed hex.
    """
    try:
        word = normalize_word(value)
    except (ValueError, TypeError, AttributeError):
        return str(value)
    clean = strip_0x(word)

    type_name = clean_type_name(declared_type)

    try:
        raw = bytes.fromhex(clean)

        if type_name == 'string':
            return _decode_short_string(raw)

        if type_name.startswith('address') or type_name.startswith('contract'):
            return '0x' + clean[24:]

        if type_name == 'bool':
            return 'false' if not any(raw) else 'true'

        if re.fullmatch(r'u?int\d*', type_name) or type_name.startswith('enum'):
            return str(int(clean, 16))

        return '0x' + clean
    except (ValueError, UnicodeDecodeError):
        return '0x' + clean
