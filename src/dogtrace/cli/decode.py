"""
Decode commands.

Offline helpers around the decoders: classify a revert payload, or render a
32-byte storage word as a typed value.
"""

import json

from eth_utils import is_hex

from dogtrace.cli.common import handle_command_error
from dogtrace.core.revert_decoder import decode_revert_reason
from dogtrace.core.storage_decoder import clean_type_name, decode_storage_value
from dogtrace.utils.exceptions import ParseError
from dogtrace.utils.hexutil import normalize_word, strip_0x


def decode_revert_command(args) -> int:
    """Print the decoded form of a revert payload."""
    reason = decode_revert_reason(args.payload, getattr(args, 'reason', None))
    if getattr(args, 'json', False):
        print(json.dumps(reason.to_dict(), indent=2))
    else:
        print(reason.describe())
    return 0


def decode_slot_command(args) -> int:
    """Print a storage word decoded as the given Solidity type."""
    json_mode = getattr(args, 'json', False)
    value = args.value.strip()
    if not is_hex(value) or not strip_0x(value):
        return handle_command_error(
            ParseError(f"Invalid storage value {args.value!r}: expected hex"), json_mode
        )
    word = normalize_word(value)

    decoded = decode_storage_value(word, args.type)
    if json_mode:
        print(json.dumps({
            "value": word,
            "type": clean_type_name(args.type),
            "decoded": decoded,
        }, indent=2))
    else:
        print(decoded)
    return 0
