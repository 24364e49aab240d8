"""
Revert reason decoding.

Solidity reverts with one of:
- Panic(uint256)  selector 0x4e487b71, raised by compiler-inserted checks
- Error(string)   selector 0x08c379a0, raised by require()/revert("...")
- anything else (custom errors, empty revert data)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from eth_abi.abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex

from dogtrace.utils.logging import get_logger

logger = get_logger('revert')

PANIC_SELECTOR = "4e487b71"
ERROR_SELECTOR = "08c379a0"

GENERIC_REVERT_MESSAGE = "Transaction reverted"
UNKNOWN_PANIC_MESSAGE = "Unknown panic"

PANIC_MESSAGES = {
    0x01: "Assertion failed",
    0x11: "Arithmetic overflow or underflow",
    0x12: "Division or modulo by zero",
    0x21: "Invalid enum value",
    0x22: "Invalid storage byte array encoding",
    0x31: "Pop on empty array",
    0x32: "Array index out of bounds",
    0x41: "Out of memory",
    0x51: "Invalid internal function",
}


class RevertKind(str, Enum):
    """Which encoding the revert payload used."""
    PANIC = "panic"
    ERROR = "error"
    RAW = "raw"


@dataclass(frozen=True)
class RevertReason:
    """Decoded revert payload. `code` is set for PANIC, `payload_hex` for RAW."""
    kind: RevertKind
    message: str
    code: Optional[int] = None
    payload_hex: Optional[str] = None

    @classmethod
    def panic(cls, code: int) -> "RevertReason":
        return cls(RevertKind.PANIC, PANIC_MESSAGES.get(code, UNKNOWN_PANIC_MESSAGE), code=code)

    @classmethod
    def error(cls, message: str) -> "RevertReason":
        return cls(RevertKind.ERROR, message)

    @classmethod
    def raw(cls, payload_hex: str, message: Optional[str] = None) -> "RevertReason":
        return cls(RevertKind.RAW, message or GENERIC_REVERT_MESSAGE, payload_hex=payload_hex)

    def describe(self) -> str:
        """One-line description, e.g. 'Panic(17): Arithmetic overflow or underflow'."""
        if self.kind is RevertKind.PANIC:
            return f"Panic({self.code}): {self.message}"
        if self.kind is RevertKind.ERROR:
            return f"Error: {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        result = {"kind": self.kind.value, "message": self.message, "description": self.describe()}
        if self.code is not None:
            result["code"] = self.code
        if self.payload_hex is not None:
            result["payload"] = self.payload_hex
        return result


def _payload_bytes(payload: Union[str, bytes, None]) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    return decode_hex(payload.strip())


def decode_revert_reason(
    payload: Union[str, bytes, None],
    plain_reason: Optional[str] = None,
) -> RevertReason:
    """
    Classify a revert payload. Never raises: malformed payloads degrade to
    RAW with the plain reason (or the generic message).
    """
    try:
        data = _payload_bytes(payload)
    except ValueError:
        logger.debug(f"Revert payload is not valid hex: {payload!r}")
        return RevertReason.raw(str(payload), plain_reason)

    selector = data[:4].hex()
    body = data[4:]

    if selector == PANIC_SELECTOR:
        try:
            (code,) = decode(['uint256'], body)
            return RevertReason.panic(code)
        except (DecodingError, ValueError) as e:
            logger.debug(f"Malformed Panic payload: {e}")
    elif selector == ERROR_SELECTOR:
        try:
            (message,) = decode(['string'], body)
            return RevertReason.error(message)
        except (DecodingError, ValueError) as e:
            logger.debug(f"Malformed Error(string) payload: {e}")

    return RevertReason.raw(data.hex(), plain_reason)


def decode_failure(
    success: bool,
    payload: Union[str, bytes, None] = None,
    plain_reason: Optional[str] = None,
) -> Optional[RevertReason]:
    """RevertReason for a failed transaction, None for a successful one."""
    if success:
        return None
    return decode_revert_reason(payload, plain_reason)

