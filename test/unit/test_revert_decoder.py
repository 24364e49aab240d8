import pytest
from eth_abi import encode

from dogtrace.core.revert_decoder import (
    ERROR_SELECTOR,
    GENERIC_REVERT_MESSAGE,
    PANIC_MESSAGES,
    PANIC_SELECTOR,
    UNKNOWN_PANIC_MESSAGE,
    RevertKind,
    decode_failure,
    decode_revert_reason,
)


def panic_payload(code: int) -> str:
    return PANIC_SELECTOR + format(code, "064x")


def error_payload(message: str) -> str:
    return ERROR_SELECTOR + encode(["string"], [message]).hex()


def test_panic_overflow():
    reason = decode_revert_reason(panic_payload(0x11))
    assert reason.kind is RevertKind.PANIC
    assert reason.code == 0x11
    assert "overflow" in reason.message
    assert reason.describe() == "Panic(17): Arithmetic overflow or underflow"


@pytest.mark.parametrize("code", sorted(PANIC_MESSAGES))
def test_panic_table(code):
    assert decode_revert_reason(panic_payload(code)).message == PANIC_MESSAGES[code]


def test_unknown_panic_code():
    reason = decode_revert_reason(panic_payload(0x99))
    assert reason.kind is RevertKind.PANIC
    assert reason.message == UNKNOWN_PANIC_MESSAGE


def test_error_string():
    reason = decode_revert_reason(error_payload("bad input"))
    assert reason.kind is RevertKind.ERROR
    assert reason.message == "bad input"
    assert reason.describe() == "Error: bad input"


def test_prefixed_and_bytes_payloads():
    assert decode_revert_reason("0x" + error_payload("x")).message == "x"
    assert decode_revert_reason(bytes.fromhex(panic_payload(0x12))).code == 0x12


def test_custom_error_falls_back_to_plain_reason():
    reason = decode_revert_reason("deadbeef" + "00" * 32, plain_reason="custom")
    assert reason.kind is RevertKind.RAW
    assert reason.message == "custom"
    assert reason.payload_hex == "deadbeef" + "00" * 32


def test_empty_payload_is_generic():
    reason = decode_revert_reason("")
    assert reason.kind is RevertKind.RAW
    assert reason.message == GENERIC_REVERT_MESSAGE
    assert decode_revert_reason(None).message == GENERIC_REVERT_MESSAGE


@pytest.mark.parametrize("payload", [
    ERROR_SELECTOR + "00" * 10,                  # truncated offset
    ERROR_SELECTOR + format(32, "064x") + format(100, "064x") + "41",  # length past end
    PANIC_SELECTOR + "11",                       # short code
    "zz",                                        # not hex
])
def test_malformed_payloads_never_raise(payload):
    reason = decode_revert_reason(payload)
    assert reason.kind is RevertKind.RAW
    assert reason.message == GENERIC_REVERT_MESSAGE


def test_decode_failure_success_has_no_reason():
    assert decode_failure(True, panic_payload(1)) is None
    assert decode_failure(False, panic_payload(1)).code == 1


def test_to_dict():
    data = decode_revert_reason(panic_payload(0x32)).to_dict()
    assert data["kind"] == "panic"
    assert data["code"] == 0x32
    assert data["description"] == "Panic(50): Array index out of bounds"
