import pytest


COUNTER_SOURCE = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.0;

contract Counter {
    uint256 public count;
    address public owner;

    function increment(uint256 amount) external {
        require(amount > 0, "bad input");
        count = count + amount;
    }
}
"""

# PUSH1 0x80, PUSH1 0x40, MSTORE, CALLVALUE, PUSH2 0x0001, ADD, JUMPDEST, REVERT, STOP
# pc:   0          2          4       5          6            9    10        11      12
COUNTER_BYTECODE = "608060405234610001015bfd00"
COUNTER_PCS = [0, 2, 4, 5, 6, 9, 10, 11, 12]


def word(value: int) -> str:
    """A 32-byte word as 0x + 64 hex chars."""
    return "0x" + format(value, "064x")


def srcmap(entries):
    """Join (start, length, file_index) tuples into a compressed source map."""
    return ";".join(f"{s}:{l}:{f}:-" for s, l, f in entries)


@pytest.fixture
def counter_source():
    return COUNTER_SOURCE


@pytest.fixture
def counter_bytecode():
    return COUNTER_BYTECODE


@pytest.fixture
def offsets(counter_source):
    """Byte offsets of interesting fragments of the Counter source."""
    return {
        "contract": counter_source.index("contract Counter"),
        "function": counter_source.index("function increment"),
        "require": counter_source.index("require("),
        "add": counter_source.index("count + amount"),
        "assign": counter_source.index("count = count"),
    }


@pytest.fixture
def require_srcmap(offsets):
    """REVERT (instruction 7) maps onto the require() line."""
    return srcmap([
        (offsets["contract"], 150, 0),
        (offsets["contract"], 150, 0),
        (offsets["contract"], 150, 0),
        (offsets["function"], 120, 0),
        (offsets["function"], 120, 0),
        (offsets["function"], 120, 0),
        (offsets["require"], 33, 0),
        (offsets["require"], 33, 0),
        (offsets["contract"], 150, 0),
    ])


@pytest.fixture
def panic_srcmap(offsets):
    """ADD (instruction 5) is authored; instructions 6-7 are a generated overflow check."""
    return srcmap([
        (offsets["contract"], 150, 0),
        (offsets["contract"], 150, 0),
        (offsets["contract"], 150, 0),
        (offsets["function"], 120, 0),
        (offsets["assign"], 22, 0),
        (offsets["add"], 14, 0),
        (0, 0, 1),
        (0, 0, 1),
        (offsets["contract"], 150, 0),
    ])


@pytest.fixture
def make_step():
    """Factory for structLog dicts as returned by debug_traceTransaction."""
    def _make(pc, op, gas=100000, stack=None, depth=1, **extra):
        step = {
            "pc": pc,
            "op": op,
            "gas": gas,
            "gasCost": extra.pop("gasCost", 3),
            "depth": depth,
            "stack": list(stack or []),
        }
        step.update(extra)
        return step
    return _make


@pytest.fixture
def reverting_struct_logs(make_step):
    """Walk the Counter bytecode and revert at pc 11."""
    gas = 1000
    logs = []
    for pc, op in zip(COUNTER_PCS[:-1], ["PUSH1", "PUSH1", "MSTORE", "CALLVALUE", "PUSH2", "ADD", "JUMPDEST", "REVERT"]):
        logs.append(make_step(pc, op, gas=gas))
        gas -= 3
    return logs
