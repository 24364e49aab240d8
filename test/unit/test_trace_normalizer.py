import pytest

from dogtrace.core.trace_normalizer import RawStep, RawTrace, normalize_trace
from dogtrace.utils.exceptions import TraceValidationError

from conftest import word


def test_empty_inputs_give_empty_trace():
    assert normalize_trace(None) == []
    assert normalize_trace([]) == []
    assert normalize_trace({}) == []
    assert normalize_trace({"structLogs": []}) == []


def test_one_to_one_and_dense_indices(make_step):
    logs = [make_step(pc, "JUMPDEST", gas=100 - pc) for pc in range(6)]
    steps = normalize_trace({"structLogs": logs})
    assert [s.index for s in steps] == list(range(6))
    assert [s.pc for s in steps] == list(range(6))


def test_gas_cost_from_deltas(make_step):
    logs = [
        make_step(0, "PUSH1", gas=1000, gasCost=7),
        make_step(2, "PUSH1", gas=997),
        make_step(4, "SSTORE", gas=994, stack=[word(1), word(0)]),
        make_step(5, "STOP", gas=894),
    ]
    steps = normalize_trace(logs)
    assert [s.gas_cost for s in steps] == [7, 3, 3, 100]


def test_first_step_without_gas_cost_is_zero(make_step):
    log = make_step(0, "STOP", gas=10)
    del log["gasCost"]
    assert normalize_trace([log])[0].gas_cost == 0


def test_gas_returned_from_subcall_falls_back_to_reported_cost(make_step):
    logs = [
        make_step(0, "CALL", gas=5000, gasCost=100),
        make_step(0, "STOP", gas=4000, depth=2),
        make_step(1, "POP", gas=4900, gasCost=2),
    ]
    assert normalize_trace(logs)[2].gas_cost == 2


def test_sstore_captures_key_and_value(make_step):
    # stack is bottom -> top: value below, key on top
    steps = normalize_trace([make_step(0, "SSTORE", stack=["0x9", "0x1"])])
    write = steps[0].storage_write
    assert write.slot == word(1)
    assert write.value == word(9)


def test_sstore_with_short_stack_has_no_write(make_step):
    steps = normalize_trace([make_step(0, "SSTORE", stack=["0x1"])])
    assert steps[0].storage_write is None


def test_only_sstore_captures_writes(make_step):
    steps = normalize_trace([make_step(0, "SLOAD", stack=["0x1", "0x2"])])
    assert steps[0].storage_write is None


def test_memory_is_joined(make_step):
    log = make_step(0, "MLOAD", memory=["00" * 32, "ff" * 32])
    steps = normalize_trace([log])
    assert steps[0].memory == "0x" + "00" * 32 + "ff" * 32


def test_opcode_is_uppercased_and_depth_defaults(make_step):
    log = make_step(0, "revert")
    del log["depth"]
    step = normalize_trace([log])[0]
    assert step.op == "REVERT"
    assert step.depth == 0


def test_numeric_strings_are_accepted():
    step = RawStep.from_dict({"pc": "0x10", "op": "STOP", "gas": "300", "stack": [1, "0xff"]})
    assert step.pc == 16
    assert step.gas == 300
    assert step.stack == ("0x1", "0xff")


@pytest.mark.parametrize("field", ["pc", "op", "gas"])
def test_missing_required_field_fails_once(make_step, field):
    log = make_step(0, "STOP")
    del log[field]
    with pytest.raises(TraceValidationError) as exc_info:
        normalize_trace([make_step(0, "STOP"), log])
    assert exc_info.value.step_index == 1
    assert exc_info.value.field == field


def test_bad_stack_word_is_rejected(make_step):
    with pytest.raises(TraceValidationError) as exc_info:
        normalize_trace([make_step(0, "ADD", stack=["0x1", "not-hex"])])
    assert exc_info.value.field == "stack"


def test_non_list_struct_logs_is_rejected():
    with pytest.raises(TraceValidationError):
        RawTrace.from_dict({"structLogs": "nope"})


def test_bool_is_not_an_integer(make_step):
    with pytest.raises(TraceValidationError):
        normalize_trace([make_step(True, "STOP")])


def test_raw_trace_keeps_return_data(make_step):
    trace = RawTrace.from_dict({
        "structLogs": [make_step(0, "REVERT")],
        "returnValue": "0x08c379a0",
        "revertReason": "bad input",
        "failed": True,
        "gas": 21500,
    })
    assert trace.return_value == "08c379a0"
    assert trace.revert_reason == "bad input"
    assert trace.failed is True
    assert trace.gas == 21500
    assert len(normalize_trace(trace)) == 1


def test_step_to_dict(make_step):
    step = normalize_trace([make_step(3, "SSTORE", gas=50, stack=["0x2", "0x1"])])[0]
    data = step.to_dict()
    assert data["step"] == 0
    assert data["opcode"] == "SSTORE"
    assert data["storage"] == {"key": word(1), "value": word(2)}


def test_format_stack(make_step):
    step = normalize_trace([make_step(0, "ADD", stack=["0x1", "0x2", "0x3", "0x4"])])[0]
    assert step.format_stack() == "[0] 0x4 [1] 0x3 [2] 0x2 ... +1 more"
    assert step.stack_top() == "0x4"
    assert step.stack_top(3) == "0x1"
    assert step.stack_top(4) is None
