import json

from hexbytes import HexBytes

from dogtrace.core.analyzer import FailureAnalyzer
from dogtrace.core.revert_decoder import PANIC_SELECTOR, RevertKind
from dogtrace.core.serializer import ReportSerializer


def test_convert_to_serializable():
    serializer = ReportSerializer()
    data = serializer._convert_to_serializable({
        "hb": HexBytes("0x1234"),
        "raw": b"\xab",
        "kind": RevertKind.PANIC,
        "tuple": (1, 2),
        1: "int key",
    })
    assert data == {"hb": "0x1234", "raw": "0xab", "kind": "panic", "tuple": [1, 2], "1": "int key"}


def test_report_round_trips_through_json(reverting_struct_logs):
    trace = {
        "structLogs": reverting_struct_logs,
        "returnValue": PANIC_SELECTOR + format(0x12, "064x"),
        "failed": True,
    }
    report = FailureAnalyzer().analyze(trace)
    data = json.loads(ReportSerializer().to_json(report))

    assert data["result"]["success"] is False
    assert data["result"]["error"] == "Panic(18): Division or modulo by zero"
    assert data["result"]["revertReason"]["kind"] == "panic"
    assert len(data["trace"]) == len(reverting_struct_logs)
    assert data["trace"][7]["opcode"] == "REVERT"


def test_steps_can_be_omitted(reverting_struct_logs):
    report = FailureAnalyzer().analyze({"structLogs": reverting_struct_logs})
    data = ReportSerializer(include_steps=False).serialize_report(report)
    assert "trace" not in data
    assert "analysis" in data
