import pytest
import requests
from hexbytes import HexBytes
from web3.datastructures import AttributeDict

from dogtrace.core import transaction_tracer
from dogtrace.core.transaction_tracer import (
    TransactionInfo,
    TransactionTracer,
    _to_plain,
    lookup_function_signature,
)
from dogtrace.utils.exceptions import DebugTraceUnavailableError


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        return self.payload


def test_to_plain():
    value = AttributeDict({
        "structLogs": [AttributeDict({"op": "STOP", "stack": []})],
        "returnValue": HexBytes("0x08c379a0"),
    })
    assert _to_plain(value) == {
        "structLogs": [{"op": "STOP", "stack": []}],
        "returnValue": "0x08c379a0",
    }


def test_transaction_info_from_dict():
    info = TransactionInfo.from_dict({
        "hash": "0xabc",
        "to": "0x" + "22" * 20,
        "value": "7",
        "input": "0xd09de08a",
        "blockNumber": 3,
        "gasLimit": 30000,
        "gasUsed": 21500,
        "status": "0x0",
    })
    assert not info.success
    assert info.value == 7
    assert info.to_dict()["status"] == "reverted"
    assert info.to_dict()["value"] == "7"


def test_transaction_info_status_forms():
    assert TransactionInfo.from_dict({"status": "success"}).success
    assert TransactionInfo.from_dict({"status": 1}).success
    assert not TransactionInfo.from_dict({"status": False}).success
    assert TransactionInfo.from_dict({}).success


def test_signature_lookup_prefers_openchain(monkeypatch):
    urls = []

    def fake_get(url, timeout):
        urls.append(url)
        return FakeResponse({"result": {"function": {"0xd09de08a": [{"name": "increment()"}]}}})

    monkeypatch.setattr(transaction_tracer.requests, "get", fake_get)
    assert lookup_function_signature("0xd09de08a") == "increment()"
    assert len(urls) == 1
    assert "openchain" in urls[0]


def test_signature_lookup_falls_back_to_4byte(monkeypatch):
    def fake_get(url, timeout):
        if "openchain" in url:
            raise requests.ConnectionError("offline")
        return FakeResponse({"results": [
            {"id": 9, "text_signature": "collide()"},
            {"id": 2, "text_signature": "increment()"},
        ]})

    monkeypatch.setattr(transaction_tracer.requests, "get", fake_get)
    assert lookup_function_signature("d09de08a") == "increment()"


def test_signature_lookup_not_found(monkeypatch):
    monkeypatch.setattr(transaction_tracer.requests, "get",
                        lambda url, timeout: FakeResponse({}, status_code=404))
    assert lookup_function_signature("0xdeadbeef") is None


def test_trace_errors_carry_the_rpc_message():
    tracer = TransactionTracer.__new__(TransactionTracer)
    tracer.rpc_url = "http://localhost:8545"

    class FailingManager:
        def request_blocking(self, method, params):
            raise ValueError({"code": -32601, "message": "method debug_traceTransaction not found"})

    tracer.w3 = type("FakeWeb3", (), {"manager": FailingManager()})()
    with pytest.raises(DebugTraceUnavailableError) as exc_info:
        tracer.get_trace("0x" + "ab" * 32)
    assert exc_info.value.message.endswith("method debug_traceTransaction not found")
