import json
import subprocess

import pytest

from dogtrace.compiler.solc import (
    OUTPUT_SELECTION,
    build_standard_json_input,
    compile_contract,
    run_solc,
    source_key_for,
)
from dogtrace.utils.exceptions import CompilerError


def solc_output(errors=()):
    return {
        "errors": list(errors),
        "contracts": {
            "Counter.sol": {
                "Counter": {
                    "storageLayout": {"storage": [
                        {"label": "count", "slot": "0", "offset": 0, "type": "t_uint256"},
                    ]},
                    "evm": {"deployedBytecode": {"object": "6080604052", "sourceMap": "0:10:0:-"}},
                },
            },
        },
    }


@pytest.fixture
def fake_solc(monkeypatch):
    calls = []

    def install(output, returncode=0, stderr=""):
        def fake_run(cmd, **kwargs):
            calls.append((cmd, json.loads(kwargs["input"])))
            stdout = output if isinstance(output, str) else json.dumps(output)
            return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)
        monkeypatch.setattr(subprocess, "run", fake_run)
        return calls

    return install


def test_source_key_for():
    assert source_key_for("/home/me/project/src/token/Token.sol") == "src/token/Token.sol"
    assert source_key_for("contracts/Counter.sol") == "Counter.sol"


def test_build_standard_json_input():
    data = build_standard_json_input("Counter.sol", "contract Counter {}")
    assert data["sources"] == {"Counter.sol": {"content": "contract Counter {}"}}
    assert data["settings"]["outputSelection"]["*"]["*"] == OUTPUT_SELECTION
    assert "optimizer" not in data["settings"]

    optimized = build_standard_json_input("Counter.sol", "", optimize=True)
    assert optimized["settings"]["optimizer"] == {"enabled": True, "runs": 200}


def test_compile_contract(tmp_path, fake_solc, counter_source):
    calls = fake_solc(solc_output(errors=[
        {"severity": "warning", "formattedMessage": "Warning: unused variable"},
    ]))
    path = tmp_path / "Counter.sol"
    path.write_text(counter_source)

    artifact, source = compile_contract(path, solc_path="/opt/solc")

    assert source == counter_source
    assert artifact.contract_name == "Counter"
    assert artifact.bytecode == "6080604052"
    assert artifact.source_key == "Counter.sol"
    assert artifact.variable_for_slot(0).name == "count"

    (cmd, standard_input), = calls
    assert cmd == ["/opt/solc", "--standard-json"]
    assert "Counter.sol" in standard_input["sources"]


def test_compile_errors_raise(tmp_path, fake_solc):
    fake_solc(solc_output(errors=[
        {"severity": "error", "formattedMessage": "ParserError: Expected ';'"},
    ]))
    path = tmp_path / "Counter.sol"
    path.write_text("contract Counter {")

    with pytest.raises(CompilerError) as exc_info:
        compile_contract(path)
    assert "Expected ';'" in exc_info.value.message


def test_unknown_contract_name(tmp_path, fake_solc):
    fake_solc(solc_output())
    path = tmp_path / "Counter.sol"
    path.write_text("")

    with pytest.raises(CompilerError) as exc_info:
        compile_contract(path, contract_name="Token")
    assert exc_info.value.details["available"] == ["Counter"]


def test_missing_contract_file(tmp_path):
    with pytest.raises(CompilerError):
        compile_contract(tmp_path / "Nope.sol")


def test_run_solc_failures(fake_solc, monkeypatch):
    fake_solc("", returncode=1, stderr="boom\n")
    with pytest.raises(CompilerError, match="boom"):
        run_solc({})

    fake_solc("not json")
    with pytest.raises(CompilerError, match="parse"):
        run_solc({})

    def missing(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])
    monkeypatch.setattr(subprocess, "run", missing)
    with pytest.raises(CompilerError, match="not found"):
        run_solc({}, solc_path="solc-0.8.30")
