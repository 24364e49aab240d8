import json

import pytest

from dogtrace.parsers.artifact import (
    StorageVariable,
    artifact_from_json,
    compare_bytecode,
    load_artifact,
    normalize_bytecode,
    parse_storage_layout,
)
from dogtrace.utils.exceptions import ArtifactError

LAYOUT = {
    "storage": [
        {"label": "count", "slot": "0", "offset": 0, "type": "t_uint256"},
        {"label": "owner", "slot": "1", "offset": 0, "type": "t_address"},
        {"label": "paused", "slot": "1", "offset": 20, "type": "t_bool"},
    ]
}


def standard_json_output(bytecode="6080", source_map="0:1:0:-"):
    return {
        "contracts": {
            "src/Counter.sol": {
                "ICounter": {"storageLayout": {"storage": []}, "evm": {"deployedBytecode": {"object": "", "sourceMap": ""}}},
                "Counter": {
                    "storageLayout": LAYOUT,
                    "evm": {"deployedBytecode": {"object": bytecode, "sourceMap": source_map}},
                },
            }
        }
    }


def test_parse_storage_layout():
    variables = parse_storage_layout(LAYOUT)
    assert variables[0] == StorageVariable("count", "t_uint256", 0, 0)
    assert variables[2].slot == 1
    assert variables[2].offset == 20


def test_invalid_layout_entry():
    with pytest.raises(ArtifactError):
        parse_storage_layout({"storage": [{"label": "x", "slot": "zero", "type": "t_uint256"}]})


def test_standard_json_picks_first_contract_with_code():
    artifact = artifact_from_json(standard_json_output())
    assert artifact.contract_name == "Counter"
    assert artifact.source_key == "src/Counter.sol"
    assert artifact.bytecode == "6080"
    assert artifact.source_map == "0:1:0:-"


def test_standard_json_by_name():
    artifact = artifact_from_json(standard_json_output(), contract_name="ICounter")
    assert artifact.contract_name == "ICounter"
    with pytest.raises(ArtifactError):
        artifact_from_json(standard_json_output(), contract_name="Missing")


def test_flattened_artifact():
    artifact = artifact_from_json({
        "storageLayout": LAYOUT,
        "deployedBytecode": {"object": "0x6080", "sourceMap": "0:1:0:-"},
    })
    assert artifact.bytecode == "6080"
    assert len(artifact.storage_variables) == 3


def test_foundry_string_bytecode():
    artifact = artifact_from_json({
        "contractName": "Counter",
        "deployedBytecode": "0x6001",
        "deployedSourceMap": "1:2:0",
    })
    assert artifact.contract_name == "Counter"
    assert artifact.bytecode == "6001"
    assert artifact.source_map == "1:2:0"


def test_variable_for_packed_slot_is_lowest_offset():
    artifact = artifact_from_json(standard_json_output())
    assert artifact.variable_for_slot(1).name == "owner"
    assert [v.name for v in artifact.variables_at(1)] == ["owner", "paused"]
    assert artifact.variable_for_slot(7) is None
    assert artifact.storage_layout()[1]["name"] == "owner"


def test_link_placeholders_are_zeroed():
    placeholder = "__$" + "a" * 34 + "$__"
    assert normalize_bytecode("0x73" + placeholder + "00") == "73" + "0" * 40 + "00"


def test_load_artifact(tmp_path):
    path = tmp_path / "Counter.json"
    path.write_text(json.dumps(standard_json_output()))
    assert load_artifact(path).contract_name == "Counter"


def test_load_artifact_errors(tmp_path):
    with pytest.raises(ArtifactError):
        load_artifact(tmp_path / "missing.json")
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(ArtifactError):
        load_artifact(bad)


def test_compare_bytecode():
    code = "60806040" * 100
    assert compare_bytecode(code, "0x" + code) is None
    # metadata tail differs only past the compared prefix
    assert compare_bytecode(code + "a264", code + "ffff") is None
    assert "does not match" in compare_bytecode(code, "6001" + code[4:])
    assert compare_bytecode("", code) is not None


@pytest.mark.parametrize("bytecode", ["0xzz", "0x600", 6080])
def test_malformed_bytecode_is_an_artifact_error(bytecode):
    with pytest.raises(ArtifactError):
        artifact_from_json({"deployedBytecode": {"object": bytecode, "sourceMap": "0:1:0"}})
