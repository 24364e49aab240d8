"""
Solidity compilation through `solc --standard-json`.

Only the outputs the analyzer needs are requested: the storage layout and
the runtime bytecode with its source map.
"""

import json
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from dogtrace.parsers.artifact import CompiledArtifact, artifact_from_contract
from dogtrace.utils.exceptions import CompilerError
from dogtrace.utils.logging import get_logger

logger = get_logger('compiler')

OUTPUT_SELECTION = [
    'storageLayout',
    'evm.deployedBytecode.sourceMap',
    'evm.deployedBytecode.object',
]


def source_key_for(contract_path: Union[str, Path]) -> str:
    """
    Source unit name for a contract file.

    Paths containing `src/` keep everything from `src/` on so file indices
    line up with Foundry builds; anything else uses the base name.
    """
    path_str = str(contract_path)
    src_index = path_str.find('src/')
    if src_index != -1:
        return path_str[src_index:]
    return Path(path_str).name


def build_standard_json_input(source_key: str, source: str,
                              optimize: bool = False) -> Dict[str, Any]:
    settings = {
        "outputSelection": {"*": {"*": list(OUTPUT_SELECTION)}},
    }
    if optimize:
        settings["optimizer"] = {"enabled": True, "runs": 200}
    return {
        "language": "Solidity",
        "sources": {source_key: {"content": source}},
        "settings": settings,
    }


def run_solc(standard_input: Dict[str, Any], solc_path: str = "solc",
             timeout: int = 120) -> Dict[str, Any]:
    """Run solc in standard-JSON mode and return its parsed output."""
    try:
        result = subprocess.run(
            [solc_path, "--standard-json"],
            input=json.dumps(standard_input),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise CompilerError(f"solc not found at '{solc_path}'. Install solc or pass --solc")
    except subprocess.TimeoutExpired:
        raise CompilerError(f"solc timed out after {timeout}s")

    if result.returncode != 0 and not result.stdout:
        raise CompilerError(f"solc failed: {result.stderr.strip()}")

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise CompilerError(f"Could not parse solc output: {e}")


def _check_errors(output: Dict[str, Any]) -> List[str]:
    """Raise on severity=error entries, return warnings."""
    errors = []
    warnings = []
    for entry in output.get("errors", []):
        message = entry.get("formattedMessage") or entry.get("message", "")
        if entry.get("severity") == "error":
            errors.append(message.strip())
        else:
            warnings.append(message.strip())
    if errors:
        raise CompilerError("Compilation failed:\n" + "\n".join(errors), errors=errors)
    return warnings


def _pick_contract(contracts: Dict[str, Any], source_key: str,
                   contract_name: Optional[str]) -> Tuple[str, Dict[str, Any]]:
    by_name = contracts.get(source_key)
    if not by_name:
        raise CompilerError(
            f"No contracts found for source key: {source_key}",
            available=list(contracts.keys()),
        )
    if contract_name:
        if contract_name not in by_name:
            raise CompilerError(
                f"Contract {contract_name} not found in {source_key}",
                available=list(by_name.keys()),
            )
        return contract_name, by_name[contract_name]
    # First contract found, as listed by solc
    name = next(iter(by_name))
    return name, by_name[name]


def compile_contract(
    contract_path: Union[str, Path],
    contract_name: Optional[str] = None,
    solc_path: str = "solc",
    optimize: bool = False,
) -> Tuple[CompiledArtifact, str]:
    """
    Compile one Solidity file.

    Returns the artifact and the source text it was compiled from.
    """
    path = Path(contract_path)
    if not path.exists():
        raise CompilerError(f"Contract file '{contract_path}' not found")

    try:
        source = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise CompilerError(f"Contract file '{contract_path}' is not valid UTF-8: {e}")
    source_key = source_key_for(contract_path)
    logger.debug(f"Using source key: {source_key}")

    output = run_solc(build_standard_json_input(source_key, source, optimize), solc_path)
    for warning_message in _check_errors(output):
        logger.debug(f"solc: {warning_message}")

    name, contract = _pick_contract(output.get("contracts", {}), source_key, contract_name)
    artifact = artifact_from_contract(contract, name, source_key)
    logger.info(
        f"Compiled {name}: {len(artifact.bytecode) // 2} bytes, "
        f"{len(artifact.storage_variables)} storage variables"
    )
    return artifact, source
