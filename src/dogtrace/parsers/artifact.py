"""
Compiled artifact loading.

Accepts the shapes produced by the usual toolchains:
- solc standard-JSON output: {"contracts": {source: {Name: {...}}}}
- a single solc contract object: {"storageLayout", "evm": {"deployedBytecode"}}
- a flattened / Foundry-style artifact: {"storageLayout", "deployedBytecode"}

Only the storage layout, runtime bytecode and runtime source map are kept.
"""

import json
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from eth_utils import is_hex

from dogtrace.utils.exceptions import ArtifactError
from dogtrace.utils.hexutil import strip_0x
from dogtrace.utils.logging import get_logger

logger = get_logger('artifact')

# Unlinked library references: __$<34 hex chars>$__
LINK_PLACEHOLDER = re.compile(r'__\$[0-9a-fA-F]{34}\$__')


@dataclass(frozen=True)
class StorageVariable:
    """A state variable from the compiler's storage layout."""
    name: str
    declared_type: str
    slot: int
    offset: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CompiledArtifact:
    """Runtime debug information for one contract."""
    contract_name: str
    bytecode: str          # hex, no 0x
    source_map: str
    storage_variables: List[StorageVariable] = field(default_factory=list)
    source_key: Optional[str] = None

    def variables_at(self, slot: int) -> List[StorageVariable]:
        return sorted(
            (v for v in self.storage_variables if v.slot == slot),
            key=lambda v: v.offset,
        )

    def variable_for_slot(self, slot: int) -> Optional[StorageVariable]:
        """Lowest-offset variable stored at slot."""
        variables = self.variables_at(slot)
        return variables[0] if variables else None

    def storage_layout(self) -> Dict[int, Dict[str, Any]]:
        """Slot -> variable dict, as reported to consumers."""
        layout = {}
        for var in self.storage_variables:
            layout.setdefault(var.slot, var.to_dict())
        return layout


def normalize_bytecode(bytecode: str) -> str:
    """Strip 0x and replace link placeholders with zero addresses."""
    clean = strip_0x((bytecode or "").strip())
    return LINK_PLACEHOLDER.sub('0' * 40, clean)


def _runtime_bytecode(raw: Any, contract_name: str) -> str:
    """Normalized runtime bytecode, rejecting anything that is not even-length hex."""
    if raw is not None and not isinstance(raw, str):
        raise ArtifactError(f"Runtime bytecode of {contract_name or '<unnamed>'} must be a hex string")
    bytecode = normalize_bytecode(raw)
    if bytecode and (len(bytecode) % 2 or not is_hex("0x" + bytecode)):
        raise ArtifactError(
            f"Runtime bytecode of {contract_name or '<unnamed>'} is not valid hex",
            contract=contract_name,
        )
    return bytecode


def parse_storage_layout(layout: Optional[Dict[str, Any]]) -> List[StorageVariable]:
    """Parse the `storageLayout` object (slots arrive as decimal strings)."""
    if not layout:
        return []
    variables = []
    for item in layout.get("storage", []):
        try:
            variables.append(StorageVariable(
                name=item["label"],
                declared_type=item["type"],
                slot=int(item["slot"]),
                offset=int(item.get("offset", 0)),
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise ArtifactError(f"Invalid storage layout entry {item!r}: {e}")
    return variables


def _deployed_bytecode(contract: Dict[str, Any]) -> Dict[str, Any]:
    if isinstance(contract.get("evm"), dict):
        return contract["evm"].get("deployedBytecode") or {}
    deployed = contract.get("deployedBytecode")
    if isinstance(deployed, dict):
        return deployed
    if isinstance(deployed, str):
        return {"object": deployed, "sourceMap": contract.get("deployedSourceMap", "")}
    return {}


def artifact_from_contract(
    contract: Dict[str, Any],
    contract_name: str = "",
    source_key: Optional[str] = None
) -> CompiledArtifact:
    """Build a CompiledArtifact from a single contract object."""
    deployed = _deployed_bytecode(contract)
    name = contract_name or contract.get("contractName", "")
    return CompiledArtifact(
        contract_name=name,
        bytecode=_runtime_bytecode(deployed.get("object"), name),
        source_map=deployed.get("sourceMap", "") or "",
        storage_variables=parse_storage_layout(contract.get("storageLayout")),
        source_key=source_key,
    )


def _select_contract(contracts: Dict[str, Dict[str, Any]], contract_name: Optional[str]):
    candidates = []
    for source_key, by_name in contracts.items():
        for name, contract in by_name.items():
            candidates.append((source_key, name, contract))

    if not candidates:
        raise ArtifactError("No contracts found in compiler output")

    if contract_name:
        for candidate in candidates:
            if candidate[1] == contract_name:
                return candidate
        raise ArtifactError(
            f"Contract {contract_name} not found in compiler output",
            available=[c[1] for c in candidates],
        )

    # First contract with runtime bytecode (interfaces have none)
    for candidate in candidates:
        if _deployed_bytecode(candidate[2]).get("object"):
            return candidate
    return candidates[0]


def artifact_from_json(data: Dict[str, Any], contract_name: Optional[str] = None) -> CompiledArtifact:
    """Build a CompiledArtifact from any supported JSON shape."""
    if not isinstance(data, dict):
        raise ArtifactError("Artifact must be a JSON object")

    if isinstance(data.get("contracts"), dict):
        source_key, name, contract = _select_contract(data["contracts"], contract_name)
        artifact = artifact_from_contract(contract, name, source_key)
    else:
        artifact = artifact_from_contract(data, contract_name or "")

    if not artifact.bytecode:
        logger.warning(f"Artifact {artifact.contract_name or '<unnamed>'} has no runtime bytecode")
    if not artifact.source_map:
        logger.warning(f"Artifact {artifact.contract_name or '<unnamed>'} has no runtime source map")
    return artifact


def load_artifact(path: Union[str, Path], contract_name: Optional[str] = None) -> CompiledArtifact:
    """Load a compiled artifact JSON file."""
    path = Path(path)
    if not path.exists():
        raise ArtifactError(f"Artifact file not found: {path}", source=str(path))
    try:
        with open(path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ArtifactError(f"Artifact is not valid JSON: {e}", source=str(path))
    return artifact_from_json(data, contract_name)


def compare_bytecode(compiled: str, deployed: str, compare_chars: int = 500) -> Optional[str]:
    """
    Compare the leading hex characters of compiled and deployed bytecode.

    The metadata hash at the end differs between builds, so only a prefix is
    checked. Returns a diagnostic message on mismatch, None when they agree.
    """
    compiled = normalize_bytecode(compiled)
    deployed = normalize_bytecode(deployed)
    compare_length = min(compare_chars, len(compiled), len(deployed))

    if compiled[:compare_length] == deployed[:compare_length] and compare_length > 0:
        logger.debug(f"Deployed bytecode matches compiled bytecode (first {compare_length // 2} bytes)")
        return None

    message = (
        "Deployed bytecode does not match compiled bytecode; source mapping may be inaccurate "
        "(different compiler version, optimizer settings or source)"
    )
    logger.warning(message)
    logger.debug(f"Compiled bytecode (first 100 chars): {compiled[:100]}...")
    logger.debug(f"Deployed bytecode (first 100 chars): {deployed[:100]}...")
    return message
