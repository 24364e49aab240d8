"""
Runtime configuration for dogtrace.

Defaults can be overridden through environment variables
(DOGTRACE_RPC_URL, DOGTRACE_SOLC, DOGTRACE_RPC_TIMEOUT) and then by
command-line flags.
"""

import os
from dataclasses import dataclass, replace

DEFAULT_RPC_URL = "http://localhost:8545"

# Instruction-index bounds used when a PC maps into compiler-generated code
# or has no source map entry of its own.
DEFAULT_SYNTHETIC_LOOKBACK = 20
DEFAULT_NEIGHBOR_TOLERANCE = 5


@dataclass(frozen=True)
class DebugConfig:
    """Settings shared by the analyzer, the RPC tracer and the CLI."""
    rpc_url: str = DEFAULT_RPC_URL
    rpc_timeout: int = 30
    synthetic_lookback: int = DEFAULT_SYNTHETIC_LOOKBACK
    neighbor_tolerance: int = DEFAULT_NEIGHBOR_TOLERANCE
    # Hex characters compared between compiled and deployed bytecode
    bytecode_compare_chars: int = 500
    solc_path: str = "solc"
    max_storage_changes_shown: int = 5

    @classmethod
    def from_env(cls) -> "DebugConfig":
        """Build a config from DOGTRACE_* environment variables."""
        config = cls()
        overrides = {}
        if os.environ.get("DOGTRACE_RPC_URL"):
            overrides["rpc_url"] = os.environ["DOGTRACE_RPC_URL"]
        if os.environ.get("DOGTRACE_SOLC"):
            overrides["solc_path"] = os.environ["DOGTRACE_SOLC"]
        if os.environ.get("DOGTRACE_RPC_TIMEOUT"):
            overrides["rpc_timeout"] = int(os.environ["DOGTRACE_RPC_TIMEOUT"])
        return replace(config, **overrides)

    def with_overrides(self, **kwargs) -> "DebugConfig":
        """Return a copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})
