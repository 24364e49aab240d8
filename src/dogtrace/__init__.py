"""
dogtrace - failure context for Ethereum transactions
"""

__version__ = "0.1.0"

# Main entry point
from .cli.main import main

# Core components
from .core import (
    DebugReport,
    FailureAnalyzer,
    ExecutionStep,
    StorageChange,
    RevertReason,
    TransactionTracer,
    ReportSerializer,
    normalize_trace,
    extract_storage_changes,
    decode_revert_reason,
    decode_storage_value,
)

# Parsers
from .parsers import (
    InstructionTable,
    ResolutionContext,
    ResolutionCache,
    SourceLocation,
    FunctionContext,
    CompiledArtifact,
    decompress_source_map,
    get_function_context,
    load_artifact,
)

# Compiler
from .compiler import compile_contract

# Configuration
from .config import DebugConfig

# Utilities
from .utils import (
    Colors,
    error, warning, info, success,
    DogtraceError,
    RPCConnectionError,
)

__all__ = [
    # Version
    '__version__',
    # Main
    'main',
    # Core
    'DebugReport',
    'FailureAnalyzer',
    'ExecutionStep',
    'StorageChange',
    'RevertReason',
    'TransactionTracer',
    'ReportSerializer',
    'normalize_trace',
    'extract_storage_changes',
    'decode_revert_reason',
    'decode_storage_value',
    # Parsers
    'InstructionTable',
    'ResolutionContext',
    'ResolutionCache',
    'SourceLocation',
    'FunctionContext',
    'CompiledArtifact',
    'decompress_source_map',
    'get_function_context',
    'load_artifact',
    # Compiler
    'compile_contract',
    # Config
    'DebugConfig',
    # Utils
    'Colors',
    'error', 'warning', 'info', 'success',
    'DogtraceError',
    'RPCConnectionError',
]
