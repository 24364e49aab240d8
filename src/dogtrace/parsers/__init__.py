"""
Parsers module for dogtrace.

This module contains the static-analysis side of failure resolution:
- Bytecode disassembly into an instruction-index table
- Solidity source maps and PC -> source line resolution
- Enclosing function recovery
- Compiled artifact loading (storage layout, runtime bytecode)
"""

from .bytecode import (
    InstructionTable,
    build_pc_to_instruction_map,
    code_hash,
    push_data_size,
)
from .source_map import (
    SourceMapEntry,
    SourceLocation,
    SourceText,
    ResolutionContext,
    ResolutionCache,
    decompress_source_map,
)
from .function_context import (
    FunctionContext,
    PotentialRevert,
    get_function_context,
    find_potential_reverts,
    find_requires,
)
from .artifact import (
    CompiledArtifact,
    StorageVariable,
    artifact_from_json,
    compare_bytecode,
    load_artifact,
)

__all__ = [
    # Bytecode
    'InstructionTable',
    'build_pc_to_instruction_map',
    'code_hash',
    'push_data_size',
    # Source maps
    'SourceMapEntry',
    'SourceLocation',
    'SourceText',
    'ResolutionContext',
    'ResolutionCache',
    'decompress_source_map',
    # Function context
    'FunctionContext',
    'PotentialRevert',
    'get_function_context',
    'find_potential_reverts',
    'find_requires',
    # Artifacts
    'CompiledArtifact',
    'StorageVariable',
    'artifact_from_json',
    'compare_bytecode',
    'load_artifact',
]
