"""
Compiler module for dogtrace.

This module runs solc to produce runtime bytecode, source maps and
storage layouts for the analyzer.
"""

from .solc import (
    build_standard_json_input,
    compile_contract,
    run_solc,
    source_key_for,
)

__all__ = [
    'build_standard_json_input',
    'compile_contract',
    'run_solc',
    'source_key_for',
]
