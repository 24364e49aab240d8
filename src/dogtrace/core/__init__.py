"""
Core module for dogtrace.

This module contains the trace-side logic of failure analysis:
- Trace normalization and storage diffs
- Revert payload and storage value decoding
- FailureAnalyzer: builds a DebugReport for one transaction
- TransactionTracer: fetches traces over JSON-RPC
- ReportSerializer: serializes reports to JSON
"""

from .trace_normalizer import (
    ExecutionStep,
    RawStep,
    RawTrace,
    StorageWrite,
    normalize_trace,
)
from .storage_diff import StorageChange, extract_storage_changes
from .revert_decoder import (
    RevertKind,
    RevertReason,
    decode_failure,
    decode_revert_reason,
)
from .storage_decoder import clean_type_name, decode_storage_value
from .analyzer import (
    DebugReport,
    FailureAnalyzer,
    FailureInfo,
    RevertLocation,
    function_selector,
)
from .transaction_tracer import (
    TransactionInfo,
    TransactionTracer,
    TracedTransaction,
    lookup_function_signature,
)
from .serializer import ReportSerializer

__all__ = [
    'ExecutionStep',
    'RawStep',
    'RawTrace',
    'StorageWrite',
    'normalize_trace',
    'StorageChange',
    'extract_storage_changes',
    'RevertKind',
    'RevertReason',
    'decode_failure',
    'decode_revert_reason',
    'clean_type_name',
    'decode_storage_value',
    'DebugReport',
    'FailureAnalyzer',
    'FailureInfo',
    'RevertLocation',
    'function_selector',
    'TransactionInfo',
    'TransactionTracer',
    'TracedTransaction',
    'lookup_function_signature',
    'ReportSerializer',
]
