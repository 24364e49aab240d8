"""
Utilities module for dogtrace.

Provides exception handling, logging, colors, and hex helpers.
"""

from .exceptions import (
    DogtraceError,
    RPCConnectionError,
    TransactionError,
    TransactionNotFoundError,
    DebugTraceUnavailableError,
    ParseError,
    TraceValidationError,
    ArtifactError,
    CompilerError,
    format_error,
    format_error_json,
    format_exception_message,
)
from .logging import setup_logging, get_logger, logger
from .colors import (
    Colors,
    SUPPORTS_COLOR,
    error, success, warning, info, highlight,
    bold, dim,
)
from .hexutil import (
    ZERO_WORD,
    normalize_word,
    strip_0x,
    word_to_int,
)

__all__ = [
    # Exceptions
    'DogtraceError',
    'RPCConnectionError',
    'TransactionError',
    'TransactionNotFoundError',
    'DebugTraceUnavailableError',
    'ParseError',
    'TraceValidationError',
    'ArtifactError',
    'CompilerError',
    # Formatting
    'format_error',
    'format_error_json',
    'format_exception_message',
    # Logging
    'setup_logging',
    'get_logger',
    'logger',
    # Colors
    'Colors',
    'SUPPORTS_COLOR',
    'error', 'success', 'warning', 'info', 'highlight',
    'bold', 'dim',
    # Hex
    'ZERO_WORD',
    'normalize_word',
    'strip_0x',
    'word_to_int',
]
