"""
Custom exceptions for dogtrace.

This module provides a hierarchy of exceptions for the failure cases at the
edges of the analyzer (RPC, trace validation, artifacts, compilation), along
with utilities for formatting errors consistently.
"""

import json
from typing import Any, Dict, Optional


class DogtraceError(Exception):
    """
    Base exception for all dogtrace errors.

    Attributes:
        message: Human-readable error message
        details: Additional context as key-value pairs
        error_code: Optional error code for programmatic handling
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.details = details or {}
        self.error_code = error_code or self.__class__.__name__
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error": True,
            "type": self.error_code,
            "message": self.message,
            **self.details
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


# ============================================================================
# Connection Errors
# ============================================================================

class RPCConnectionError(DogtraceError):
    """Raised when RPC connection fails."""

    def __init__(self, message: str, rpc_url: Optional[str] = None, **kwargs):
        details = {"rpc_url": rpc_url} if rpc_url else {}
        details.update(kwargs)
        super().__init__(message, details, "RPCConnectionError")


# ============================================================================
# Transaction Errors
# ============================================================================

class TransactionError(DogtraceError):
    """Raised when transaction operations fail."""

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        **kwargs
    ):
        details = {}
        if tx_hash:
            details["tx_hash"] = tx_hash
        details.update(kwargs)
        super().__init__(message, details, "TransactionError")


class TransactionNotFoundError(TransactionError):
    """Raised when transaction is not found."""

    def __init__(self, tx_hash: str, **kwargs):
        super().__init__(
            f"Transaction not found: {tx_hash}",
            tx_hash=tx_hash,
            **kwargs
        )
        self.error_code = "TransactionNotFoundError"


class DebugTraceUnavailableError(TransactionError):
    """Raised when debug trace is not available for a transaction."""

    def __init__(
        self,
        tx_hash: str,
        reason: Optional[str] = None,
        **kwargs
    ):
        message = f"debug_traceTransaction unavailable for {tx_hash}"
        if reason:
            message += f": {reason}"
        super().__init__(message, tx_hash=tx_hash, **kwargs)
        self.error_code = "DebugTraceUnavailable"


# ============================================================================
# Parsing Errors
# ============================================================================

class ParseError(DogtraceError):
    """Raised when parsing fails."""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        details = {"source": source} if source else {}
        details.update(kwargs)
        super().__init__(message, details, "ParseError")


class TraceValidationError(ParseError):
    """Raised when a raw structLog record is missing or mistypes a field."""

    def __init__(
        self,
        message: str,
        step_index: Optional[int] = None,
        field: Optional[str] = None,
        **kwargs
    ):
        if step_index is not None:
            kwargs["step_index"] = step_index
        if field:
            kwargs["field"] = field
        super().__init__(message, **kwargs)
        self.step_index = step_index
        self.field = field
        self.error_code = "TraceValidationError"


class ArtifactError(ParseError):
    """Raised when a compiled artifact cannot be interpreted."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.error_code = "ArtifactError"


# ============================================================================
# Compiler Errors
# ============================================================================

class CompilerError(DogtraceError):
    """Raised when compilation fails."""

    def __init__(
        self,
        message: str,
        compiler_version: Optional[str] = None,
        **kwargs
    ):
        details = {}
        if compiler_version:
            details["compiler_version"] = compiler_version
        details.update(kwargs)
        super().__init__(message, details, "CompilerError")


# ============================================================================
# Error Formatting Utilities
# ============================================================================

def format_error(e: Exception, json_mode: bool = False) -> str:
    """
    Format an exception for display.

    Args:
        e: The exception to format
        json_mode: If True, output as JSON; otherwise use colored text

    Returns:
        Formatted error string
    """
    from dogtrace.utils.colors import error

    if isinstance(e, DogtraceError):
        if json_mode:
            return e.to_json()
        return error(e.message)

    if json_mode:
        return json.dumps(format_error_json(str(e), type(e).__name__), indent=2)
    return error(str(e))


def format_error_json(
    message: str,
    error_type: str = "Error",
    **kwargs
) -> Dict[str, Any]:
    """
    Create a standardized error JSON structure.

    Args:
        message: Error message
        error_type: Error type/code
        **kwargs: Additional fields to include

    Returns:
        Dictionary suitable for JSON output
    """
    return {
        "error": True,
        "type": error_type,
        "message": message,
        **kwargs
    }


def format_exception_message(e: Exception) -> str:
    """
    Extract a clean, user-friendly error message from any exception.
    Works uniformly for all exception types.

    Args:
        e: Exception instance

    Returns:
        Clean error message string
    """
    # Web3RPCError and similar have args[0] as dict
    if hasattr(e, 'args') and e.args:
        first_arg = e.args[0]

        if isinstance(first_arg, dict):
            # RPC error format: {'code': -32003, 'message': '...'}
            return first_arg.get('message', str(e))
        elif isinstance(first_arg, str):
            return first_arg
        else:
            return str(first_arg)

    return str(e)
