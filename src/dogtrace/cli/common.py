"""
Common utilities for CLI commands.

This module provides shared functionality used across multiple CLI commands
to reduce code duplication and ensure consistent behavior.
"""

import json
import re
import sys
from pathlib import Path
from typing import Any, Dict

from dogtrace.config import DebugConfig
from dogtrace.core.transaction_tracer import TransactionTracer
from dogtrace.utils.exceptions import (
    DogtraceError,
    ParseError,
    RPCConnectionError,
    format_error,
)
from dogtrace.utils.colors import info
from dogtrace.utils.logging import logger

TX_HASH_PATTERN = re.compile(r'^0x[a-fA-F0-9]{64}$')


def validate_tx_hash(tx_hash: str) -> str:
    """
    Check that tx_hash is 0x followed by 64 hex characters.

    Raises:
        DogtraceError: If the hash is malformed
    """
    if not tx_hash or not TX_HASH_PATTERN.match(tx_hash):
        raise DogtraceError(
            f"Invalid transaction hash format: {tx_hash!r} (expected 0x + 64 hex characters)",
            error_code="InvalidTransactionHash",
        )
    return tx_hash


def create_tracer(config: DebugConfig) -> TransactionTracer:
    """
    Create and return a TransactionTracer instance.

    Raises:
        RPCConnectionError: If connection to RPC fails
    """
    logger.debug(f"Connecting to RPC: {config.rpc_url}")
    try:
        return TransactionTracer(config.rpc_url, timeout=config.rpc_timeout)
    except DogtraceError:
        raise
    except Exception as e:
        raise RPCConnectionError(f"Failed to connect to RPC: {e}", rpc_url=config.rpc_url)


def load_json_file(path: str, what: str = "JSON file") -> Dict[str, Any]:
    """Read a JSON document, raising ParseError on a missing or invalid file."""
    file_path = Path(path)
    if not file_path.exists():
        raise ParseError(f"{what} not found: {path}", source=path)
    try:
        with open(file_path) as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"{what} is not valid JSON: {e}", source=path)


def read_source_file(path: str) -> str:
    file_path = Path(path)
    if not file_path.exists():
        raise ParseError(f"Source file not found: {path}", source=path)
    try:
        return file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"Source file is not valid UTF-8: {e}", source=path)


def handle_command_error(
    e: Exception,
    json_mode: bool = False,
    exit_code: int = 1
) -> int:
    """
    Handle command errors uniformly.

    Args:
        e: The exception that occurred
        json_mode: If True, output as JSON
        exit_code: Exit code to return

    Returns:
        Exit code
    """
    error_output = format_error(e, json_mode)
    if json_mode:
        print(error_output)
    else:
        print(error_output, file=sys.stderr)
    return exit_code


def print_connection_info(rpc_url: str, json_mode: bool = False) -> None:
    """
    Print RPC connection information.

    Args:
        rpc_url: RPC endpoint URL
        json_mode: If True, skip output (JSON mode handles differently)
    """
    if not json_mode:
        print(f"Connecting to RPC: {info(rpc_url)}")
