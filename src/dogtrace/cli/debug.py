"""
Debug command implementation.

Explains why a transaction failed: fetches (or loads) its trace, maps the
revert back to a Solidity line and function, decodes the revert reason and
lists the storage writes it made.
"""

from typing import Any, Optional, Tuple

from dogtrace.compiler.solc import compile_contract
from dogtrace.config import DebugConfig
from dogtrace.core.analyzer import DebugReport, FailureAnalyzer
from dogtrace.core.serializer import ReportSerializer
from dogtrace.core.transaction_tracer import TransactionInfo, lookup_function_signature
from dogtrace.parsers.artifact import CompiledArtifact, load_artifact
from dogtrace.utils.colors import (
    bold,
    dim,
    error,
    function_name,
    highlight,
    info,
    number,
    success,
    warning,
)
from dogtrace.utils.exceptions import DogtraceError, ParseError
from dogtrace.utils.logging import logger
from dogtrace.cli.common import (
    create_tracer,
    handle_command_error,
    load_json_file,
    print_connection_info,
    read_source_file,
    validate_tx_hash,
)

RULE = '─' * 50


def debug_command(args) -> int:
    """
    Execute the debug command.

    Args:
        args: Parsed command arguments

    Returns:
        Exit code (0 when a report was produced, non-zero for error)
    """
    json_mode = getattr(args, 'json', False)
    config = DebugConfig.from_env().with_overrides(
        rpc_url=getattr(args, 'rpc', None),
        rpc_timeout=getattr(args, 'timeout', None),
        solc_path=getattr(args, 'solc', None),
        max_storage_changes_shown=getattr(args, 'max_changes', None),
    )

    try:
        trace, transaction, deployed_code = _acquire_trace(args, config, json_mode)
        artifact, source_text = _load_contract(args, config)

        report = FailureAnalyzer(config).analyze(
            trace,
            artifact=artifact,
            source_text=source_text,
            deployed_bytecode=deployed_code,
            transaction=transaction,
        )
    except DogtraceError as e:
        return handle_command_error(e, json_mode)

    if getattr(args, 'lookup_signature', False) and report.function_selector:
        report.function_signature = lookup_function_signature(report.function_selector)

    if json_mode:
        serializer = ReportSerializer(include_steps=not getattr(args, 'no_steps', False))
        print(serializer.to_json(report))
    else:
        print_report(report, config, show_function=getattr(args, 'show_function', False))
    return 0


def _acquire_trace(args, config: DebugConfig, json_mode: bool) -> Tuple[Any, Optional[TransactionInfo], Optional[str]]:
    """Trace from --trace-file, or fetched over RPC for the given hash."""
    if getattr(args, 'trace_file', None):
        data = load_json_file(args.trace_file, "Trace file")
        if not isinstance(data, dict):
            raise ParseError("Trace file must hold a JSON object", source=args.trace_file)
        # Raw JSON-RPC response saved as-is
        if isinstance(data.get('result'), dict) and 'structLogs' not in data:
            data = {**data['result'], **{k: v for k, v in data.items() if k == 'transaction'}}
        transaction = None
        if isinstance(data.get('transaction'), dict):
            transaction = TransactionInfo.from_dict(data['transaction'])
        logger.debug(f"Loaded trace from {args.trace_file}")
        return data, transaction, data.get('deployedBytecode')

    if not getattr(args, 'tx_hash', None):
        raise DogtraceError("Provide a transaction hash or --trace-file", error_code="MissingInput")

    tx_hash = validate_tx_hash(args.tx_hash)
    print_connection_info(config.rpc_url, json_mode)
    tracer = create_tracer(config)
    traced = tracer.trace_transaction(tx_hash)
    return traced.trace, traced.info, traced.deployed_code


def _load_contract(args, config: DebugConfig) -> Tuple[Optional[CompiledArtifact], Optional[str]]:
    """Artifact and source from --contract (compiled) or --artifact/--source."""
    contract_name = getattr(args, 'contract_name', None)

    if getattr(args, 'contract', None):
        return compile_contract(args.contract, contract_name, solc_path=config.solc_path)

    if getattr(args, 'artifact', None):
        artifact = load_artifact(args.artifact, contract_name)
        source_text = read_source_file(args.source) if getattr(args, 'source', None) else None
        if source_text is None:
            logger.warning("--artifact given without --source; revert lines cannot be shown")
        return artifact, source_text

    return None, None


def print_report(report: DebugReport, config: DebugConfig, show_function: bool = False) -> None:
    """Print a human-readable summary of a report."""
    tx = report.transaction

    print(f"\n{bold('Transaction Summary')}")
    print(RULE)
    if tx is not None and tx.tx_hash:
        print(f"Transaction: {info(tx.tx_hash)}")
    if report.contract_name:
        print(f"Contract: {report.contract_name}")
    print(f"Status: {success('Success') if report.success else error('Failed')}")

    if report.gas_used is not None:
        gas_line = f"Gas Used: {number(report.gas_used)}"
        if tx is not None and tx.gas_limit:
            gas_line += f" ({report.gas_used / tx.gas_limit * 100:.2f}%)"
        print(gas_line)
    if tx is not None and tx.block_number:
        print(f"Block: {tx.block_number}")
    if report.function_selector:
        selector_line = f"Selector: {report.function_selector}"
        if report.function_signature:
            selector_line += f" ({function_name(report.function_signature)})"
        print(selector_line)

    failure = report.failure
    if failure.error:
        print(f"\n{error('Revert reason:')} {failure.error}")

    if failure.location is not None and failure.location.location is not None:
        _print_location(failure.location, show_function)

    _print_storage_changes(report, config.max_storage_changes_shown)

    for message in report.diagnostics:
        print(f"\n{warning('Warning:')} {message}")


def _print_location(revert, show_function: bool) -> None:
    loc = revert.location
    title = "Revert Location (heuristic):" if revert.heuristic else "Revert Location:"
    print(f"\n{bold(title)}")
    if revert.function is not None:
        print(f"   Function: {function_name(revert.function.name + '()')}")
    print(f"   Line {loc.line}: {loc.snippet}")

    if show_function and revert.function is not None:
        fn = revert.function
        print()
        for offset, text in enumerate(fn.code.split("\n")):
            line_no = fn.start_line + offset
            marker = '>' if line_no == fn.target_line else ' '
            rendered = f"{marker} {line_no:4d} | {text}"
            print(highlight(rendered) if line_no == fn.target_line else dim(rendered))


def _print_storage_changes(report: DebugReport, limit: int) -> None:
    changes = report.storage_changes
    if not changes:
        return
    print(f"\n{bold(f'Storage Changes ({len(changes)})')}")
    print(RULE)
    for annotated in changes[:limit]:
        change = annotated.change
        if annotated.variable is not None:
            old, new = annotated.old_display, annotated.new_display
        else:
            old, new = change.old_value_decimal, change.new_value_decimal
        print(f"   {annotated.label}: {old} → {new}")
    if len(changes) > limit:
        print(f"   ... and {len(changes) - limit} more")
