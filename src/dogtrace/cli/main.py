#!/usr/bin/env python3
"""
Main entry point for dogtrace

This module serves as the CLI entry point, handling argument parsing
and routing to the appropriate command implementations in the cli/ module.
"""

import sys
import argparse

from dogtrace import __version__
from dogtrace.utils.logging import setup_logging

from .debug import debug_command
from .decode import decode_revert_command, decode_slot_command


def _add_logging_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group('logging')
    group.add_argument('--debug', action='store_true', help='Show debug log messages')
    group.add_argument('--verbose', action='store_true', help='Show trace-level log messages')
    group.add_argument('--quiet', '-q', action='store_true', help='Suppress log output')
    group.add_argument('--log-file', help='Also write debug log messages to this file')


def main(argv=None):
    """Main entry point for dogtrace CLI."""
    parser = argparse.ArgumentParser(description='dogtrace - explain failed Ethereum transactions')
    parser.add_argument('--version', '-v', action='version', version=f'%(prog)s {__version__}')

    # Create subparsers for different commands
    subparsers = parser.add_subparsers(dest='command', help='Commands')
    subparsers.required = True

    # debug command
    debug_parser = subparsers.add_parser('debug', help='Explain why a transaction failed')
    debug_parser.add_argument('tx_hash', nargs='?', help='Transaction hash to debug')
    debug_parser.add_argument('--rpc', '-r', default=None, help='RPC URL (default: $DOGTRACE_RPC_URL or http://localhost:8545)')
    debug_parser.add_argument('--timeout', type=int, default=None, help='RPC timeout in seconds')
    debug_parser.add_argument('--trace-file', '-t', help='Read a saved debug_traceTransaction result instead of calling the node')
    debug_parser.add_argument('--contract', '-c', help='Solidity source file to compile for source mapping')
    debug_parser.add_argument('--contract-name', help='Contract to use when the source or artifact defines several')
    debug_parser.add_argument('--artifact', '-a', help='Compiled artifact JSON (solc standard-JSON output or a single contract)')
    debug_parser.add_argument('--source', '-s', help='Solidity source the artifact was compiled from')
    debug_parser.add_argument('--solc', default=None, help='Path to solc binary (default: $DOGTRACE_SOLC or solc)')
    debug_parser.add_argument('--max-changes', type=int, default=None, help='Storage changes to list (default: 5)')
    debug_parser.add_argument('--show-function', action='store_true', help='Print the source of the reverting function')
    debug_parser.add_argument('--lookup-signature', action='store_true', help='Look up the function selector on OpenChain/4byte')
    debug_parser.add_argument('--json', action='store_true', help='Output the report as JSON')
    debug_parser.add_argument('--no-steps', action='store_true', help='Omit the step-by-step trace from JSON output')
    _add_logging_args(debug_parser)

    # decode-revert command
    revert_parser = subparsers.add_parser('decode-revert', help='Decode a revert payload')
    revert_parser.add_argument('payload', help='Revert data (hex)')
    revert_parser.add_argument('--reason', help='Plain revert reason to report for undecodable payloads')
    revert_parser.add_argument('--json', action='store_true', help='Output as JSON')
    _add_logging_args(revert_parser)

    # decode-slot command
    slot_parser = subparsers.add_parser('decode-slot', help='Decode a 32-byte storage value')
    slot_parser.add_argument('value', help='Storage word (hex)')
    slot_parser.add_argument('type', help='Solidity type, e.g. uint256, address, t_string_storage')
    slot_parser.add_argument('--json', action='store_true', help='Output as JSON')
    _add_logging_args(slot_parser)

    args = parser.parse_args(argv)

    setup_logging(
        quiet=args.quiet,
        debug=args.debug,
        verbose=args.verbose,
        log_file=args.log_file,
    )

    # Route commands to CLI modules
    if args.command == 'debug':
        return debug_command(args)
    elif args.command == 'decode-revert':
        return decode_revert_command(args)
    elif args.command == 'decode-slot':
        return decode_slot_command(args)

    return 0


if __name__ == '__main__':
    sys.exit(main())
