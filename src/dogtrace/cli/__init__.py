"""
CLI module for dogtrace commands.

This module provides the command-line interface for dogtrace,
including the debug and decode commands.
"""

from .main import main

__all__ = [
    'main',
    'debug_command',
    'decode_revert_command',
    'decode_slot_command',
]


# Lazy imports to avoid circular dependencies
def debug_command(args):
    """Execute the debug command."""
    from .debug import debug_command as _debug_command
    return _debug_command(args)


def decode_revert_command(args):
    """Execute the decode-revert command."""
    from .decode import decode_revert_command as _decode_revert_command
    return _decode_revert_command(args)


def decode_slot_command(args):
    """Execute the decode-slot command."""
    from .decode import decode_slot_command as _decode_slot_command
    return _decode_slot_command(args)
