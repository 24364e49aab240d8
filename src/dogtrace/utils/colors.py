"""
ANSI color helpers for terminal output.

Colors are disabled automatically when stdout is not a TTY or when the
NO_COLOR environment variable is set.
"""

import os
import sys


class Colors:
    """ANSI escape sequences."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    BRIGHT_RED = '\033[91m'
    BRIGHT_GREEN = '\033[92m'
    BRIGHT_YELLOW = '\033[93m'
    BRIGHT_BLUE = '\033[94m'
    BRIGHT_MAGENTA = '\033[95m'
    BRIGHT_CYAN = '\033[96m'


SUPPORTS_COLOR = (
    hasattr(sys.stdout, 'isatty')
    and sys.stdout.isatty()
    and 'NO_COLOR' not in os.environ
)


def _wrap(text, code: str) -> str:
    if not SUPPORTS_COLOR:
        return str(text)
    return f"{code}{text}{Colors.RESET}"


def bold(text) -> str:
    return _wrap(text, Colors.BOLD)


def dim(text) -> str:
    return _wrap(text, Colors.DIM)


# Semantic helpers

def error(text) -> str:
    return _wrap(text, Colors.BRIGHT_RED)


def success(text) -> str:
    return _wrap(text, Colors.BRIGHT_GREEN)


def warning(text) -> str:
    return _wrap(text, Colors.BRIGHT_YELLOW)


def info(text) -> str:
    return _wrap(text, Colors.BRIGHT_CYAN)


def highlight(text) -> str:
    return _wrap(text, Colors.BOLD + Colors.BRIGHT_YELLOW)


def number(text) -> str:
    return _wrap(text, Colors.BRIGHT_BLUE)


def function_name(text) -> str:
    return _wrap(text, Colors.BOLD + Colors.BRIGHT_MAGENTA)


def bullet_point(text: str) -> str:
    """Format a bulleted list item."""
    return f"  {dim('-')} {text}"
