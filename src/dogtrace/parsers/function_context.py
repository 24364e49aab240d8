"""
Recover the Solidity function surrounding a source line.

Works on plain text: a backward scan for the nearest declaration, then a
forward brace-depth scan for its end. No parser, so it is cheap and never
fails on code the compiler would reject.
"""

import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Union

from dogtrace.parsers.source_map import SourceText

DECLARATION_PATTERNS = [
    (re.compile(r'\bfunction\s+(\w+)\s*\('), None),
    (re.compile(r'\bconstructor\s*\('), 'constructor'),
    (re.compile(r'\bfallback\s*\('), 'fallback'),
    (re.compile(r'\breceive\s*\(\s*\)'), 'receive'),
    (re.compile(r'\bmodifier\s+(\w+)'), None),
]

REVERT_KINDS = [
    ('require', re.compile(r'\brequire\s*\(')),
    ('revert', re.compile(r'\brevert\s*[\(\s]')),
    ('assert', re.compile(r'\bassert\s*\(')),
    ('division', re.compile(r'\s/\s')),
    ('array_access', re.compile(r'\[\s*\w+\s*\]')),
]


@dataclass(frozen=True)
class FunctionContext:
    """Function enclosing a line of interest."""
    name: str
    start_line: int
    end_line: int
    code: str
    target_line: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PotentialRevert:
    """A source line that could have produced a revert."""
    line: int
    snippet: str
    function_name: str
    kind: str


def _lines_of(source: Union[str, SourceText]) -> List[str]:
    if isinstance(source, SourceText):
        return source.lines
    return source.split("\n")


def extract_declaration_name(line: str) -> Optional[str]:
    """Name declared on this line, if it declares a function-like block."""
    code = line.split("//", 1)[0]
    for pattern, fixed_name in DECLARATION_PATTERNS:
        match = pattern.search(code)
        if match:
            return fixed_name or match.group(1)
    return None


def _is_bodyless_declaration(line: str) -> bool:
    """`function f() external;` in interfaces and abstract contracts."""
    code = line.split("//", 1)[0].strip()
    return code.endswith(";") and "{" not in code


def _find_block_end(lines: List[str], start_line: int) -> int:
    depth = 0
    opened = False
    for line_idx in range(start_line - 1, len(lines)):
        code = lines[line_idx].split("//", 1)[0]
        for char in code:
            if char == '{':
                depth += 1
                opened = True
            elif char == '}':
                depth -= 1
                if opened and depth == 0:
                    return line_idx + 1
    # Unbalanced braces: run to end of file
    return len(lines)


def get_function_context(source: Union[str, SourceText], line_number: int) -> Optional[FunctionContext]:
    """
    Get the full function containing line_number (1-based).

    Returns None when no declaration exists at or above the line.
    """
    lines = _lines_of(source)
    if line_number < 1 or line_number > len(lines):
        return None

    start_line = None
    name = None
    for line_idx in range(line_number - 1, -1, -1):
        name = extract_declaration_name(lines[line_idx])
        if name and not _is_bodyless_declaration(lines[line_idx]):
            start_line = line_idx + 1
            break

    if start_line is None:
        return None

    end_line = _find_block_end(lines, start_line)

    return FunctionContext(
        name=name,
        start_line=start_line,
        end_line=end_line,
        code="\n".join(lines[start_line - 1:end_line]),
        target_line=line_number,
    )


def find_potential_reverts(source: Union[str, SourceText]) -> List[PotentialRevert]:
    """
    Find all lines that can revert: require(), revert, assert(), divisions
    and array indexing. Each result carries the function it appears in.
    """
    results = []
    current_function = "unknown"

    for line_idx, line in enumerate(_lines_of(source)):
        trimmed = line.strip()
        if trimmed.startswith("//"):
            continue

        declared = extract_declaration_name(trimmed)
        if declared and not _is_bodyless_declaration(trimmed):
            current_function = declared

        for kind, pattern in REVERT_KINDS:
            if pattern.search(trimmed):
                results.append(PotentialRevert(
                    line=line_idx + 1,
                    snippet=trimmed,
                    function_name=current_function,
                    kind=kind,
                ))

    return results


def find_requires(source: Union[str, SourceText]) -> List[PotentialRevert]:
    """Only the require() statements, in source order."""
    return [r for r in find_potential_reverts(source) if r.kind == 'require']
