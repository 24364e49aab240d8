"""
Source Map Resolver for Solidity runtime bytecode.

Parses the compressed `evm.deployedBytecode.sourceMap` string emitted by solc.
Format specification: https://docs.soliditylang.org/en/latest/internals/source_mappings.html

Each srcmap entry is `s:l:f:j:m` where:
- s = byte offset in source file
- l = length in bytes
- f = source file index (0 = the authored file; anything else is
      compiler-generated Yul such as overflow or bounds checks)
- j = jump type (i=into function, o=out of function, -=regular)
- m = modifier depth

Entries are separated by `;`. Empty fields inherit from previous entry.

Resolution state lives in ResolutionContext, built once per
(bytecode, source map, source text) triple and never mutated. Contexts for
different contracts are kept apart by ResolutionCache, keyed by code hash.
"""

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from dogtrace.config import DEFAULT_NEIGHBOR_TOLERANCE, DEFAULT_SYNTHETIC_LOOKBACK
from dogtrace.parsers.bytecode import InstructionTable, code_hash, to_code_bytes
from dogtrace.utils.logging import get_logger

logger = get_logger('source_map')

AUTHORED_FILE_INDEX = 0

RESOLVED_DIRECT = "direct"
RESOLVED_SYNTHETIC_LOOKBACK = "synthetic_lookback"
RESOLVED_NEIGHBOR = "neighbor"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class SourceMapEntry:
    """Single source mapping entry."""
    start: int       # s - byte offset in source file
    length: int      # l - length in bytes
    file_index: int  # f - source file index (-1 = no source)
    jump_type: str = "-"     # j - accepted, not interpreted
    modifier_depth: int = 0  # m

    def is_authored(self) -> bool:
        """True when this entry points into the authored source file."""
        return self.file_index == AUTHORED_FILE_INDEX and self.start >= 0


@dataclass(frozen=True)
class SourceLocation:
    """A resolved position in the authored source."""
    line: int      # 1-based
    column: int    # 1-based, in characters
    snippet: str   # the whole line, trimmed
    instruction_index: Optional[int] = None
    resolved_via: str = RESOLVED_DIRECT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line": self.line,
            "column": self.column,
            "snippet": self.snippet,
            "instruction_index": self.instruction_index,
            "resolved_via": self.resolved_via,
        }


# =============================================================================
# Decompression
# =============================================================================

def _field(fields: List[str], position: int) -> Optional[str]:
    if len(fields) > position and fields[position].strip():
        return fields[position].strip()
    return None


def decompress_source_map(srcmap: str) -> Tuple[SourceMapEntry, ...]:
    """
    Parse srcmap string into one SourceMapEntry per instruction index.

    Format: "s:l:f:j:m;s:l:f:j:m;..."
    Empty fields inherit from previous entry. Parsing stops at the first
    entry that cannot be read; entries before it are kept.
    """
    if not srcmap:
        return ()

    entries = []

    prev_start = 0
    prev_length = 0
    prev_file_index = -1
    prev_jump_type = "-"
    prev_modifier_depth = 0

    for position, part in enumerate(srcmap.split(";")):
        fields = part.split(":")
        try:
            start = int(_field(fields, 0)) if _field(fields, 0) is not None else prev_start
            length = int(_field(fields, 1)) if _field(fields, 1) is not None else prev_length
            file_index = int(_field(fields, 2)) if _field(fields, 2) is not None else prev_file_index
            jump_type = _field(fields, 3) or prev_jump_type
            modifier_depth = int(_field(fields, 4)) if _field(fields, 4) is not None else prev_modifier_depth
        except ValueError:
            logger.warning(
                f"Malformed source map entry {position} ({part!r}); "
                f"keeping the {len(entries)} entries before it"
            )
            break

        entries.append(SourceMapEntry(
            start=start,
            length=length,
            file_index=file_index,
            jump_type=jump_type,
            modifier_depth=modifier_depth,
        ))

        prev_start = start
        prev_length = length
        prev_file_index = file_index
        prev_jump_type = jump_type
        prev_modifier_depth = modifier_depth

    return tuple(entries)


# =============================================================================
# Source text
# =============================================================================

class SourceText:
    """
    UTF-8 source of the authored file with byte-offset lookups.

    Source map offsets count bytes, so line starts are computed over the
    encoded text and columns are converted back to characters.
    """

    def __init__(self, text: str):
        self.text = text
        self.lines: List[str] = text.split("\n")
        self._encoded_lines = [line.encode("utf-8") for line in self.lines]
        self._line_starts: List[int] = []
        offset = 0
        for encoded in self._encoded_lines:
            self._line_starts.append(offset)
            offset += len(encoded) + 1  # newline
        self.byte_length = len(text.encode("utf-8"))

    def __len__(self) -> int:
        return len(self.lines)

    def offset_to_line_col(self, offset: int) -> Optional[Tuple[int, int]]:
        """Convert byte offset to 1-based (line, column); None if outside the text."""
        if offset < 0 or offset >= self.byte_length:
            return None
        line_idx = bisect_right(self._line_starts, offset) - 1
        in_line = offset - self._line_starts[line_idx]
        prefix = self._encoded_lines[line_idx][:in_line]
        col = len(prefix.decode("utf-8", errors="ignore")) + 1
        return (line_idx + 1, col)

    def line(self, line_number: int) -> str:
        """Raw text of a 1-based line, '' when out of range."""
        if 0 < line_number <= len(self.lines):
            return self.lines[line_number - 1]
        return ""

    def context(self, line_number: int, context_lines: int = 2) -> List[Dict[str, Any]]:
        """Lines around line_number, each flagged with whether it is the current one."""
        start_line = max(1, line_number - context_lines)
        end_line = min(len(self.lines), line_number + context_lines)
        return [
            {
                "number": i,
                "content": self.lines[i - 1].rstrip(),
                "current": i == line_number,
            }
            for i in range(start_line, end_line + 1)
        ]


# =============================================================================
# Resolution
# =============================================================================

@dataclass(frozen=True)
class ResolutionContext:
    """Everything needed to map a PC of one bytecode to the authored source."""
    instructions: InstructionTable
    entries: Tuple[SourceMapEntry, ...] = field(repr=False)
    source: SourceText = field(repr=False)
    synthetic_lookback: int = DEFAULT_SYNTHETIC_LOOKBACK
    neighbor_tolerance: int = DEFAULT_NEIGHBOR_TOLERANCE

    @classmethod
    def build(
        cls,
        bytecode: Union[str, bytes],
        source_map: str,
        source_text: str,
        synthetic_lookback: int = DEFAULT_SYNTHETIC_LOOKBACK,
        neighbor_tolerance: int = DEFAULT_NEIGHBOR_TOLERANCE,
    ) -> "ResolutionContext":
        instructions = InstructionTable.from_bytecode(bytecode)
        entries = decompress_source_map(source_map)
        if entries and len(entries) != len(instructions):
            logger.debug(
                f"Source map has {len(entries)} entries for {len(instructions)} instructions"
            )
        return cls(
            instructions=instructions,
            entries=entries,
            source=SourceText(source_text),
            synthetic_lookback=synthetic_lookback,
            neighbor_tolerance=neighbor_tolerance,
        )

    @property
    def code_hash(self) -> str:
        return self.instructions.code_hash

    def entry_at(self, instruction_index: int) -> Optional[SourceMapEntry]:
        if 0 <= instruction_index < len(self.entries):
            return self.entries[instruction_index]
        return None

    def entry_for_pc(self, pc: int) -> Optional[SourceMapEntry]:
        """Get source mapping entry for a specific PC."""
        instr_idx = self.instructions.instruction_index(pc)
        if instr_idx is None:
            return None
        return self.entry_at(instr_idx)

    def _locate(self, entry: SourceMapEntry, instruction_index: int,
                resolved_via: str) -> Optional[SourceLocation]:
        line_col = self.source.offset_to_line_col(entry.start)
        if line_col is None:
            logger.debug(
                f"Instruction {instruction_index} points at offset {entry.start}, "
                f"outside the {self.source.byte_length}-byte source"
            )
            return None
        line, col = line_col
        return SourceLocation(
            line=line,
            column=col,
            snippet=self.source.line(line).strip(),
            instruction_index=instruction_index,
            resolved_via=resolved_via,
        )

    def _resolve_synthetic(self, instruction_index: int) -> Optional[SourceLocation]:
        """Last authored instruction leading into compiler-generated code."""
        for distance in range(1, self.synthetic_lookback + 1):
            prev_index = instruction_index - distance
            if prev_index < 0:
                break
            entry = self.entries[prev_index]
            if entry.file_index == AUTHORED_FILE_INDEX:
                logger.debug(
                    f"Found triggering instruction {prev_index} (offset -{distance}) "
                    f"for generated instruction {instruction_index}"
                )
                return self._locate(entry, prev_index, RESOLVED_SYNTHETIC_LOOKBACK)

        logger.debug(
            f"No authored instruction within {self.synthetic_lookback} instructions "
            f"before {instruction_index}"
        )
        return None

    def _resolve_neighbor(self, instruction_index: int) -> Optional[SourceLocation]:
        """Nearest authored entry within the tolerance window, closest first."""
        for distance in range(1, self.neighbor_tolerance + 1):
            for candidate in (instruction_index - distance, instruction_index + distance):
                entry = self.entry_at(candidate)
                if entry is not None and entry.file_index == AUTHORED_FILE_INDEX:
                    logger.debug(f"Using nearby instruction {candidate} for {instruction_index}")
                    return self._locate(entry, candidate, RESOLVED_NEIGHBOR)
        return None

    def resolve_instruction(self, instruction_index: int) -> Optional[SourceLocation]:
        entry = self.entry_at(instruction_index)

        if entry is None:
            logger.debug(
                f"No source map entry for instruction {instruction_index} "
                f"(map size: {len(self.entries)})"
            )
            return self._resolve_neighbor(instruction_index)

        if entry.file_index != AUTHORED_FILE_INDEX:
            logger.debug(
                f"Instruction {instruction_index} is in file index {entry.file_index} "
                f"(compiler-generated code)"
            )
            return self._resolve_synthetic(instruction_index)

        return self._locate(entry, instruction_index, RESOLVED_DIRECT)

    def resolve(self, pc: int) -> Optional[SourceLocation]:
        """Map a program counter to a location in the authored source, or None."""
        instr_idx = self.instructions.instruction_index(pc)
        if instr_idx is None:
            logger.debug(f"No instruction index for PC {pc}")
            return None
        return self.resolve_instruction(instr_idx)

    def is_authored_pc(self, pc: int) -> bool:
        """True when pc maps directly (no fallback) to the authored file."""
        entry = self.entry_for_pc(pc)
        return entry is not None and entry.is_authored()

    def get_source_context(self, pc: int, context_lines: int = 2) -> Optional[Dict[str, Any]]:
        """Get source code context around a PC."""
        location = self.resolve(pc)
        if location is None:
            return None
        return {
            **location.to_dict(),
            "lines": self.source.context(location.line, context_lines),
        }


class ResolutionCache:
    """
    ResolutionContext instances keyed by bytecode hash.

    One cache per analysis; a context built for one contract's code is never
    consulted for a PC executing in another contract's code.
    """

    def __init__(self,
                 synthetic_lookback: int = DEFAULT_SYNTHETIC_LOOKBACK,
                 neighbor_tolerance: int = DEFAULT_NEIGHBOR_TOLERANCE):
        self.synthetic_lookback = synthetic_lookback
        self.neighbor_tolerance = neighbor_tolerance
        self._contexts: Dict[str, ResolutionContext] = {}
        self._inputs: Dict[str, Tuple[str, str]] = {}

    def get(self, code_hash: str) -> Optional[ResolutionContext]:
        return self._contexts.get(code_hash)

    def get_or_build(self, bytecode: Union[str, bytes], source_map: str,
                     source_text: str) -> ResolutionContext:
        key = code_hash(to_code_bytes(bytecode))
        cached = self._contexts.get(key)
        if cached is not None and self._inputs.get(key) == (source_map, source_text):
            return cached

        if cached is not None:
            logger.debug(f"Rebuilding resolution context for {key[:10]}: inputs changed")
        context = ResolutionContext.build(
            bytecode, source_map, source_text,
            synthetic_lookback=self.synthetic_lookback,
            neighbor_tolerance=self.neighbor_tolerance,
        )
        self._contexts[key] = context
        self._inputs[key] = (source_map, source_text)
        return context

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, code_hash: str) -> bool:
        return code_hash in self._contexts
