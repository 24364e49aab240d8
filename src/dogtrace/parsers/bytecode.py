"""
Bytecode disassembly into an instruction-index table.

Solidity source maps are indexed by instruction, while traces report the
program counter (byte offset). PUSH1..PUSH32 carry 1..32 immediate bytes that
are not instructions themselves, so the two numberings drift apart as soon as
the code contains a PUSH.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Union

from eth_hash.auto import keccak
from eth_utils import decode_hex

from dogtrace.utils.logging import get_logger

logger = get_logger('bytecode')

PUSH1 = 0x60
PUSH32 = 0x7f


def push_data_size(opcode: int) -> int:
    """Number of immediate bytes following opcode (0 for non-PUSH)."""
    if PUSH1 <= opcode <= PUSH32:
        return opcode - (PUSH1 - 1)
    return 0


def to_code_bytes(bytecode: Union[str, bytes]) -> bytes:
    """Accept hex (with or without 0x) or raw bytes."""
    if isinstance(bytecode, (bytes, bytearray)):
        return bytes(bytecode)
    return decode_hex(bytecode.strip())


def build_pc_to_instruction_map(code: bytes) -> Dict[int, int]:
    """
    Build mapping from PC (bytecode offset) to instruction index.

    A PUSH truncated by the end of the buffer is still recorded as an
    instruction; the walk simply ends there.
    """
    pc_to_idx = {}
    pc = 0
    instr_idx = 0

    while pc < len(code):
        pc_to_idx[pc] = instr_idx
        pc += 1 + push_data_size(code[pc])
        instr_idx += 1

    return pc_to_idx


def code_hash(code: bytes) -> str:
    """Content hash identifying a bytecode (keccak256, 0x-prefixed)."""
    return '0x' + keccak(code).hex()


@dataclass(frozen=True)
class InstructionTable:
    """Immutable PC -> instruction index table for one bytecode."""
    code_hash: str
    code_size: int
    pc_to_index: Mapping[int, int] = field(repr=False)

    @classmethod
    def from_bytecode(cls, bytecode: Union[str, bytes]) -> "InstructionTable":
        code = to_code_bytes(bytecode)
        table = build_pc_to_instruction_map(code)
        logger.debug(f"Built PC map with {len(table)} entries from {len(code)} bytes")
        return cls(
            code_hash=code_hash(code),
            code_size=len(code),
            pc_to_index=MappingProxyType(table),
        )

    def instruction_index(self, pc: int) -> Optional[int]:
        """Instruction index starting at pc, or None when pc is push data or out of range."""
        return self.pc_to_index.get(pc)

    def __len__(self) -> int:
        return len(self.pc_to_index)

    def __contains__(self, pc: int) -> bool:
        return pc in self.pc_to_index
