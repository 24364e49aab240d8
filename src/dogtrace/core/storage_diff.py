"""
Storage diffs from a normalized trace.

The struct logger shows no storage before the first access, so the value a
slot held before the transaction is taken from the last SLOAD of that slot
(its result is on top of the stack at the following step). Slots written
without being read first are reported with a zero old value.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from dogtrace.core.trace_normalizer import ExecutionStep
from dogtrace.utils.hexutil import ZERO_WORD, normalize_word, word_to_int
from dogtrace.utils.logging import get_logger

logger = get_logger('storage')


@dataclass(frozen=True)
class StorageChange:
    """One SSTORE, with the slot's previously observed value."""
    slot: str        # 0x + 64 hex chars
    old_value: str
    new_value: str
    step_index: int

    @property
    def slot_number(self) -> int:
        return word_to_int(self.slot)

    @property
    def old_value_decimal(self) -> str:
        return str(word_to_int(self.old_value))

    @property
    def new_value_decimal(self) -> str:
        return str(word_to_int(self.new_value))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slot": self.slot,
            "slotNumber": self.slot_number,
            "oldValue": self.old_value,
            "newValue": self.new_value,
            "oldValueDecimal": self.old_value_decimal,
            "newValueDecimal": self.new_value_decimal,
            "step": self.step_index,
        }


def collect_storage_reads(steps: Sequence[ExecutionStep]) -> Dict[str, str]:
    """Slot -> last value loaded by SLOAD, keys and values normalized."""
    reads = {}
    for i, step in enumerate(steps):
        if step.op != 'SLOAD':
            continue
        queried = step.stack_top()
        if queried is None:
            continue
        # The loaded value appears on the stack in the next step
        if i + 1 >= len(steps):
            continue
        loaded = steps[i + 1].stack_top()
        if loaded is None:
            continue
        reads[normalize_word(queried)] = normalize_word(loaded)
    return reads


def extract_storage_changes(steps: Sequence[ExecutionStep]) -> List[StorageChange]:
    """
    One StorageChange per SSTORE, in step order.

    Repeated writes to the same slot are reported separately; every one of
    them takes its old value from the last SLOAD seen for the slot.
    """
    reads = collect_storage_reads(steps)

    changes = []
    for step in steps:
        write = step.storage_write
        if write is None:
            continue
        changes.append(StorageChange(
            slot=write.slot,
            old_value=reads.get(write.slot, ZERO_WORD),
            new_value=write.value,
            step_index=step.index,
        ))

    logger.debug(f"Storage changes: {len(changes)} ({len(reads)} slots read)")
    return changes
