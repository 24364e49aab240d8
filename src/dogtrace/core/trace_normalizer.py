"""
Trace normalization.

Turns the `structLogs` array of a step-logging tracer (debug_traceTransaction
with the default struct logger) into ExecutionStep records. Raw records are
validated once, here, by RawStep.from_dict; nothing downstream touches the
raw dictionaries.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from eth_utils import is_hex

from dogtrace.utils.exceptions import TraceValidationError
from dogtrace.utils.hexutil import normalize_word, strip_0x
from dogtrace.utils.logging import get_logger

logger = get_logger('trace')


def _as_word(value: Any, step_index: int, field_name: str) -> str:
    """Stack and memory words: ints or hex strings, kept as 0x-prefixed hex."""
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return hex(value)
    if isinstance(value, str) and (strip_0x(value) == "" or is_hex(value)):
        return value if value.lower().startswith("0x") else "0x" + value
    raise TraceValidationError(
        f"Step {step_index}: field '{field_name}' holds a non-hex word {value!r}",
        step_index=step_index, field=field_name,
    )


def _as_int(value: Any, step_index: int, field_name: str) -> int:
    """Accept ints and numeric strings (decimal or 0x-hex)."""
    if isinstance(value, bool):
        raise TraceValidationError(
            f"Step {step_index}: field '{field_name}' must be an integer, got bool",
            step_index=step_index, field=field_name,
        )
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.lower().startswith('0x') else int(value)
        except ValueError:
            pass
    raise TraceValidationError(
        f"Step {step_index}: field '{field_name}' must be an integer, got {value!r}",
        step_index=step_index, field=field_name,
    )


@dataclass(frozen=True)
class RawStep:
    """One validated structLog record."""
    pc: int
    op: str
    gas: int
    depth: int
    stack: Tuple[str, ...] = ()
    gas_cost: Optional[int] = None
    memory: Optional[Tuple[str, ...]] = None
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "RawStep":
        if not isinstance(data, Mapping):
            raise TraceValidationError(f"Step {index}: expected an object, got {type(data).__name__}",
                                       step_index=index)
        for required in ('pc', 'op', 'gas'):
            if data.get(required) is None:
                raise TraceValidationError(f"Step {index}: missing required field '{required}'",
                                           step_index=index, field=required)

        op = data['op']
        if not isinstance(op, str) or not op:
            raise TraceValidationError(f"Step {index}: field 'op' must be a mnemonic string",
                                       step_index=index, field='op')

        stack = data.get('stack') or []
        if not isinstance(stack, (list, tuple)):
            raise TraceValidationError(f"Step {index}: field 'stack' must be a list",
                                       step_index=index, field='stack')

        memory = data.get('memory')
        if memory is not None and not isinstance(memory, (list, tuple)):
            raise TraceValidationError(f"Step {index}: field 'memory' must be a list of words",
                                       step_index=index, field='memory')

        gas_cost = data.get('gasCost')
        return cls(
            pc=_as_int(data['pc'], index, 'pc'),
            op=op.upper(),
            gas=_as_int(data['gas'], index, 'gas'),
            depth=_as_int(data.get('depth', 0), index, 'depth'),
            stack=tuple(_as_word(item, index, 'stack') for item in stack),
            gas_cost=_as_int(gas_cost, index, 'gasCost') if gas_cost is not None else None,
            memory=tuple(_as_word(word, index, 'memory') for word in memory) if memory is not None else None,
            error=data.get('error'),
        )


@dataclass(frozen=True)
class RawTrace:
    """Validated debug_traceTransaction result."""
    struct_logs: Tuple[RawStep, ...] = ()
    return_value: Optional[str] = None
    revert_reason: Optional[str] = None
    failed: Optional[bool] = None
    gas: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RawTrace":
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise TraceValidationError(f"Trace must be an object, got {type(data).__name__}")

        logs = data.get('structLogs') or []
        if not isinstance(logs, (list, tuple)):
            raise TraceValidationError("Field 'structLogs' must be a list", field='structLogs')

        return_value = data.get('returnValue')
        gas = data.get('gas')
        return cls(
            struct_logs=tuple(RawStep.from_dict(step, i) for i, step in enumerate(logs)),
            return_value=strip_0x(return_value) if isinstance(return_value, str) else None,
            revert_reason=data.get('revertReason'),
            failed=data.get('failed'),
            gas=_as_int(gas, -1, 'gas') if gas is not None else None,
        )


@dataclass(frozen=True)
class StorageWrite:
    """Slot and value captured from an SSTORE (both 0x + 64 hex chars)."""
    slot: str
    value: str


@dataclass(frozen=True)
class ExecutionStep:
    """Represents a single step in EVM execution trace."""
    index: int
    pc: int
    op: str
    gas: int
    gas_cost: int
    depth: int
    stack: Tuple[str, ...] = field(default=(), repr=False)
    memory: Optional[str] = field(default=None, repr=False)
    storage_write: Optional[StorageWrite] = None
    error: Optional[str] = None

    def stack_top(self, position: int = 0) -> Optional[str]:
        """Stack entry `position` places below the top (stack is bottom -> top)."""
        if position < len(self.stack):
            return self.stack[-1 - position]
        return None

    def format_stack(self, max_items: int = 3) -> str:
        """Format stack for display, top first."""
        if not self.stack:
            return "[empty]"

        items = []
        for i, val in enumerate(reversed(self.stack[-max_items:])):
            clean = strip_0x(val).lstrip('0') or '0'
            display = f"0x{clean[:8]}..." if len(clean) > 8 else f"0x{clean}"
            items.append(f"[{i}] {display}")

        if len(self.stack) > max_items:
            items.append(f"... +{len(self.stack) - max_items} more")

        return " ".join(items)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "step": self.index,
            "pc": self.pc,
            "opcode": self.op,
            "gas": self.gas,
            "gasCost": self.gas_cost,
            "stack": list(self.stack),
            "depth": self.depth,
        }
        if self.memory is not None:
            result["memory"] = self.memory
        if self.storage_write is not None:
            result["storage"] = {"key": self.storage_write.slot, "value": self.storage_write.value}
        if self.error:
            result["error"] = self.error
        return result


def _capture_sstore(raw: RawStep) -> Optional[StorageWrite]:
    if len(raw.stack) < 2:
        logger.debug(f"SSTORE at pc {raw.pc} with short stack ({len(raw.stack)} items)")
        return None
    # Key on top, value just below it
    return StorageWrite(
        slot=normalize_word(raw.stack[-1]),
        value=normalize_word(raw.stack[-2]),
    )


def _gas_cost(raw: RawStep, previous: Optional[RawStep]) -> int:
    if previous is None:
        return raw.gas_cost or 0
    delta = previous.gas - raw.gas
    if delta < 0:
        # Gas refunded to the caller when a sub-call returns
        return raw.gas_cost or 0
    return delta


def normalize_trace(
    trace: Union[RawTrace, Dict[str, Any], Iterable[Union[RawStep, Dict[str, Any]]], None]
) -> List[ExecutionStep]:
    """
    Convert raw step records into ExecutionSteps, 1:1 and in order.

    Accepts a RawTrace, a raw debug_traceTransaction dict, or a list of
    structLog dicts / RawSteps. Missing or empty input yields [].
    """
    if trace is None:
        return []
    if isinstance(trace, Mapping):
        trace = RawTrace.from_dict(trace)
    if isinstance(trace, RawTrace):
        raw_steps = trace.struct_logs
    else:
        raw_steps = tuple(
            item if isinstance(item, RawStep) else RawStep.from_dict(item, i)
            for i, item in enumerate(trace)
        )

    steps = []
    previous = None
    for i, raw in enumerate(raw_steps):
        steps.append(ExecutionStep(
            index=i,
            pc=raw.pc,
            op=raw.op,
            gas=raw.gas,
            gas_cost=_gas_cost(raw, previous),
            depth=raw.depth,
            stack=raw.stack,
            memory='0x' + ''.join(strip_0x(w) for w in raw.memory) if raw.memory is not None else None,
            storage_write=_capture_sstore(raw) if raw.op == 'SSTORE' else None,
            error=raw.error,
        ))
        previous = raw

    logger.debug(f"Normalized {len(steps)} trace steps")
    return steps
