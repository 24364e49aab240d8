"""
Failure analysis.

Ties the core components together for one transaction: normalize the raw
trace, find the step that reverted, map it back to the authored source,
decode the revert payload and diff storage. The result is a DebugReport,
which holds plain records only (no raw trace dictionaries, no bytecode).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from dogtrace.config import DebugConfig
from dogtrace.core.revert_decoder import RevertReason, decode_failure
from dogtrace.core.storage_decoder import clean_type_name, decode_storage_value
from dogtrace.core.storage_diff import StorageChange, extract_storage_changes
from dogtrace.core.trace_normalizer import ExecutionStep, RawTrace, normalize_trace
from dogtrace.parsers.artifact import CompiledArtifact, StorageVariable, compare_bytecode
from dogtrace.parsers.bytecode import to_code_bytes
from dogtrace.parsers.function_context import (
    FunctionContext,
    find_requires,
    get_function_context,
)
from dogtrace.parsers.source_map import (
    ResolutionCache,
    ResolutionContext,
    SourceLocation,
)
from dogtrace.utils.hexutil import strip_0x
from dogtrace.utils.logging import get_logger, log_trace

logger = get_logger('analyzer')

REVERT_OPCODES = ('REVERT', 'INVALID')
RESOLVED_HEURISTIC = "heuristic"


@dataclass
class RevertLocation:
    """Where a failed transaction stopped, mapped back to the source."""
    pc: int
    step_index: int
    location: Optional[SourceLocation] = None
    function: Optional[FunctionContext] = None
    trigger_pc: Optional[int] = None

    @property
    def heuristic(self) -> bool:
        return self.location is not None and self.location.resolved_via == RESOLVED_HEURISTIC

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "pc": self.pc,
            "step": self.step_index,
            "triggerPc": self.trigger_pc,
            "heuristic": self.heuristic,
        }
        if self.location is not None:
            result.update(self.location.to_dict())
        if self.function is not None:
            result["function"] = self.function.to_dict()
        return result


@dataclass
class AnnotatedStorageChange:
    """A StorageChange with the state variable it belongs to, when known."""
    change: StorageChange
    variable: Optional[StorageVariable] = None
    old_display: Optional[str] = None
    new_display: Optional[str] = None

    @property
    def label(self) -> str:
        if self.variable is not None:
            return self.variable.name
        return f"Slot {self.change.slot_number}"

    def to_dict(self) -> Dict[str, Any]:
        result = self.change.to_dict()
        if self.variable is not None:
            result["variable"] = self.variable.name
            result["type"] = clean_type_name(self.variable.declared_type)
            result["oldValueDecoded"] = self.old_display
            result["newValueDecoded"] = self.new_display
        return result


@dataclass
class FailureInfo:
    """success flag, decoded reason and location of a transaction outcome."""
    success: bool
    reason: Optional[RevertReason] = None
    location: Optional[RevertLocation] = None

    @property
    def error(self) -> Optional[str]:
        return self.reason.describe() if self.reason is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "error": self.error,
            "revertReason": self.reason.to_dict() if self.reason is not None else None,
            "revertLocation": self.location.to_dict() if self.location is not None else None,
        }


@dataclass
class DebugReport:
    """Everything reported about one transaction."""
    steps: List[ExecutionStep]
    failure: FailureInfo
    storage_changes: List[AnnotatedStorageChange] = field(default_factory=list)
    transaction: Optional[Any] = None
    contract_name: Optional[str] = None
    gas_used: Optional[int] = None
    function_selector: Optional[str] = None
    function_signature: Optional[str] = None
    storage_layout: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    diagnostics: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failure.success

    def to_dict(self, include_steps: bool = True) -> Dict[str, Any]:
        result = {
            "transaction": self.transaction.to_dict() if self.transaction is not None else None,
            "contract": self.contract_name,
            "result": {
                "gasUsed": self.gas_used,
                **self.failure.to_dict(),
            },
            "analysis": {
                "functionSelector": self.function_selector,
                "functionSignature": self.function_signature,
                "storageChanges": [c.to_dict() for c in self.storage_changes],
            },
            "storageLayout": {str(slot): var for slot, var in self.storage_layout.items()},
            "diagnostics": list(self.diagnostics),
        }
        if include_steps:
            result["trace"] = [step.to_dict() for step in self.steps]
        return result


def function_selector(input_data: Union[str, bytes, None]) -> Optional[str]:
    """First 4 bytes of calldata as 0x + 8 hex chars, None if too short."""
    if input_data is None:
        return None
    clean = bytes(input_data).hex() if isinstance(input_data, (bytes, bytearray)) else strip_0x(input_data)
    if len(clean) < 8:
        return None
    return "0x" + clean[:8].lower()


def find_revert_step(steps: Sequence[ExecutionStep]) -> Optional[ExecutionStep]:
    """First REVERT or INVALID step."""
    for step in steps:
        if step.op in REVERT_OPCODES:
            logger.debug(f"Revert opcode {step.op} at step {step.index}, PC {step.pc}")
            return step
    return None


def find_trigger(
    steps: Sequence[ExecutionStep],
    revert_step: ExecutionStep,
    context: ResolutionContext,
) -> Tuple[ExecutionStep, Optional[SourceLocation]]:
    """
    Walk backward from the revert step to the last step of the same frame
    whose PC resolves to the authored source.

    Returns (revert_step, None) when nothing in the frame resolves.
    """
    for index in range(revert_step.index, -1, -1):
        step = steps[index]
        # Other depths run other code; their PCs mean nothing in this table
        if step.depth != revert_step.depth:
            continue
        location = context.resolve(step.pc)
        log_trace(f"Trigger search: step {index} PC {step.pc} {step.op} -> {location}")
        if location is not None:
            if step is not revert_step:
                logger.debug(
                    f"Revert at PC {revert_step.pc} triggered from PC {step.pc} "
                    f"(line {location.line})"
                )
            return step, location
    return revert_step, None


def heuristic_location(context: ResolutionContext) -> Optional[SourceLocation]:
    """First require() in the source, marked as a heuristic location."""
    requires = find_requires(context.source)
    if not requires:
        return None
    first = requires[0]
    raw_line = context.source.line(first.line)
    column = raw_line.find("require") + 1
    logger.debug(f"Falling back to first require() at line {first.line}")
    return SourceLocation(
        line=first.line,
        column=max(column, 1),
        snippet=first.snippet,
        resolved_via=RESOLVED_HEURISTIC,
    )


def locate_revert(
    steps: Sequence[ExecutionStep],
    context: ResolutionContext,
    use_heuristic: bool = True,
) -> Optional[RevertLocation]:
    """Map the first revert in the trace to a source line and its function."""
    revert_step = find_revert_step(steps)
    if revert_step is None:
        return None

    trigger, location = find_trigger(steps, revert_step, context)
    if location is None and use_heuristic:
        location = heuristic_location(context)

    function = None
    trigger_pc = None
    if location is not None:
        function = get_function_context(context.source, location.line)
        if location.resolved_via != RESOLVED_HEURISTIC:
            trigger_pc = trigger.pc

    return RevertLocation(
        pc=revert_step.pc,
        step_index=revert_step.index,
        location=location,
        function=function,
        trigger_pc=trigger_pc,
    )


def annotate_storage_changes(
    changes: Sequence[StorageChange],
    artifact: Optional[CompiledArtifact],
) -> List[AnnotatedStorageChange]:
    """Attach variable names and decoded values from the storage layout."""
    annotated = []
    for change in changes:
        variable = artifact.variable_for_slot(change.slot_number) if artifact is not None else None
        if variable is None:
            annotated.append(AnnotatedStorageChange(change))
            continue
        annotated.append(AnnotatedStorageChange(
            change=change,
            variable=variable,
            old_display=decode_storage_value(change.old_value, variable.declared_type),
            new_display=decode_storage_value(change.new_value, variable.declared_type),
        ))
    return annotated


class FailureAnalyzer:
    """
    Builds DebugReports.

    One analyzer holds one ResolutionCache, so reports for the same contract
    reuse its disassembly and decompressed source map.
    """

    def __init__(self, config: Optional[DebugConfig] = None):
        self.config = config or DebugConfig()
        self.cache = ResolutionCache(
            synthetic_lookback=self.config.synthetic_lookback,
            neighbor_tolerance=self.config.neighbor_tolerance,
        )

    def analyze(
        self,
        trace: Union[RawTrace, Dict[str, Any], None],
        artifact: Optional[CompiledArtifact] = None,
        source_text: Optional[str] = None,
        deployed_bytecode: Optional[str] = None,
        transaction: Optional[Any] = None,
    ) -> DebugReport:
        """
        Analyze one transaction.

        Args:
            trace: Raw debug_traceTransaction result (dict or RawTrace)
            artifact: Compiled contract (bytecode, source map, storage layout)
            source_text: Source of the file the source map points into
            deployed_bytecode: Runtime code read from the chain, if known
            transaction: TransactionInfo from the RPC tracer, if known
        """
        raw = trace if isinstance(trace, RawTrace) else RawTrace.from_dict(trace)
        steps = normalize_trace(raw)
        diagnostics = []

        if not steps:
            diagnostics.append("Trace contains no steps")

        success = self._success(raw, steps, transaction)
        reason = decode_failure(success, raw.return_value, raw.revert_reason)
        failure = FailureInfo(success=success, reason=reason)

        context = self._resolution_context(artifact, source_text, deployed_bytecode, diagnostics)
        if not success and context is not None:
            failure.location = locate_revert(steps, context)
            if failure.location is not None and failure.location.location is None:
                diagnostics.append(f"Could not map revert PC {failure.location.pc} to a source line")

        changes = annotate_storage_changes(extract_storage_changes(steps), artifact)

        gas_used = getattr(transaction, 'gas_used', None)
        if gas_used is None:
            gas_used = raw.gas

        input_data = getattr(transaction, 'input_data', None)

        return DebugReport(
            steps=steps,
            failure=failure,
            storage_changes=changes,
            transaction=transaction,
            contract_name=artifact.contract_name if artifact is not None else None,
            gas_used=gas_used,
            function_selector=function_selector(input_data),
            storage_layout=artifact.storage_layout() if artifact is not None else {},
            diagnostics=diagnostics,
        )

    @staticmethod
    def _success(raw: RawTrace, steps: Sequence[ExecutionStep], transaction: Optional[Any]) -> bool:
        status = getattr(transaction, 'success', None)
        if status is not None:
            return bool(status)
        if raw.failed is not None:
            return not raw.failed
        return find_revert_step(steps) is None

    def _resolution_context(
        self,
        artifact: Optional[CompiledArtifact],
        source_text: Optional[str],
        deployed_bytecode: Optional[str],
        diagnostics: List[str],
    ) -> Optional[ResolutionContext]:
        if artifact is None:
            diagnostics.append("No compiled artifact; source locations unavailable")
            return None
        if source_text is None:
            diagnostics.append("No source text; source locations unavailable")
            return None

        bytecode = artifact.bytecode
        if deployed_bytecode and strip_0x(deployed_bytecode):
            try:
                to_code_bytes(deployed_bytecode)
            except ValueError:
                diagnostics.append("Deployed bytecode is not valid hex; using the compiled bytecode")
                logger.warning(f"Ignoring malformed deployed bytecode ({len(deployed_bytecode)} chars)")
                deployed_bytecode = None

        if deployed_bytecode and strip_0x(deployed_bytecode):
            mismatch = compare_bytecode(artifact.bytecode, deployed_bytecode,
                                        self.config.bytecode_compare_chars)
            if mismatch:
                diagnostics.append(mismatch)
            # PCs in the trace index the code that actually ran
            bytecode = deployed_bytecode

        if not bytecode or not artifact.source_map:
            diagnostics.append("Artifact lacks runtime bytecode or source map")
            return None

        try:
            return self.cache.get_or_build(bytecode, artifact.source_map, source_text)
        except ValueError as e:
            diagnostics.append("Artifact bytecode is not valid hex; source locations unavailable")
            logger.warning(f"Could not disassemble bytecode of {artifact.contract_name or '<unnamed>'}: {e}")
            return None
