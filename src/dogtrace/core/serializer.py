"""
JSON Serialization for dogtrace reports

Turns a DebugReport into plain JSON for tooling that consumes the
`--json` output.
"""

import json
from enum import Enum
from typing import Any, Dict

from hexbytes import HexBytes

from dogtrace.core.analyzer import DebugReport


class ReportSerializer:
    """Serializes debug reports to JSON."""

    def __init__(self, include_steps: bool = True, indent: int = 2):
        self.include_steps = include_steps
        self.indent = indent

    def _convert_to_serializable(self, obj: Any) -> Any:
        """Convert non-serializable objects to JSON-serializable format."""
        if isinstance(obj, HexBytes):
            return '0x' + bytes(obj).hex()
        elif isinstance(obj, (bytes, bytearray)):
            return '0x' + bytes(obj).hex()
        elif isinstance(obj, Enum):
            return obj.value
        elif isinstance(obj, dict):
            return {str(k): self._convert_to_serializable(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [self._convert_to_serializable(item) for item in obj]
        elif hasattr(obj, 'to_dict'):
            return self._convert_to_serializable(obj.to_dict())
        elif hasattr(obj, '__dict__'):
            return self._convert_to_serializable(obj.__dict__)
        else:
            return obj

    def serialize_report(self, report: DebugReport) -> Dict[str, Any]:
        """Convert a report to a JSON-compatible dict."""
        return self._convert_to_serializable(report.to_dict(include_steps=self.include_steps))

    def to_json(self, report: DebugReport) -> str:
        return json.dumps(self.serialize_report(report), indent=self.indent)
