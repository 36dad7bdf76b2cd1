from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional
import json
import time


ObservationStatus = Literal["success", "error", "partial"]

OBSERVATION_STATUSES = ("success", "error", "partial")


@dataclass(frozen=True)
class ToolObservation:
    """
    Immutable record of one dispatched action.

    Every Action the Orchestrator dispatches yields exactly one
    ToolObservation, whatever the outcome:

        success → handler returned normally
        partial → handler returned a PartialResult
        error   → lookup, validation, policy or execution failed

    A ToolObservation is always stored together with its Message
    projection (see `to_message_content`).
    """

    tool: str
    parameters: Dict[str, Any]
    result: Any
    status: ObservationStatus
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if self.status not in OBSERVATION_STATUSES:
            raise ValueError(f"Invalid observation status: {self.status}")

    # ------------------------------------------------------------------
    # Convenience Properties
    # ------------------------------------------------------------------

    @property
    def is_success(self) -> bool:
        return self.status == "success"

    @property
    def is_error(self) -> bool:
        return self.status == "error"

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def to_message_content(self) -> str:
        lines = [
            f"Tool: {self.tool}",
            f"Parameters: {_dump(self.parameters)}",
            f"Status: {self.status}",
        ]

        if self.status in ("success", "partial"):
            lines.append(f"Result: {_dump(self.result)}")

        if self.error:
            lines.append(f"Error: {self.error}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool": self.tool,
            "parameters": dict(self.parameters),
            "result": self.result,
            "status": self.status,
            "error": self.error,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class PartialResult:
    """
    Returned by a handler that only partly achieved its goal.

    The Orchestrator records it as a `partial` observation carrying
    `value` as the result and `reason` as the error text.
    """

    value: Any
    reason: str = ""


def _dump(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, indent=2, default=str)
    except (TypeError, ValueError):
        return str(value)
