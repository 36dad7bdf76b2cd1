from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import uuid


@dataclass(frozen=True)
class Action:
    """
    A reasoning-issued instruction to execute a tool.

    This is the *execution intent packet* passed from the reasoning
    collaborator to the dispatch layer. It carries no execution logic.
    Parameters are validated against the target tool's schema at
    dispatch time, not here.

    Architectural Role
    ------------------
    ReasoningEngine → Action → ToolRegistry / SandboxGateway
    """

    tool: str
    """Name of the tool to invoke."""

    parameters: Dict[str, Any] = field(default_factory=dict)
    """Raw parameters as produced by the reasoning collaborator."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    """Unique identifier for tracing this action."""

    def __post_init__(self):
        if not isinstance(self.tool, str) or not self.tool:
            raise ValueError("Action tool must be a non-empty string.")

        if self.parameters is None:
            object.__setattr__(self, "parameters", {})

    def __repr__(self) -> str:
        return f"Action(id={self.id[:8]}, tool='{self.tool}')"


@dataclass(frozen=True)
class ReasoningResult:
    """
    Output of one reasoning call.

    Either `is_complete` with a final `response`, or an `action` to
    dispatch. Anything else is malformed and ends the request.
    """

    is_complete: bool
    response: Optional[str] = None
    action: Optional[Action] = None
    thought: str = ""
    """Free-form reasoning text, kept for logging only."""

    @classmethod
    def complete(cls, response: str, thought: str = "") -> "ReasoningResult":
        return cls(is_complete=True, response=response, thought=thought)

    @classmethod
    def act(
        cls,
        tool: str,
        parameters: Optional[Dict[str, Any]] = None,
        thought: str = "",
    ) -> "ReasoningResult":
        return cls(
            is_complete=False,
            action=Action(tool=tool, parameters=dict(parameters or {})),
            thought=thought,
        )

    def is_well_formed(self) -> bool:
        if self.is_complete:
            return isinstance(self.response, str)
        return self.action is not None
