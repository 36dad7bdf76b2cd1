from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple


# Capability names a host may bind callbacks for.
KNOWN_CAPABILITIES = frozenset({
    "readFile",
    "writeFile",
    "applyPatch",
    "runInTerminal",
    "findFile",
    "getCodeContext",
    "analyzeCode",
    "detectBugs",
    "generateTests",
    "analyzeDependencies",
    "generateDocumentation",
})


@dataclass(frozen=True)
class ToolDefinition:
    """
    Declarative contract describing an agent capability.

    A ToolDefinition says WHAT the agent may do. The bound `handler`
    performs it using the host-provided callback set:

        handler(params, callbacks) -> result   (sync or async)

    This object is the canonical contract between runtime layers:

        ReasoningEngine → ParameterValidator → ToolRegistry → SandboxGateway → MemoryStore

    Runtime Policy
    --------------
    - requires_sandbox: dispatch must go through the SandboxGateway
    - command_parameter: name of the parameter holding a command line;
      when set, the gateway runs that command in the isolated executor
      instead of calling the handler
    - required_callbacks: capabilities the handler needs; checked against
      KNOWN_CAPABILITIES at registration and against the bound set at
      execution
    """

    # ------------------------------------------------------------------
    # Core Identity
    # ------------------------------------------------------------------

    name: str
    description: str
    handler: Callable[..., Any]

    # ------------------------------------------------------------------
    # Parameter Schema (JSON-schema subset)
    # ------------------------------------------------------------------

    parameters: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    # ------------------------------------------------------------------
    # Runtime Policy Metadata
    # ------------------------------------------------------------------

    requires_sandbox: bool = False
    command_parameter: Optional[str] = None
    required_callbacks: Tuple[str, ...] = field(default_factory=tuple)
    timeout_seconds: Optional[float] = None

    # NOTE: Tuple used instead of List to preserve immutability
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise ValueError("Tool name must be a non-empty string.")

        if not callable(self.handler):
            raise TypeError(f"Tool '{self.name}' handler must be callable.")

        if not isinstance(self.parameters, dict):
            raise TypeError("parameters must be a dictionary.")

        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive.")

        object.__setattr__(self, "required_callbacks", tuple(self.required_callbacks))
        object.__setattr__(self, "tags", tuple(self.tags))

        if self.command_parameter is not None:
            if not self.requires_sandbox:
                raise ValueError(
                    "command_parameter is only meaningful for sandboxed tools."
                )
            properties = self.parameters.get("properties", {})
            if self.command_parameter not in properties:
                raise ValueError(
                    f"command_parameter '{self.command_parameter}' is not a declared parameter."
                )

    # ------------------------------------------------------------------
    # Derived Properties
    # ------------------------------------------------------------------

    @property
    def is_command(self) -> bool:
        return self.command_parameter is not None

    def to_manifest(self) -> Dict[str, Any]:
        """Reasoning-facing description of this tool."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
            "requires_sandbox": self.requires_sandbox,
        }

    def to_debug_string(self) -> str:
        return (
            f"[TOOL] {self.name} | sandbox={self.requires_sandbox} "
            f"| callbacks={list(self.required_callbacks)} | tags={list(self.tags)}"
        )
