"""
Error taxonomy for the agent core.

Only ReasoningUnavailableError is terminal for a request. Every ToolError
raised inside a ReAct step is caught by the Orchestrator and folded into
an error observation so the next reasoning call can react to it.
"""


class AgentError(Exception):
    """Base class for all agent core errors."""
    pass


# ------------------------------------------------------------------
# Terminal
# ------------------------------------------------------------------

class ReasoningUnavailableError(AgentError):
    """Reasoning collaborator failed, timed out or returned garbage."""
    pass


# ------------------------------------------------------------------
# Recoverable (folded into observations)
# ------------------------------------------------------------------

class ToolError(AgentError):
    """Base class for failures scoped to a single tool dispatch."""
    pass


class ToolNotFoundError(ToolError, KeyError):

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' is not registered.")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class ToolDisabledError(ToolError):

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' is disabled.")


class ToolExecutionError(ToolError):
    """Handler raised, or the call was rejected before the handler ran."""
    pass


class ParameterValidationError(ToolExecutionError):
    """Action parameters violate the tool's declared schema."""
    pass


class CallbackNotProvidedError(ToolExecutionError):

    def __init__(self, capability: str):
        self.capability = capability
        super().__init__(f"Callback '{capability}' not provided.")


# ------------------------------------------------------------------
# Sandbox
# ------------------------------------------------------------------

class SandboxError(ToolError):
    pass


class CommandRejectedError(SandboxError):

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Command rejected ({reason}): {command}")


class SandboxTimeoutError(SandboxError):

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Sandboxed execution timed out after {timeout_seconds}s")


class SandboxUnavailableError(SandboxError):
    pass
