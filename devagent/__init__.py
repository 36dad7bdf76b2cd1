"""
devagent: autonomous coding agent core.

ReAct orchestration over a guarded tool catalog, with sandboxed command
execution and bounded per-session memory.
"""

from .agent import AgentSession, Orchestrator
from .app import DevAgentApp
from .config import AgentConfig, MemoryConfig, ReasoningConfig, SandboxConfig, ToolsConfig
from .memory import MemoryStore
from .tools import ToolDefinition, ToolRegistry

__version__ = "0.1.0"

__all__ = [
    "AgentConfig",
    "AgentSession",
    "DevAgentApp",
    "MemoryConfig",
    "MemoryStore",
    "Orchestrator",
    "ReasoningConfig",
    "SandboxConfig",
    "ToolDefinition",
    "ToolRegistry",
    "ToolsConfig",
]
