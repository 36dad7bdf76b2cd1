"""
Tool catalog and dispatch.

Exposes:
- ToolDefinition (declarative contract)
- ToolRegistry (capability boundary)
- ToolCallbacks (host-provided capability set)
- register_builtin_tools (default coding tools)
"""

from .builtin import BUILTIN_TOOLS, register_builtin_tools
from .callbacks import ToolCallbacks
from .registry import ToolRegistry
from .schema import KNOWN_CAPABILITIES, ToolDefinition

__all__ = [
    "BUILTIN_TOOLS",
    "KNOWN_CAPABILITIES",
    "ToolCallbacks",
    "ToolDefinition",
    "ToolRegistry",
    "register_builtin_tools",
]
