"""
Core runtime data models for the agent.

These dataclasses define the structured packets that move between
the major layers (Reasoning, Dispatch, Sandbox, Memory).
"""

from .action import Action, ReasoningResult
from .context import Context
from .message import Message, MessageRole
from .observation import PartialResult, ToolObservation

__all__ = [
    "Action",
    "ReasoningResult",
    "Context",
    "Message",
    "MessageRole",
    "PartialResult",
    "ToolObservation",
]
