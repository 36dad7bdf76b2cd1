from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict
import time


class MessageRole(str, Enum):
    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"
    OBSERVATION = "observation"


@dataclass(frozen=True)
class Message:
    """
    One entry of the conversation history.

    Messages are immutable once appended to a MemoryStore. Tool results
    enter the history as OBSERVATION messages rendered from their
    ToolObservation.
    """

    role: MessageRole
    """Who produced the message."""

    content: str
    """Plain text content."""

    timestamp: float = field(default_factory=time.time)
    """Unix timestamp when the message was created."""

    metadata: Dict[str, Any] = field(default_factory=dict)
    """Optional structured metadata (e.g. originating tool)."""

    def __post_init__(self):
        object.__setattr__(self, "role", MessageRole(self.role))

        if not isinstance(self.content, str):
            raise TypeError("Message content must be a string.")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp,
            "metadata": dict(self.metadata),
        }

    def __repr__(self) -> str:
        preview = self.content[:40].replace("\n", " ")
        return f"Message(role={self.role.value}, content='{preview}')"
