from dataclasses import dataclass, field, replace
from typing import Any, Dict, List

from .message import Message, MessageRole
from .observation import ToolObservation


@dataclass(frozen=True)
class Context:
    """
    Working-memory view handed to the reasoning collaborator.

    Rebuilt on every step from the MemoryStore and never stored.
    """

    messages: List[Message] = field(default_factory=list)
    observations: List[ToolObservation] = field(default_factory=list)
    workspace: Dict[str, Any] = field(default_factory=dict)
    knowledge: List[Dict[str, Any]] = field(default_factory=list)
    tools: List[Dict[str, Any]] = field(default_factory=list)

    def with_tools(self, manifest: List[Dict[str, Any]]) -> "Context":
        return replace(self, tools=list(manifest))

    @property
    def last_user_message(self):
        for message in reversed(self.messages):
            if message.role is MessageRole.USER:
                return message
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation": [m.to_dict() for m in self.messages],
            "observations": [o.to_dict() for o in self.observations],
            "workspace": dict(self.workspace),
            "relevant_knowledge": list(self.knowledge),
            "tools": list(self.tools),
        }
