from __future__ import annotations

from collections import deque
from threading import Lock
from typing import Any, Deque, Dict, List, Optional
import logging

from ..config import MemoryConfig
from ..models import Context, Message, MessageRole, ToolObservation
from .knowledge import Embedder, KnowledgeIndex

logger = logging.getLogger(__name__)


class MemoryStore:
    """
    Per-session working memory.

    Holds:
        • conversation history (bounded, oldest evicted first)
        • tool observation log (bounded, oldest evicted first)
        • workspace snapshot
        • optional knowledge index

    Every mutation runs under one lock. An observation and its
    observation-role Message are appended inside the same critical
    section, so a reader never sees one without the other.
    """

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        embedder: Optional[Embedder] = None,
    ) -> None:
        self.config = config or MemoryConfig()
        self._lock = Lock()

        self._messages: Deque[Message] = deque(maxlen=self.config.max_conversation_history)
        self._observations: Deque[ToolObservation] = deque(maxlen=self.config.max_observations)
        self._workspace: Dict[str, Any] = {}

        self._knowledge: Optional[KnowledgeIndex] = None
        if embedder is not None and self.config.enable_knowledge_index:
            self._knowledge = KnowledgeIndex(embedder, self.config.similarity_method)
        elif self.config.enable_knowledge_index:
            logger.info("[MEMORY] No embedder supplied, knowledge index disabled")

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def add_user_message(self, content: str, metadata: Optional[Dict[str, Any]] = None) -> Message:
        return self._append(Message(MessageRole.USER, content, metadata=dict(metadata or {})))

    def add_agent_message(self, content: str, metadata: Optional[Dict[str, Any]] = None) -> Message:
        return self._append(Message(MessageRole.AGENT, content, metadata=dict(metadata or {})))

    def add_system_message(self, content: str, metadata: Optional[Dict[str, Any]] = None) -> Message:
        return self._append(Message(MessageRole.SYSTEM, content, metadata=dict(metadata or {})))

    def add_observation(
        self,
        tool: str,
        parameters: Dict[str, Any],
        status: str,
        result: Any = None,
        error: Optional[str] = None,
    ) -> ToolObservation:

        observation = ToolObservation(
            tool=tool,
            parameters=dict(parameters or {}),
            result=result,
            status=status,
            error=error,
        )

        message = Message(
            MessageRole.OBSERVATION,
            observation.to_message_content(),
            timestamp=observation.timestamp,
            metadata={"tool": tool, "status": status},
        )

        with self._lock:
            self._observations.append(observation)
            self._messages.append(message)

        logger.debug(
            "[MEMORY] Observation recorded | tool=%s | status=%s | history=%d",
            tool,
            status,
            len(self._messages)
        )

        return observation

    def get_conversation_history(self, limit: Optional[int] = None) -> List[Message]:
        with self._lock:
            return _tail(self._messages, limit)

    def get_tool_observations(self, limit: Optional[int] = None) -> List[ToolObservation]:
        with self._lock:
            return _tail(self._observations, limit)

    # ------------------------------------------------------------------
    # Workspace
    # ------------------------------------------------------------------

    def set_workspace_context(self, workspace: Dict[str, Any]) -> None:
        with self._lock:
            self._workspace = dict(workspace or {})

    def update_workspace_context(self, updates: Dict[str, Any]) -> None:
        with self._lock:
            self._workspace.update(updates or {})

    def get_workspace_context(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._workspace)

    # ------------------------------------------------------------------
    # Knowledge
    # ------------------------------------------------------------------

    @property
    def knowledge_enabled(self) -> bool:
        return self._knowledge is not None

    def add_knowledge(
        self,
        entry_id: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self._knowledge is None:
            raise RuntimeError("Knowledge index is disabled (no embedder configured).")

        with self._lock:
            self._knowledge.add(entry_id, content, metadata)

    def search_vector_store(self, query: str, limit: int = 5) -> List[Dict[str, Any]]:
        if self._knowledge is None:
            return []

        with self._lock:
            return self._knowledge.search(query, limit)

    # ------------------------------------------------------------------
    # Context Projection
    # ------------------------------------------------------------------

    def get_current_context(self) -> Context:
        """
        Working-memory view for the next reasoning call.

        Knowledge is included only when the index is enabled and the
        history holds at least one user message.
        """

        with self._lock:
            messages = _tail(self._messages, self.config.context_messages)
            observations = _tail(self._observations, self.config.context_observations)
            workspace = dict(self._workspace) if self.config.enable_workspace_context else {}

            last_user = None
            for message in reversed(self._messages):
                if message.role is MessageRole.USER:
                    last_user = message
                    break

            knowledge: List[Dict[str, Any]] = []
            if self._knowledge is not None and last_user is not None:
                try:
                    knowledge = self._knowledge.search(
                        last_user.content,
                        self.config.knowledge_top_k
                    )
                except Exception:
                    # Knowledge is optional context; build the rest without it
                    logger.exception("[MEMORY] Knowledge lookup failed, continuing without it")
                    knowledge = []

        return Context(
            messages=messages,
            observations=observations,
            workspace=workspace,
            knowledge=knowledge,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        with self._lock:
            self._messages.clear()
            self._observations.clear()
            self._workspace = {}
            if self._knowledge is not None:
                self._knowledge.clear()

        logger.info("[MEMORY] Reset complete")

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append(self, message: Message) -> Message:
        with self._lock:
            self._messages.append(message)
        logger.debug("[MEMORY] %s message added | history=%d", message.role.value, len(self._messages))
        return message


def _tail(items, limit: Optional[int]) -> list:
    items = list(items)
    if limit is not None and limit > 0:
        return items[-limit:]
    return items
