import asyncio
import logging
import shutil
import uuid
from typing import Any, Callable, Dict, List, Optional

from ..memory import MemoryStore
from ..models import Message
from ..sandbox import SandboxGateway
from ..tools import ToolRegistry
from .core import CANCELLED_RESPONSE, INTERNAL_ERROR_RESPONSE, Orchestrator

logger = logging.getLogger(__name__)


class AgentSession:
    """
    One conversation with the agent.

    A session owns its MemoryStore and working directory; the
    ToolRegistry it dispatches through is shared configuration.

    Requests on a session run one after another. `cancel()` aborts the
    request in flight, and `process_request` then returns
    CANCELLED_RESPONSE. `process_request` never raises agent errors;
    the caller always receives text.
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        working_dir: str,
        owns_working_dir: bool = False,
        session_id: Optional[str] = None,
    ):
        self.id = session_id or str(uuid.uuid4())
        self.orchestrator = orchestrator
        self.working_dir = working_dir
        self._owns_working_dir = owns_working_dir

        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._cancel_requested = False
        self._closed = False

        logger.info("[SESSION] Created %s | workdir=%s", self.id, working_dir)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def memory(self) -> MemoryStore:
        return self.orchestrator.memory

    @property
    def registry(self) -> ToolRegistry:
        return self.orchestrator.registry

    @property
    def gateway(self) -> Optional[SandboxGateway]:
        return self.orchestrator.gateway

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Host Integration Surface
    # ------------------------------------------------------------------

    def register_tool_handler(self, name: str, fn: Callable[..., Any]) -> None:
        self.registry.register_callback(name, fn)

    async def process_request(self, text: str) -> str:

        if self._closed:
            raise RuntimeError(f"Session {self.id} is closed.")

        async with self._lock:
            self._cancel_requested = False
            self._task = asyncio.ensure_future(self.orchestrator.run(text))

            try:
                return await self._task

            except asyncio.CancelledError:
                if not self._cancel_requested:
                    # Caller was cancelled, not the request
                    raise
                logger.warning("[SESSION] %s request cancelled", self.id)
                self.memory.add_agent_message(CANCELLED_RESPONSE)
                return CANCELLED_RESPONSE

            except Exception:
                logger.exception("[SESSION] %s request failed", self.id)
                self.memory.add_agent_message(INTERNAL_ERROR_RESPONSE)
                return INTERNAL_ERROR_RESPONSE

            finally:
                self._task = None
                self._cancel_requested = False

    def cancel(self) -> bool:
        """
        Cancel the request in flight.

        Returns False when nothing was running.
        """

        task = self._task
        if task is None or task.done():
            return False

        logger.info("[SESSION] Cancelling request on %s", self.id)
        self._cancel_requested = True
        task.cancel()
        return True

    def get_conversation_history(self, limit: Optional[int] = None) -> List[Message]:
        return self.memory.get_conversation_history(limit)

    def reset(self) -> None:
        self.memory.reset()
        logger.info("[SESSION] %s reset", self.id)

    # ------------------------------------------------------------------
    # Workspace / Knowledge passthrough
    # ------------------------------------------------------------------

    def set_workspace_context(self, workspace: Dict[str, Any]) -> None:
        self.memory.set_workspace_context(workspace)

    def update_workspace_context(self, updates: Dict[str, Any]) -> None:
        self.memory.update_workspace_context(updates)

    def add_knowledge(self, entry_id: str, content: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.memory.add_knowledge(entry_id, content, metadata)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return

        self.cancel()
        self._closed = True

        if self._owns_working_dir:
            shutil.rmtree(self.working_dir, ignore_errors=True)

        logger.info("[SESSION] Closed %s", self.id)

    def __repr__(self) -> str:
        return f"AgentSession(id={self.id[:8]}, history={len(self.memory)})"
