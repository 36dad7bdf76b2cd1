import logging
import os
import threading
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Response, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ..agent import AgentSession
from ..app import DevAgentApp
from ..config import AgentConfig, ReasoningConfig, SandboxConfig
from ..errors import ToolNotFoundError
from ..memory.knowledge import Embedder
from ..reasoning import ReasoningEngine
from ..sandbox import IsolatedExecutor
from ..tools import ToolRegistry
from ..tools.local import LocalWorkspaceCallbacks

logger = logging.getLogger(__name__)


# ============================================================
# Session Manager
# ============================================================

class SessionManager:
    """
    Keeps one AgentSession per session id.

    Every session dispatches through the same ToolRegistry, so enabling
    or disabling a tool applies server-wide. Memory is per session.
    """

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        registry: Optional[ToolRegistry] = None,
        reasoner_factory: Optional[Callable[[], ReasoningEngine]] = None,
        executor: Optional[IsolatedExecutor] = None,
        embedder: Optional[Embedder] = None,
    ):
        logger.info("[SESSION MANAGER] Initializing...")

        self.config = config or AgentConfig()
        self.registry = registry if registry is not None else DevAgentApp.build_registry(self.config.tools)
        self.reasoner_factory = reasoner_factory
        self.executor = executor or DevAgentApp.build_executor(self.config.sandbox)
        self.embedder = embedder

        self._sessions: Dict[str, AgentSession] = {}
        self._lock = threading.Lock()

        logger.info(
            "[SESSION MANAGER] Ready | backend=%s | model=%s | tools=%d",
            self.config.reasoning.backend,
            self.config.reasoning.model,
            len(self.registry)
        )

    @classmethod
    def from_env(cls) -> "SessionManager":
        """
        Build a manager from DEVAGENT_* environment variables.

        DEVAGENT_BACKEND, DEVAGENT_MODEL, DEVAGENT_BASE_URL, DEVAGENT_API_KEY,
        DEVAGENT_EXECUTOR, DEVAGENT_SANDBOX_IMAGE, DEVAGENT_MAX_ITERATIONS,
        DEVAGENT_WORKSPACE (binds filesystem callbacks to that directory).
        """

        reasoning = ReasoningConfig(
            backend=os.getenv("DEVAGENT_BACKEND", "ollama"),
            model=os.getenv("DEVAGENT_MODEL", "qwen2.5-coder:7b"),
            base_url=os.getenv("DEVAGENT_BASE_URL"),
            api_key=os.getenv("DEVAGENT_API_KEY") or os.getenv("OPENAI_API_KEY"),
        )

        workspace = os.getenv("DEVAGENT_WORKSPACE")

        sandbox = SandboxConfig(
            executor=os.getenv("DEVAGENT_EXECUTOR", "docker"),
            docker_image=os.getenv("DEVAGENT_SANDBOX_IMAGE", "node:20-alpine"),
            working_dir=workspace,
        )

        config = AgentConfig(
            max_iterations=int(os.getenv("DEVAGENT_MAX_ITERATIONS", "15")),
            reasoning=reasoning,
            sandbox=sandbox,
        )

        manager = cls(config=config)

        if workspace:
            local = LocalWorkspaceCallbacks(workspace)
            manager.registry.set_callbacks(local.as_mapping())

        return manager

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, session_id: Optional[str] = None) -> AgentSession:

        with self._lock:
            if session_id is not None and session_id in self._sessions:
                raise ValueError(f"Session '{session_id}' already exists.")

            session = DevAgentApp.create_session(
                config=self.config,
                reasoner=self.reasoner_factory() if self.reasoner_factory else None,
                registry=self.registry,
                executor=self.executor,
                embedder=self.embedder,
                session_id=session_id,
            )
            self._sessions[session.id] = session

        logger.info("[SESSION MANAGER] Session created | id=%s | total=%d", session.id, len(self._sessions))
        return session

    def get(self, session_id: str) -> AgentSession:
        with self._lock:
            return self._sessions[session_id]

    def close(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id)
        session.close()
        logger.info("[SESSION MANAGER] Session closed | id=%s", session_id)

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()

    def list_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


# ============================================================
# Models
# ============================================================

class CreateSessionRequest(BaseModel):
    session_id: Optional[str] = None

class SessionResponse(BaseModel):
    session_id: str

class ProcessRequest(BaseModel):
    text: str

class ProcessResponse(BaseModel):
    session_id: str
    response: str

class MessageModel(BaseModel):
    role: str
    content: str
    timestamp: float
    metadata: Dict[str, Any] = {}

class HistoryResponse(BaseModel):
    session_id: str
    messages: List[MessageModel]

class ToolInfo(BaseModel):
    name: str
    description: str
    parameters: Dict[str, Any]
    requires_sandbox: bool
    enabled: bool


# ============================================================
# FastAPI App
# ============================================================

def create_app(manager: SessionManager) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        manager.close_all()
        logger.info("[SERVER] Shutdown complete, sessions closed")

    app = FastAPI(title="DevAgent Core", version="0.1.0", lifespan=lifespan)
    app.state.manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_session(session_id: str) -> AgentSession:
        try:
            return manager.get(session_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="Session not found") from None

    # ------------------------------------------------------------
    # Health
    # ------------------------------------------------------------

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "reasoning_backend": manager.config.reasoning.backend,
            "reasoning_model": manager.config.reasoning.model,
            "sessions": len(manager),
            "tools": len(manager.registry),
        }

    # ------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------

    @app.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
    def create_session(request: Optional[CreateSessionRequest] = None):
        try:
            session = manager.create_session(request.session_id if request else None)
        except ValueError as e:
            raise HTTPException(status_code=409, detail=str(e)) from None
        except Exception:
            logger.exception("[SERVER] Session creation failed")
            raise HTTPException(status_code=500, detail="Session creation failed")

        return SessionResponse(session_id=session.id)

    @app.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_session(session_id: str):
        try:
            manager.close(session_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="Session not found") from None
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/sessions/{session_id}/request", response_model=ProcessResponse)
    async def process_request(session_id: str, request: ProcessRequest):
        session = get_session(session_id)

        try:
            text = await session.process_request(request.text)
        except Exception:
            logger.exception("[SERVER] Request failed | session=%s", session_id)
            raise HTTPException(status_code=500, detail="Internal error")

        return ProcessResponse(session_id=session_id, response=text)

    @app.get("/sessions/{session_id}/history", response_model=HistoryResponse)
    def history(session_id: str, limit: Optional[int] = None):
        session = get_session(session_id)
        messages = [MessageModel(**m.to_dict()) for m in session.get_conversation_history(limit)]
        return HistoryResponse(session_id=session_id, messages=messages)

    @app.post("/sessions/{session_id}/reset")
    def reset(session_id: str):
        get_session(session_id).reset()
        return {"status": "reset", "session_id": session_id}

    @app.post("/sessions/{session_id}/cancel")
    def cancel(session_id: str):
        cancelled = get_session(session_id).cancel()
        return {"cancelled": cancelled, "session_id": session_id}

    # ------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------

    @app.get("/tools", response_model=List[ToolInfo])
    def list_tools():
        registry = manager.registry
        return [
            ToolInfo(
                name=t.name,
                description=t.description,
                parameters=t.parameters,
                requires_sandbox=t.requires_sandbox,
                enabled=registry.is_enabled(t.name),
            )
            for t in registry.list_all()
        ]

    @app.post("/tools/{name}/enable")
    def enable_tool(name: str):
        return _set_enabled(name, True)

    @app.post("/tools/{name}/disable")
    def disable_tool(name: str):
        return _set_enabled(name, False)

    def _set_enabled(name: str, enabled: bool):
        try:
            manager.registry.set_enabled(name, enabled)
        except ToolNotFoundError:
            raise HTTPException(status_code=404, detail="Tool not found") from None
        return {"tool": name, "enabled": enabled}

    return app


# ============================================================
# Instantiate
# ============================================================

app = create_app(SessionManager.from_env())
