import logging
import tempfile
from typing import Any, Callable, Mapping, Optional

from .agent import AgentSession, Orchestrator, PlanningHook, RecoveryHook
from .config import AgentConfig, SandboxConfig, ToolsConfig
from .memory import MemoryStore
from .memory.knowledge import Embedder
from .reasoning import ReasoningEngine, create_reasoner
from .sandbox import DockerExecutor, IsolatedExecutor, LocalProcessExecutor, SandboxGateway
from .tools import ToolRegistry, register_builtin_tools

logger = logging.getLogger(__name__)


class DevAgentApp:
    """
    Top-level facade for constructing agent sessions.

    This class is the **public entry point** of the package. It hides
    the wiring between:

        • Framework-owned cognition (orchestrator, memory, sandbox routing)
        • Host-owned infrastructure (callbacks, reasoning backend, executor)

    Design Principles
    -----------------
    • No global state: every call returns a new, independent session
    • Sessions never share memory; a registry may be shared on purpose
    • Anything not passed in is built from AgentConfig
    """

    @staticmethod
    def create_session(
        *,
        config: Optional[AgentConfig] = None,
        reasoner: Optional[ReasoningEngine] = None,
        registry: Optional[ToolRegistry] = None,
        callbacks: Optional[Mapping[str, Callable[..., Any]]] = None,
        executor: Optional[IsolatedExecutor] = None,
        embedder: Optional[Embedder] = None,
        working_dir: Optional[str] = None,
        planning_hook: Optional[PlanningHook] = None,
        recovery_hook: Optional[RecoveryHook] = None,
        session_id: Optional[str] = None,
    ) -> AgentSession:
        """
        Construct and return a fully wired AgentSession.

        Parameters
        ----------
        config : AgentConfig, optional
            Loop budget, memory bounds, sandbox policy, reasoning backend
            and tool enablement. Defaults to AgentConfig().

        reasoner : ReasoningEngine, optional
            Reasoning collaborator. Built from `config.reasoning` when
            omitted.

        registry : ToolRegistry, optional
            Shared tool catalog. A fresh one (with the built-in tools
            when `config.tools.register_builtins`) is built when omitted.

        callbacks : Mapping[str, callable], optional
            Host capability functions bound on the registry.

        executor : IsolatedExecutor, optional
            Isolation backend. Built from `config.sandbox.executor` when
            omitted.

        embedder : callable, optional
            text → vector function. Without it the knowledge index is off.

        working_dir : str, optional
            Sandbox working directory. A private temp directory, removed
            by `AgentSession.close()`, is created when neither this nor
            `config.sandbox.working_dir` is set.

        Returns
        -------
        AgentSession
        """

        config = config or AgentConfig()

        if registry is None:
            registry = DevAgentApp.build_registry(config.tools)

        if callbacks:
            for name, fn in callbacks.items():
                registry.register_callback(name, fn)

        if reasoner is None:
            reasoner = create_reasoner(config.reasoning, timeout_seconds=config.reasoning_timeout)

        owns_working_dir = False
        working_dir = working_dir or config.sandbox.working_dir
        if not working_dir:
            working_dir = tempfile.mkdtemp(prefix="devagent-")
            owns_working_dir = True

        if executor is None:
            executor = DevAgentApp.build_executor(config.sandbox)

        gateway = SandboxGateway(config.sandbox, executor, working_dir)
        memory = MemoryStore(config.memory, embedder=embedder)

        if config.enable_task_decomposition and planning_hook is None:
            logger.info("[APP] Task decomposition enabled without a planning hook; using no-op")

        if config.enable_backtracking and recovery_hook is None:
            logger.info("[APP] Backtracking enabled without a recovery hook; using no-op")

        orchestrator = Orchestrator(
            reasoner=reasoner,
            registry=registry,
            memory=memory,
            gateway=gateway,
            config=config,
            planning_hook=planning_hook if config.enable_task_decomposition else None,
            recovery_hook=recovery_hook if config.enable_backtracking else None,
        )

        return AgentSession(
            orchestrator,
            working_dir=working_dir,
            owns_working_dir=owns_working_dir,
            session_id=session_id,
        )

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    @staticmethod
    def build_registry(
        tools_config: Optional[ToolsConfig] = None,
        callbacks: Optional[Mapping[str, Callable[..., Any]]] = None,
    ) -> ToolRegistry:

        tools_config = tools_config or ToolsConfig()
        registry = ToolRegistry(callbacks=callbacks, enabled_tools=tools_config.enabled_tools)

        if tools_config.register_builtins:
            register_builtin_tools(registry)

        return registry

    @staticmethod
    def build_executor(sandbox_config: SandboxConfig) -> IsolatedExecutor:

        if sandbox_config.executor == "local":
            return LocalProcessExecutor(environment=sandbox_config.environment)

        return DockerExecutor(
            image=sandbox_config.docker_image,
            environment=sandbox_config.environment,
            mounts=sandbox_config.mounts,
        )
