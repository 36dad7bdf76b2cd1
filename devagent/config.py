from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple


SIMILARITY_METHODS = {"cosine", "euclidean", "dot"}
REASONING_BACKENDS = {"ollama", "openai"}
MOUNT_MODES = {"ro", "rw"}

DEFAULT_FORBIDDEN_COMMANDS: Tuple[str, ...] = (
    "rm -rf /",
    "sudo",
    "chmod 777",
    "dd",
    "mkfs",
    "format",
    "wget",
    "curl",
    "nc",
    "netcat",
)


@dataclass
class MemoryConfig:
    """
    Bounds and knowledge-index settings for a session's MemoryStore.
    """

    max_conversation_history: int = 100
    max_observations: int = 100

    # Context windows handed to the reasoning collaborator
    context_messages: int = 20
    context_observations: int = 10

    enable_knowledge_index: bool = True
    knowledge_top_k: int = 3
    similarity_method: str = "cosine"

    enable_workspace_context: bool = True

    def __post_init__(self):
        for name in (
            "max_conversation_history",
            "max_observations",
            "context_messages",
            "context_observations",
            "knowledge_top_k",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive.")

        if self.similarity_method not in SIMILARITY_METHODS:
            raise ValueError(f"Unsupported similarity_method: {self.similarity_method}")


@dataclass(frozen=True)
class MountSpec:
    """Extra bind mount for the Docker executor."""

    host_path: str
    container_path: str
    mode: str = "ro"

    def __post_init__(self):
        if not self.host_path or not self.container_path:
            raise ValueError("Mounts need both host_path and container_path.")

        if self.mode not in MOUNT_MODES:
            raise ValueError(f"Unsupported mount mode: {self.mode}")

    def to_volume(self) -> str:
        return f"{self.host_path}:{self.container_path}:{self.mode}"


@dataclass
class SandboxConfig:
    """
    Isolation policy and resource ceilings for sandbox-flagged tools.

    `mandatory` decides what happens when the isolated executor is not
    available: refuse the action, or fall back to direct execution.
    """

    enabled: bool = True
    mandatory: bool = False

    memory_mb: int = 512
    cpu_percent: int = 50
    timeout_seconds: float = 30.0

    # None means "use the session's isolated temp directory"
    working_dir: Optional[str] = None

    allowed_commands: List[str] = field(default_factory=list)
    forbidden_commands: List[str] = field(
        default_factory=lambda: list(DEFAULT_FORBIDDEN_COMMANDS)
    )

    # Executor selection for DevAgentApp ("docker" | "local")
    executor: str = "docker"
    docker_image: str = "node:20-alpine"
    environment: Dict[str, str] = field(default_factory=dict)

    # Bind mounts added next to the workspace mount (docker only)
    mounts: List[MountSpec] = field(default_factory=list)

    def __post_init__(self):
        if self.memory_mb <= 0:
            raise ValueError("memory_mb must be positive.")

        if self.cpu_percent <= 0:
            raise ValueError("cpu_percent must be positive.")

        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive.")

        if self.executor not in {"docker", "local"}:
            raise ValueError(f"Unsupported executor: {self.executor}")

        self.mounts = [
            m if isinstance(m, MountSpec) else MountSpec(**m)
            for m in self.mounts
        ]


@dataclass
class ReasoningConfig:
    backend: str = "ollama"
    model: str = "qwen2.5-coder:7b"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: float = 0.2

    def __post_init__(self):
        if self.backend not in REASONING_BACKENDS:
            raise ValueError(f"Unsupported reasoning backend: {self.backend}")

        if not self.model:
            raise ValueError("Reasoning backend requires a model name.")


@dataclass
class ToolsConfig:
    # None means every registered tool starts enabled
    enabled_tools: Optional[List[str]] = None
    register_builtins: bool = True


@dataclass
class AgentConfig:
    """
    Central configuration object for agent behavior.

    Loading this from disk or a settings store is the host's job;
    `from_dict` accepts the nested mapping it produces.
    """

    max_iterations: int = 15
    reasoning_timeout: float = 60.0

    # Named extension points; both resolve to no-op hooks by default
    enable_backtracking: bool = False
    enable_task_decomposition: bool = False

    memory: MemoryConfig = field(default_factory=MemoryConfig)
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    reasoning: ReasoningConfig = field(default_factory=ReasoningConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)

    def __post_init__(self):
        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be positive.")

        if self.reasoning_timeout <= 0:
            raise ValueError("reasoning_timeout must be positive.")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentConfig":
        data = dict(data or {})

        sections = {
            "memory": MemoryConfig,
            "sandbox": SandboxConfig,
            "reasoning": ReasoningConfig,
            "tools": ToolsConfig,
        }

        kwargs: Dict[str, Any] = {}
        for name, section_cls in sections.items():
            if name in data:
                kwargs[name] = _build_section(section_cls, data.pop(name) or {})

        kwargs.update(_known_fields(cls, data))
        return cls(**kwargs)


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    unknown = [k for k in data if k not in names]
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {unknown}")
    return dict(data)


def _build_section(cls, data: Dict[str, Any]):
    if isinstance(data, cls):
        return data
    return cls(**_known_fields(cls, data))
