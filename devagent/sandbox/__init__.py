from .executor import (
    DockerExecutor,
    ExecutionOutput,
    IsolatedExecutor,
    LocalProcessExecutor,
    ResourceLimits,
)
from .gateway import SandboxGateway, SandboxResult
from .policy import CommandPolicy

__all__ = [
    "CommandPolicy",
    "DockerExecutor",
    "ExecutionOutput",
    "IsolatedExecutor",
    "LocalProcessExecutor",
    "ResourceLimits",
    "SandboxGateway",
    "SandboxResult",
]
