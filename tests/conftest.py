"""
Shared fixtures for devagent tests.
"""

import asyncio
import tempfile
from pathlib import Path

import pytest

from devagent.config import AgentConfig, MemoryConfig, SandboxConfig
from devagent.memory import MemoryStore
from devagent.sandbox import ExecutionOutput, IsolatedExecutor, SandboxGateway
from devagent.tools import ToolDefinition, ToolRegistry


class FakeExecutor(IsolatedExecutor):
    """Isolated executor double that records argv and returns canned output."""

    def __init__(self, exit_code=0, stdout="", stderr="", delay=0.0, available=True):
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.delay = delay
        self.available = available
        self.calls = []
        self.cancelled = False

    async def run(self, argv, limits, working_dir):
        self.calls.append((list(argv), limits, working_dir))
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return ExecutionOutput(self.exit_code, self.stdout, self.stderr)

    async def is_available(self):
        return self.available


def echo_tool(name="echo", **kwargs):
    """A plain tool that returns its `text` parameter."""

    async def handler(params, callbacks):
        return params["text"]

    return ToolDefinition(
        name=name,
        description="Echo text back",
        handler=handler,
        parameters={
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
            "additionalProperties": False,
        },
        **kwargs,
    )


def table_embedder(table):
    """Embedder that looks texts up in a fixed table."""

    def embed(text):
        return table[text]

    return embed


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def registry():
    """Registry with a single echo tool."""
    reg = ToolRegistry()
    reg.register(echo_tool())
    return reg


@pytest.fixture
def memory():
    return MemoryStore(MemoryConfig())


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def gateway(fake_executor, temp_dir):
    return SandboxGateway(SandboxConfig(), fake_executor, str(temp_dir))


@pytest.fixture
def agent_config():
    return AgentConfig(max_iterations=5, reasoning_timeout=5.0)
