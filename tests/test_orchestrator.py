"""
Tests for the ReAct orchestrator loop.
"""

import asyncio

import pytest

from conftest import FakeExecutor, table_embedder

from devagent.agent import (
    ITERATION_LIMIT_RESPONSE,
    REASONING_FAILURE_RESPONSE,
    LoopState,
    Orchestrator,
    PlanningHook,
    RecoveryHook,
)
from devagent.config import AgentConfig, SandboxConfig
from devagent.errors import ReasoningUnavailableError
from devagent.memory import MemoryStore
from devagent.models import Action, PartialResult, ReasoningResult
from devagent.reasoning import ReasoningEngine, StaticReasoner
from devagent.sandbox import SandboxGateway
from devagent.tools import ToolDefinition, ToolRegistry, register_builtin_tools


def build(reasoner, registry=None, config=None, gateway=None, **kwargs):
    registry = registry if registry is not None else ToolRegistry()
    return Orchestrator(
        reasoner=reasoner,
        registry=registry,
        memory=MemoryStore(),
        gateway=gateway,
        config=config or AgentConfig(max_iterations=5, reasoning_timeout=5.0),
        **kwargs,
    )


def roles(orchestrator):
    return [m.role.value for m in orchestrator.memory.get_conversation_history()]


class TestCompletion:
    """Tests for requests that finish normally."""

    def test_immediate_completion(self):
        orch = build(StaticReasoner([ReasoningResult.complete("Hello.")]))

        assert asyncio.run(orch.run("hi")) == "Hello."
        assert roles(orch) == ["user", "agent"]
        assert orch.last_run.state is LoopState.TERMINATED_SUCCESS

    def test_fix_bug_end_to_end(self):
        files = {"foo.js": "return a - b;"}

        registry = ToolRegistry(callbacks={"readFile": lambda path: files[path]})
        register_builtin_tools(registry)

        reasoner = StaticReasoner([
            ReasoningResult.act("readFile", {"path": "foo.js"}),
            ReasoningResult.complete("Fixed."),
        ])
        orch = build(reasoner, registry=registry)

        assert asyncio.run(orch.run("fix the bug in foo.js")) == "Fixed."
        assert roles(orch) == ["user", "observation", "agent"]

        obs = orch.memory.get_tool_observations()
        assert len(obs) == 1
        assert obs[0].status == "success"
        assert obs[0].result == "return a - b;"

    def test_context_carries_tool_manifest_and_observation(self, registry):
        reasoner = StaticReasoner([
            ReasoningResult.act("echo", {"text": "ping"}),
            ReasoningResult.complete("done"),
        ])
        orch = build(reasoner, registry=registry)
        asyncio.run(orch.run("go"))

        first, second = reasoner.contexts
        assert [t["name"] for t in first.tools] == ["echo"]
        assert first.last_user_message.content == "go"
        assert [o.result for o in second.observations] == ["ping"]


class TestTermination:
    """Tests for bounded and failed runs."""

    def test_iteration_limit(self, registry):
        reasoner = StaticReasoner([ReasoningResult.act("echo", {"text": "again"})])
        orch = build(reasoner, registry=registry, config=AgentConfig(max_iterations=3))

        assert asyncio.run(orch.run("loop forever")) == ITERATION_LIMIT_RESPONSE
        assert reasoner.calls == 3
        assert len(orch.memory.get_tool_observations()) == 3
        assert roles(orch)[-1] == "agent"
        assert orch.last_run.state is LoopState.TERMINATED_EXHAUSTED

    def test_reasoning_error_is_terminal(self, registry):
        reasoner = StaticReasoner([ReasoningUnavailableError("down")])
        orch = build(reasoner, registry=registry)

        assert asyncio.run(orch.run("hi")) == REASONING_FAILURE_RESPONSE
        assert reasoner.calls == 1
        assert roles(orch) == ["user", "agent"]
        assert orch.last_run.state is LoopState.TERMINATED_FAILURE

    def test_unexpected_reasoner_exception_is_terminal(self):
        orch = build(StaticReasoner([ValueError("bad json")]))
        assert asyncio.run(orch.run("hi")) == REASONING_FAILURE_RESPONSE

    def test_reasoning_timeout(self):
        class SlowReasoner(ReasoningEngine):
            async def get_reasoning(self, context):
                await asyncio.sleep(5)

        orch = build(SlowReasoner(), config=AgentConfig(reasoning_timeout=0.05))
        assert asyncio.run(orch.run("hi")) == REASONING_FAILURE_RESPONSE

    def test_malformed_result(self):
        orch = build(StaticReasoner([ReasoningResult(is_complete=False)]))
        assert asyncio.run(orch.run("hi")) == REASONING_FAILURE_RESPONSE

    def test_complete_without_response_is_malformed(self):
        orch = build(StaticReasoner([ReasoningResult(is_complete=True)]))
        assert asyncio.run(orch.run("hi")) == REASONING_FAILURE_RESPONSE

    def test_knowledge_failure_does_not_end_request(self):
        memory = MemoryStore(embedder=table_embedder({"doc": [1.0]}))
        memory.add_knowledge("k1", "doc")
        reasoner = StaticReasoner([ReasoningResult.complete("done")])
        orch = Orchestrator(reasoner=reasoner, registry=ToolRegistry(), memory=memory)

        assert asyncio.run(orch.run("boom")) == "done"
        assert reasoner.calls == 1
        assert reasoner.contexts[0].knowledge == []


class TestDispatchErrors:
    """Tests for recoverable step failures."""

    def test_unknown_tool_becomes_error_observation(self):
        reasoner = StaticReasoner([
            ReasoningResult.act("teleport", {}),
            ReasoningResult.complete("gave up"),
        ])
        orch = build(reasoner)

        assert asyncio.run(orch.run("go")) == "gave up"

        obs = orch.memory.get_tool_observations()
        assert len(obs) == 1
        assert obs[0].status == "error"
        assert "teleport" in obs[0].error

    def test_disabled_tool_becomes_error_observation(self, registry):
        registry.set_enabled("echo", False)
        reasoner = StaticReasoner([
            ReasoningResult.act("echo", {"text": "x"}),
            ReasoningResult.complete("ok"),
        ])
        orch = build(reasoner, registry=registry)
        asyncio.run(orch.run("go"))

        assert "disabled" in orch.memory.get_tool_observations()[0].error

    def test_handler_exception_yields_one_error_observation(self):
        def explode(params, callbacks):
            raise RuntimeError("kaboom")

        registry = ToolRegistry()
        registry.register(ToolDefinition(name="explode", description="", handler=explode))

        reasoner = StaticReasoner([
            ReasoningResult.act("explode", {}),
            ReasoningResult.complete("recovered"),
        ])
        orch = build(reasoner, registry=registry)

        assert asyncio.run(orch.run("go")) == "recovered"

        obs = orch.memory.get_tool_observations()
        assert len(obs) == 1
        assert obs[0].status == "error"
        assert obs[0].error == "RuntimeError: kaboom"

    def test_invalid_parameters_become_error_observation(self, registry):
        reasoner = StaticReasoner([
            ReasoningResult.act("echo", {"text": 42}),
            ReasoningResult.complete("ok"),
        ])
        orch = build(reasoner, registry=registry)
        asyncio.run(orch.run("go"))

        obs = orch.memory.get_tool_observations()[0]
        assert obs.status == "error"
        assert "expected type string" in obs.error

    def test_tool_timeout(self):
        async def slow(params, callbacks):
            await asyncio.sleep(5)

        registry = ToolRegistry()
        registry.register(ToolDefinition(name="slow", description="", handler=slow, timeout_seconds=0.05))

        reasoner = StaticReasoner([ReasoningResult.act("slow", {}), ReasoningResult.complete("ok")])
        orch = build(reasoner, registry=registry)
        asyncio.run(orch.run("go"))

        assert "timed out" in orch.memory.get_tool_observations()[0].error


class TestResultClassification:
    """Tests for partial and sandboxed results."""

    def test_partial_result(self):
        registry = ToolRegistry()
        registry.register(ToolDefinition(
            name="half",
            description="",
            handler=lambda params, callbacks: PartialResult(value=[1], reason="truncated"),
        ))

        reasoner = StaticReasoner([ReasoningResult.act("half", {}), ReasoningResult.complete("ok")])
        orch = build(reasoner, registry=registry)
        asyncio.run(orch.run("go"))

        obs = orch.memory.get_tool_observations()[0]
        assert obs.status == "partial"
        assert obs.result == [1]
        assert obs.error == "truncated"

    def test_sandboxed_command_routes_through_gateway(self, temp_dir):
        executor = FakeExecutor(exit_code=1, stdout="", stderr="Error: x")
        gateway = SandboxGateway(SandboxConfig(), executor, str(temp_dir))

        registry = ToolRegistry()
        register_builtin_tools(registry)

        reasoner = StaticReasoner([
            ReasoningResult.act("runInTerminal", {"command": "node foo.js"}),
            ReasoningResult.complete("ok"),
        ])
        orch = build(reasoner, registry=registry, gateway=gateway)
        asyncio.run(orch.run("go"))

        assert executor.calls[0][0] == ["node", "foo.js"]

        obs = orch.memory.get_tool_observations()[0]
        assert obs.status == "error"
        assert obs.error == "Command exited with code 1"
        assert obs.result["stderr"] == "Error: x"
        assert obs.result["exit_code"] == 1

    def test_forbidden_command_is_error_observation(self, temp_dir):
        executor = FakeExecutor()
        gateway = SandboxGateway(SandboxConfig(), executor, str(temp_dir))

        registry = ToolRegistry()
        register_builtin_tools(registry)

        reasoner = StaticReasoner([
            ReasoningResult.act("runInTerminal", {"command": "sudo rm -rf /"}),
            ReasoningResult.complete("ok"),
        ])
        orch = build(reasoner, registry=registry, gateway=gateway)
        asyncio.run(orch.run("go"))

        obs = orch.memory.get_tool_observations()[0]
        assert obs.status == "error"
        assert "rejected" in obs.error
        assert executor.calls == []


class TestHooks:
    """Tests for planning and recovery hooks."""

    def test_planning_hook_can_rewrite_action(self, registry):
        class Shout(PlanningHook):
            async def before_dispatch(self, action, context):
                return Action(tool=action.tool, parameters={"text": action.parameters["text"].upper()})

        reasoner = StaticReasoner([
            ReasoningResult.act("echo", {"text": "quiet"}),
            ReasoningResult.complete("ok"),
        ])
        orch = build(reasoner, registry=registry, planning_hook=Shout())
        asyncio.run(orch.run("go"))

        assert orch.memory.get_tool_observations()[0].result == "QUIET"

    def test_planning_hook_returning_non_action_is_error_observation(self, registry):
        class Forgetful(PlanningHook):
            async def before_dispatch(self, action, context):
                return None

        reasoner = StaticReasoner([
            ReasoningResult.act("echo", {"text": "x"}),
            ReasoningResult.complete("ok"),
        ])
        orch = build(reasoner, registry=registry, planning_hook=Forgetful())

        assert asyncio.run(orch.run("go")) == "ok"

        obs = orch.memory.get_tool_observations()
        assert len(obs) == 1
        assert obs[0].tool == "echo"
        assert obs[0].status == "error"
        assert "Planning hook returned NoneType" in obs[0].error

    def test_recovery_hook_called_on_error_only(self, registry):
        seen = []

        class Record(RecoveryHook):
            async def after_failure(self, action, observation, context):
                seen.append((action.tool, observation.status))

        reasoner = StaticReasoner([
            ReasoningResult.act("echo", {"text": "fine"}),
            ReasoningResult.act("missing", {}),
            ReasoningResult.complete("ok"),
        ])
        orch = build(reasoner, registry=registry, recovery_hook=Record())
        asyncio.run(orch.run("go"))

        assert seen == [("missing", "error")]


class TestCancellation:
    """Tests for cancellation propagation."""

    def test_cancelled_error_propagates(self, registry):
        async def scenario():
            gate = asyncio.Event()

            async def hang(params, callbacks):
                gate.set()
                await asyncio.sleep(10)

            registry.register(ToolDefinition(name="hang", description="", handler=hang))
            orch = build(
                StaticReasoner([ReasoningResult.act("hang", {})]),
                registry=registry,
            )

            task = asyncio.ensure_future(orch.run("go"))
            await gate.wait()
            task.cancel()

            with pytest.raises(asyncio.CancelledError):
                await task

            return orch

        orch = asyncio.run(scenario())
        assert orch.memory.get_tool_observations() == []
        assert roles(orch) == ["user"]
