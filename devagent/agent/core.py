import asyncio
import logging
import time
from typing import Any, Optional, Tuple

from ..config import AgentConfig
from ..errors import AgentError, ReasoningUnavailableError, ToolExecutionError
from ..memory import MemoryStore
from ..models import Action, Context, PartialResult, ReasoningResult, ToolObservation
from ..reasoning import ReasoningEngine
from ..sandbox import SandboxGateway, SandboxResult
from ..tools import ToolDefinition, ToolRegistry
from .hooks import PlanningHook, RecoveryHook
from .state import LoopState, RunState

logger = logging.getLogger(__name__)


REASONING_FAILURE_RESPONSE = (
    "I'm sorry, I couldn't work out how to continue with this request. "
    "The reasoning service failed or returned an invalid answer."
)

ITERATION_LIMIT_RESPONSE = (
    "I've reached the maximum number of steps for this request without "
    "finishing. Please refine the request or continue from where I stopped."
)

CANCELLED_RESPONSE = "The request was cancelled."

INTERNAL_ERROR_RESPONSE = (
    "Something went wrong inside the agent while handling this request."
)


class Orchestrator:
    """
    ReAct loop: reason → act → observe, until done or out of budget.

    Only a reasoning failure ends a request early. Every failure inside
    a dispatch (unknown tool, bad parameters, policy rejection, handler
    error, timeout) becomes an error observation the next reasoning call
    can react to.
    """

    def __init__(
        self,
        reasoner: ReasoningEngine,
        registry: ToolRegistry,
        memory: MemoryStore,
        gateway: Optional[SandboxGateway] = None,
        config: Optional[AgentConfig] = None,
        planning_hook: Optional[PlanningHook] = None,
        recovery_hook: Optional[RecoveryHook] = None,
    ):
        self.reasoner = reasoner
        self.registry = registry
        self.memory = memory
        self.gateway = gateway
        self.config = config or AgentConfig()

        self.planning_hook = planning_hook or PlanningHook()
        self.recovery_hook = recovery_hook or RecoveryHook()

        self.last_run: Optional[RunState] = None

    # ============================================================
    # PUBLIC ENTRY POINT
    # ============================================================

    async def run(self, request: str) -> str:

        total_start = time.time()
        logger.info("====================================================")
        logger.info("[AGENT] New request: %s", request)
        logger.info("====================================================")

        run = RunState(request=request)
        self.last_run = run

        self.memory.add_user_message(request)

        while run.iterations < self.config.max_iterations:

            context = self.memory.get_current_context().with_tools(self.registry.manifest())
            logger.info("[TOOLS AVAILABLE] %s", [t["name"] for t in context.tools])

            run.iterations += 1
            result = await self._reason(context, run)

            if result is None:
                run.transition(LoopState.TERMINATED_FAILURE)
                return self._finish(run, REASONING_FAILURE_RESPONSE, total_start)

            if result.is_complete:
                run.transition(LoopState.TERMINATED_SUCCESS)
                return self._finish(run, result.response, total_start)

            run.transition(LoopState.DISPATCHING)

            action = result.action
            observation = await self._step(action, context)
            run.record_dispatch(action, observation)

            if observation.is_error:
                await self._recover(action, observation, context)

            run.transition(LoopState.AWAITING_REASONING)

        logger.warning(
            "[AGENT] Iteration limit reached | max_iterations=%d",
            self.config.max_iterations
        )
        run.transition(LoopState.TERMINATED_EXHAUSTED)
        return self._finish(run, ITERATION_LIMIT_RESPONSE, total_start)

    # ============================================================
    # REASONING
    # ============================================================

    async def _reason(self, context: Context, run: RunState) -> Optional[ReasoningResult]:

        t0 = time.time()
        try:
            result = await asyncio.wait_for(
                self.reasoner.get_reasoning(context),
                timeout=self.config.reasoning_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                "[REASONING] Timed out after %.1fs (iteration %d)",
                self.config.reasoning_timeout,
                run.iterations
            )
            return None
        except ReasoningUnavailableError as e:
            logger.error("[REASONING] Unavailable: %s", e)
            return None
        except Exception:
            logger.exception("[REASONING] Engine %s raised", self.reasoner.name)
            return None

        logger.info("[REASONING] %.2fs (iteration %d)", time.time() - t0, run.iterations)

        if not isinstance(result, ReasoningResult) or not result.is_well_formed():
            logger.error("[REASONING] Malformed result: %r", result)
            return None

        if result.thought:
            logger.debug("[REASONING] Thought: %s", result.thought)

        return result

    # ============================================================
    # SINGLE STEP
    # ============================================================

    async def _step(self, action: Action, context: Context) -> ToolObservation:
        """
        Dispatch one Action and record exactly one observation.
        """

        t0 = time.time()

        try:
            planned = await self.planning_hook.before_dispatch(action, context)
            if not isinstance(planned, Action):
                raise ToolExecutionError(
                    f"Planning hook returned {type(planned).__name__}, expected Action"
                )
            action = planned
            result = await self._dispatch(action)
            status, value, error = _classify(result)
        except Exception as e:
            status, value, error = "error", None, _describe(e)
            logger.warning("[EXECUTOR] %s failed: %s", action.tool, error)

        observation = self.memory.add_observation(
            tool=action.tool,
            parameters=action.parameters,
            status=status,
            result=value,
            error=error,
        )

        logger.info(
            "[EXECUTOR] %s → %s | %.2fs",
            action.tool,
            status,
            time.time() - t0
        )

        return observation

    async def _dispatch(self, action: Action) -> Any:

        logger.info("[EXECUTOR] Calling tool: %s", action.tool)
        logger.debug("[EXECUTOR INPUT] Tool=%s, Args=%s", action.tool, action.parameters)

        tool = self.registry.resolve(action.tool)
        params = self.registry.validate_parameters(action.tool, action.parameters)

        async def direct():
            return await self._invoke_direct(tool, params)

        if tool.requires_sandbox:
            if self.gateway is None:
                logger.warning(
                    "[EXECUTOR] %s requires sandbox but no gateway is configured; running directly",
                    tool.name
                )
                return await direct()
            return await self.gateway.execute(tool, params, direct)

        return await direct()

    async def _invoke_direct(self, tool: ToolDefinition, params: dict) -> Any:

        call = self.registry.execute(tool.name, params)

        if tool.timeout_seconds is None:
            return await call

        try:
            return await asyncio.wait_for(call, timeout=tool.timeout_seconds)
        except asyncio.TimeoutError:
            raise ToolExecutionError(
                f"Tool '{tool.name}' timed out after {tool.timeout_seconds}s"
            ) from None

    async def _recover(self, action: Action, observation: ToolObservation, context: Context) -> None:
        try:
            await self.recovery_hook.after_failure(action, observation, context)
        except Exception:
            logger.exception("[AGENT] Recovery hook raised for %s", action.tool)

    # ============================================================
    # RESPONSE
    # ============================================================

    def _finish(self, run: RunState, response: str, started: float) -> str:
        self.memory.add_agent_message(response)

        logger.info(
            "[AGENT] Request finished | state=%s | iterations=%d | %.2fs",
            run.state.value,
            run.iterations,
            time.time() - started
        )

        return response


def _classify(result: Any) -> Tuple[str, Any, Optional[str]]:
    """Map a dispatch result to (status, result, error)."""

    if isinstance(result, PartialResult):
        return "partial", result.value, result.reason or None

    if isinstance(result, SandboxResult):
        if result.is_success:
            return "success", result.to_dict(), None
        return "error", result.to_dict(), result.error

    return "success", result, None


def _describe(error: Exception) -> str:
    if isinstance(error, AgentError):
        return str(error)
    return f"{type(error).__name__}: {error}"
