from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from ..config import SandboxConfig
from ..errors import CommandRejectedError, SandboxTimeoutError, SandboxUnavailableError
from ..tools.schema import ToolDefinition
from .executor import ExecutionOutput, IsolatedExecutor, ResourceLimits
from .policy import CommandPolicy

logger = logging.getLogger(__name__)


DirectCall = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class SandboxResult:
    status: str
    exit_code: int
    stdout: str
    stderr: str
    elapsed_time: float
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_output(cls, output: ExecutionOutput, elapsed: float) -> "SandboxResult":
        if output.exit_code == 0:
            return cls(
                status="success",
                exit_code=0,
                stdout=output.stdout,
                stderr=output.stderr,
                elapsed_time=elapsed,
            )

        return cls(
            status="error",
            exit_code=output.exit_code,
            stdout=output.stdout,
            stderr=output.stderr,
            elapsed_time=elapsed,
            error=f"Command exited with code {output.exit_code}",
        )


class SandboxGateway:
    """
    Routes sandbox-flagged tool calls through the isolation boundary.

    Responsibilities:
        • Command policy (deny-first, then allow-prefix)
        • Resource ceilings and wall-clock timeout
        • Fallback to direct execution when isolation is off or
          (non-mandatory) unavailable

    The gateway never builds shell strings; commands reach the
    executor as argv lists.
    """

    def __init__(
        self,
        config: SandboxConfig,
        executor: IsolatedExecutor,
        working_dir: str,
    ) -> None:
        self.config = config
        self.executor = executor
        self.working_dir = config.working_dir or working_dir
        self.policy = CommandPolicy(
            allowed=config.allowed_commands,
            forbidden=config.forbidden_commands,
        )

        logger.info(
            "[SANDBOX] Gateway ready | enabled=%s | mandatory=%s | executor=%s | workdir=%s",
            config.enabled,
            config.mandatory,
            type(executor).__name__,
            self.working_dir,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(
        self,
        tool: ToolDefinition,
        params: Dict[str, Any],
        direct: DirectCall,
    ) -> Any:

        if not self.config.enabled:
            logger.warning(
                "[SANDBOX] Isolation disabled, running %s directly",
                tool.name
            )
            return await direct()

        if not tool.is_command:
            return await self._run_direct_with_timeout(tool, direct)

        command = params.get(tool.command_parameter)
        argv = self.policy.to_argv(command)
        command_text = self.policy.to_text(command)

        self.policy.check(command_text)
        workdir = self.resolve_working_dir(params, command_text)

        if not await self.executor.is_available():
            if self.config.mandatory:
                logger.error("[SANDBOX] Executor unavailable and isolation is mandatory")
                raise SandboxUnavailableError(
                    f"Isolated executor {type(self.executor).__name__} is not available."
                )

            logger.warning(
                "[SANDBOX] Executor unavailable, falling back to direct execution | tool=%s",
                tool.name
            )
            return await direct()

        limits = self.build_limits(params)

        logger.info(
            "[SANDBOX] Executing %s | argv=%s | limits=%s | workdir=%s",
            tool.name,
            argv,
            limits,
            workdir,
        )

        t0 = time.time()
        try:
            output = await asyncio.wait_for(
                self.executor.run(argv, limits, workdir),
                timeout=limits.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "[SANDBOX] Timeout after %.1fs | tool=%s",
                limits.timeout_seconds,
                tool.name
            )
            raise SandboxTimeoutError(limits.timeout_seconds) from None

        elapsed = time.time() - t0
        result = SandboxResult.from_output(output, elapsed)

        logger.info(
            "[SANDBOX] %s finished | status=%s | exit=%d | %.2fs",
            tool.name,
            result.status,
            result.exit_code,
            elapsed,
        )

        return result

    def resolve_working_dir(self, params: Dict[str, Any], command_text: str) -> str:
        """
        Working directory for one command.

        A requested `workingDir` is resolved against the gateway's
        working directory and must stay inside it.
        """

        requested = params.get("workingDir")
        if not requested:
            return self.working_dir

        if not isinstance(requested, str):
            raise CommandRejectedError(command_text, "workingDir must be a string")

        root = Path(self.working_dir).resolve()
        candidate = (root / requested).resolve()
        if candidate != root and root not in candidate.parents:
            logger.warning("[SANDBOX] Rejected workingDir outside workspace: %s", requested)
            raise CommandRejectedError(command_text, f"workingDir escapes workspace: {requested}")

        return str(candidate)

    def build_limits(self, params: Dict[str, Any]) -> ResourceLimits:
        timeout = self.config.timeout_seconds

        # A requested timeout can only shorten the configured ceiling
        requested = params.get("timeout")
        if (
            isinstance(requested, (int, float))
            and not isinstance(requested, bool)
            and requested > 0
        ):
            timeout = min(float(requested), self.config.timeout_seconds)

        return ResourceLimits(
            memory_mb=self.config.memory_mb,
            cpu_percent=self.config.cpu_percent,
            timeout_seconds=timeout,
        )

    async def shutdown(self) -> None:
        await self.executor.shutdown()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run_direct_with_timeout(self, tool: ToolDefinition, direct: DirectCall) -> Any:
        timeout = self.config.timeout_seconds

        logger.info(
            "[SANDBOX] %s has no command parameter, running handler under %.1fs limit",
            tool.name,
            timeout
        )

        try:
            return await asyncio.wait_for(direct(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("[SANDBOX] Timeout after %.1fs | tool=%s", timeout, tool.name)
            raise SandboxTimeoutError(timeout) from None
