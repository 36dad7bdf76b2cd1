from __future__ import annotations

import asyncio
import logging
import os
import shutil
import sys
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..config import MountSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceLimits:
    memory_mb: int = 512
    cpu_percent: int = 50
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class ExecutionOutput:
    exit_code: int
    stdout: str
    stderr: str


class IsolatedExecutor(ABC):
    """
    Execution backend for sandboxed commands.

    Architectural Role
    -------------------
    SandboxGateway enforces *policy* (allow/deny lists, timeouts).
    IsolatedExecutor performs the *actual execution*.

    Executors must:
        • Take a structured argv, never a shell string
        • Apply the memory / CPU ceilings in `limits`
        • Kill the underlying process when the awaiting task is
          cancelled (the gateway cancels on timeout and user abort)
        • Never mutate the provided arguments
    """

    @abstractmethod
    async def run(
        self,
        argv: Sequence[str],
        limits: ResourceLimits,
        working_dir: str,
    ) -> ExecutionOutput:
        """
        Execute `argv` inside the isolation boundary.

        Returns
        -------
        ExecutionOutput
            Exit code and decoded output streams.

        Raises
        ------
        asyncio.CancelledError
            Re-raised after the process has been killed.
        """
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Optional Lifecycle Hooks
    # ------------------------------------------------------------------

    async def is_available(self) -> bool:
        """Default implementation assumes available."""
        return True

    async def shutdown(self) -> None:
        pass


async def _communicate_or_kill(
    proc: asyncio.subprocess.Process,
    on_cancel=None,
) -> ExecutionOutput:
    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        logger.warning("[SANDBOX] Execution cancelled, killing pid=%s", proc.pid)
        if proc.returncode is None:
            proc.kill()
        if on_cancel is not None:
            await on_cancel()
        await proc.wait()
        raise

    return ExecutionOutput(
        exit_code=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


# ============================================================
# DOCKER
# ============================================================

class DockerExecutor(IsolatedExecutor):
    """
    Runs commands in a throw-away container with no network.

    The working directory is bind-mounted read-write at /workspace;
    configured mounts are added after it.
    """

    def __init__(
        self,
        image: str = "node:20-alpine",
        docker_binary: str = "docker",
        network: str = "none",
        environment: Optional[Dict[str, str]] = None,
        mounts: Optional[Sequence[MountSpec]] = None,
    ) -> None:
        self.image = image
        self.docker_binary = docker_binary
        self.network = network
        self.environment = dict(environment or {})
        self.mounts: List[MountSpec] = list(mounts or [])

    def build_argv(
        self,
        argv: Sequence[str],
        limits: ResourceLimits,
        working_dir: str,
        container_name: str,
    ) -> List[str]:

        command = [
            self.docker_binary, "run", "--rm",
            "--name", container_name,
            f"--memory={limits.memory_mb}m",
            f"--cpus={limits.cpu_percent / 100}",
            f"--network={self.network}",
            "-v", f"{working_dir}:/workspace",
            "-w", "/workspace",
        ]

        for mount in self.mounts:
            command += ["-v", mount.to_volume()]

        for key, value in sorted(self.environment.items()):
            command += ["-e", f"{key}={value}"]

        command.append(self.image)
        command.extend(argv)
        return command

    async def run(
        self,
        argv: Sequence[str],
        limits: ResourceLimits,
        working_dir: str,
    ) -> ExecutionOutput:

        container_name = f"devagent-{uuid.uuid4().hex[:12]}"
        command = self.build_argv(argv, limits, working_dir, container_name)

        logger.info("[SANDBOX] docker run | container=%s | argv=%s", container_name, list(argv))

        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        async def kill_container():
            # Killing the CLI does not stop the container itself
            try:
                killer = await asyncio.create_subprocess_exec(
                    self.docker_binary, "kill", container_name,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
                await killer.wait()
            except OSError as e:
                logger.warning("[SANDBOX] docker kill failed for %s: %s", container_name, e)

        return await _communicate_or_kill(proc, on_cancel=kill_container)

    async def is_available(self) -> bool:
        if shutil.which(self.docker_binary) is None:
            return False

        try:
            proc = await asyncio.create_subprocess_exec(
                self.docker_binary, "--version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=10)
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning("[SANDBOX] Docker availability check failed: %s", e)
            return False

        return proc.returncode == 0 and b"Docker version" in stdout


# ============================================================
# LOCAL PROCESS
# ============================================================

class LocalProcessExecutor(IsolatedExecutor):
    """
    Runs commands as a child process with POSIX resource limits.

    Weaker isolation than a container (no filesystem or network
    boundary); intended for hosts without Docker.
    """

    def __init__(self, environment: Optional[Dict[str, str]] = None) -> None:
        self.environment = dict(environment or {})

    def _preexec(self, limits: ResourceLimits):
        if sys.platform == "win32":
            return None

        def apply_limits():
            import resource

            memory = limits.memory_mb * 1024 * 1024
            resource.setrlimit(resource.RLIMIT_AS, (memory, memory))

            cpu_seconds = max(1, int(limits.timeout_seconds * limits.cpu_percent / 100) + 1)
            resource.setrlimit(resource.RLIMIT_CPU, (cpu_seconds, cpu_seconds))

        return apply_limits

    async def run(
        self,
        argv: Sequence[str],
        limits: ResourceLimits,
        working_dir: str,
    ) -> ExecutionOutput:

        env = dict(os.environ)
        env.update(self.environment)

        logger.info("[SANDBOX] local exec | cwd=%s | argv=%s", working_dir, list(argv))

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=working_dir,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                preexec_fn=self._preexec(limits),
            )
        except FileNotFoundError:
            return ExecutionOutput(
                exit_code=127,
                stdout="",
                stderr=f"Command not found: {argv[0]}",
            )

        return await _communicate_or_kill(proc)
