"""
Tests for the command policy, sandbox gateway and executors.
"""

import asyncio
import os
import shutil
import sys
import time

import pytest

from conftest import FakeExecutor

from devagent.app import DevAgentApp
from devagent.config import MountSpec, SandboxConfig
from devagent.errors import CommandRejectedError, SandboxTimeoutError, SandboxUnavailableError
from devagent.sandbox import (
    CommandPolicy,
    DockerExecutor,
    ExecutionOutput,
    LocalProcessExecutor,
    ResourceLimits,
    SandboxGateway,
    SandboxResult,
)
from devagent.tools.builtin import ANALYZE_CODE_TOOL, RUN_IN_TERMINAL_TOOL


def direct_marker():
    async def direct():
        return "direct"
    return direct


class TestCommandPolicy:
    """Tests for allow/deny command policy."""

    def test_forbidden_substring_rejected(self):
        policy = CommandPolicy(forbidden=["sudo"])
        with pytest.raises(CommandRejectedError):
            policy.check("sudo ls")

    def test_forbidden_wins_over_allowed(self):
        policy = CommandPolicy(allowed=["rm"], forbidden=["rm -rf /"])
        with pytest.raises(CommandRejectedError, match="forbidden"):
            policy.check("rm -rf /")

    def test_allow_list_is_prefix_match(self):
        policy = CommandPolicy(allowed=["npm test", "node"])
        assert policy.is_allowed("npm test -- --watch")
        assert policy.is_allowed("node foo.js")
        assert not policy.is_allowed("python foo.py")

    def test_empty_allow_list_allows_everything_not_forbidden(self):
        policy = CommandPolicy(forbidden=["curl"])
        assert policy.is_allowed("ls -la")
        assert not policy.is_allowed("curl example.com")

    def test_to_argv_splits_strings(self):
        assert CommandPolicy.to_argv("node 'my file.js' --flag") == ["node", "my file.js", "--flag"]

    def test_to_argv_keeps_lists(self):
        assert CommandPolicy.to_argv(["ls", "-la"]) == ["ls", "-la"]

    def test_to_argv_rejects_unparseable(self):
        with pytest.raises(CommandRejectedError):
            CommandPolicy.to_argv("echo 'unterminated")

    def test_to_argv_rejects_empty(self):
        with pytest.raises(CommandRejectedError):
            CommandPolicy.to_argv("   ")

    def test_to_argv_rejects_non_string_items(self):
        with pytest.raises(CommandRejectedError):
            CommandPolicy.to_argv(["ls", 3])

    def test_to_text_quotes_lists(self):
        assert CommandPolicy.to_text(["echo", "a b"]) == "echo 'a b'"


class TestSandboxGateway:
    """Tests for SandboxGateway.execute."""

    def test_success_result(self, temp_dir):
        executor = FakeExecutor(stdout="ok\n")
        gw = SandboxGateway(SandboxConfig(), executor, str(temp_dir))

        result = asyncio.run(gw.execute(RUN_IN_TERMINAL_TOOL, {"command": "ls -la"}, direct_marker()))

        assert isinstance(result, SandboxResult)
        assert result.status == "success"
        assert result.exit_code == 0
        assert result.stdout == "ok\n"
        assert result.error is None

        argv, limits, workdir = executor.calls[0]
        assert argv == ["ls", "-la"]
        assert limits == ResourceLimits(memory_mb=512, cpu_percent=50, timeout_seconds=30.0)
        assert workdir == str(temp_dir)

    def test_nonzero_exit_is_error(self, temp_dir):
        gw = SandboxGateway(SandboxConfig(), FakeExecutor(exit_code=2, stderr="bad"), str(temp_dir))

        result = asyncio.run(gw.execute(RUN_IN_TERMINAL_TOOL, {"command": "false"}, direct_marker()))

        assert result.status == "error"
        assert result.exit_code == 2
        assert result.error == "Command exited with code 2"
        assert result.to_dict()["stderr"] == "bad"

    def test_forbidden_command_never_reaches_executor(self, temp_dir):
        executor = FakeExecutor()
        config = SandboxConfig(allowed_commands=["rm"])
        gw = SandboxGateway(config, executor, str(temp_dir))

        with pytest.raises(CommandRejectedError):
            asyncio.run(gw.execute(RUN_IN_TERMINAL_TOOL, {"command": "rm -rf /"}, direct_marker()))

        assert executor.calls == []

    def test_command_outside_allow_list_rejected(self, temp_dir):
        gw = SandboxGateway(SandboxConfig(allowed_commands=["npm"]), FakeExecutor(), str(temp_dir))

        with pytest.raises(CommandRejectedError, match="allow list"):
            asyncio.run(gw.execute(RUN_IN_TERMINAL_TOOL, {"command": "ls"}, direct_marker()))

    def test_list_command_checked_as_text(self, temp_dir):
        gw = SandboxGateway(SandboxConfig(), FakeExecutor(), str(temp_dir))

        with pytest.raises(CommandRejectedError):
            asyncio.run(gw.execute(
                RUN_IN_TERMINAL_TOOL, {"command": ["sudo", "ls"]}, direct_marker()
            ))

    def test_timeout_raises_and_cancels_executor(self, temp_dir):
        executor = FakeExecutor(delay=5)
        gw = SandboxGateway(SandboxConfig(), executor, str(temp_dir))

        with pytest.raises(SandboxTimeoutError):
            asyncio.run(gw.execute(
                RUN_IN_TERMINAL_TOOL, {"command": "sleep 5", "timeout": 0.05}, direct_marker()
            ))

        assert executor.cancelled is True

    def test_timeout_parameter_overrides_default(self, temp_dir):
        executor = FakeExecutor()
        gw = SandboxGateway(SandboxConfig(), executor, str(temp_dir))

        asyncio.run(gw.execute(RUN_IN_TERMINAL_TOOL, {"command": "ls", "timeout": 3}, direct_marker()))

        assert executor.calls[0][1].timeout_seconds == 3.0

    def test_non_positive_timeout_ignored(self, temp_dir):
        gw = SandboxGateway(SandboxConfig(timeout_seconds=12), FakeExecutor(), str(temp_dir))
        assert gw.build_limits({"timeout": 0}).timeout_seconds == 12
        assert gw.build_limits({"timeout": -1}).timeout_seconds == 12

    def test_working_dir_inside_workspace(self, temp_dir):
        (temp_dir / "pkg").mkdir()
        executor = FakeExecutor()
        gw = SandboxGateway(SandboxConfig(), executor, str(temp_dir))

        asyncio.run(gw.execute(
            RUN_IN_TERMINAL_TOOL, {"command": "ls", "workingDir": "pkg"}, direct_marker()
        ))
        asyncio.run(gw.execute(
            RUN_IN_TERMINAL_TOOL, {"command": "ls", "workingDir": ""}, direct_marker()
        ))

        assert executor.calls[0][2] == str(temp_dir.resolve() / "pkg")
        assert executor.calls[1][2] == str(temp_dir)

    @pytest.mark.parametrize("workdir", ["/", "/etc", "..", "pkg/../..", 42])
    def test_working_dir_outside_workspace_rejected(self, temp_dir, workdir):
        executor = FakeExecutor()
        gw = SandboxGateway(SandboxConfig(), executor, str(temp_dir))

        with pytest.raises(CommandRejectedError, match="workingDir"):
            asyncio.run(gw.execute(
                RUN_IN_TERMINAL_TOOL, {"command": "ls", "workingDir": workdir}, direct_marker()
            ))

        assert executor.calls == []

    def test_requested_timeout_cannot_exceed_ceiling(self, temp_dir):
        gw = SandboxGateway(SandboxConfig(timeout_seconds=30), FakeExecutor(), str(temp_dir))

        assert gw.build_limits({"timeout": 1e9}).timeout_seconds == 30
        assert gw.build_limits({"timeout": 5}).timeout_seconds == 5

    def test_disabled_isolation_runs_direct(self, temp_dir):
        executor = FakeExecutor()
        gw = SandboxGateway(SandboxConfig(enabled=False), executor, str(temp_dir))

        result = asyncio.run(gw.execute(RUN_IN_TERMINAL_TOOL, {"command": "ls"}, direct_marker()))

        assert result == "direct"
        assert executor.calls == []

    def test_unavailable_executor_falls_back(self, temp_dir):
        gw = SandboxGateway(SandboxConfig(), FakeExecutor(available=False), str(temp_dir))

        result = asyncio.run(gw.execute(RUN_IN_TERMINAL_TOOL, {"command": "ls"}, direct_marker()))

        assert result == "direct"

    def test_unavailable_executor_mandatory_raises(self, temp_dir):
        gw = SandboxGateway(SandboxConfig(mandatory=True), FakeExecutor(available=False), str(temp_dir))

        with pytest.raises(SandboxUnavailableError):
            asyncio.run(gw.execute(RUN_IN_TERMINAL_TOOL, {"command": "ls"}, direct_marker()))

    def test_non_command_tool_runs_direct_under_timeout(self, temp_dir):
        executor = FakeExecutor()
        gw = SandboxGateway(SandboxConfig(timeout_seconds=0.05), executor, str(temp_dir))

        async def slow():
            await asyncio.sleep(5)

        with pytest.raises(SandboxTimeoutError):
            asyncio.run(gw.execute(ANALYZE_CODE_TOOL, {"code": "x"}, slow))

        result = asyncio.run(gw.execute(ANALYZE_CODE_TOOL, {"code": "x"}, direct_marker()))
        assert result == "direct"
        assert executor.calls == []

    def test_configured_working_dir_wins(self, temp_dir):
        gw = SandboxGateway(SandboxConfig(working_dir="/configured"), FakeExecutor(), str(temp_dir))
        assert gw.working_dir == "/configured"


class TestSandboxResult:
    """Tests for SandboxResult construction."""

    def test_from_output(self):
        ok = SandboxResult.from_output(ExecutionOutput(0, "out", ""), 0.1)
        bad = SandboxResult.from_output(ExecutionOutput(1, "", "err"), 0.2)

        assert ok.is_success and ok.error is None
        assert not bad.is_success
        assert bad.error == "Command exited with code 1"


class TestDockerExecutor:
    """Tests for docker argv construction."""

    def test_build_argv(self):
        executor = DockerExecutor(environment={"NODE_ENV": "test"})
        limits = ResourceLimits(memory_mb=256, cpu_percent=50, timeout_seconds=10)

        argv = executor.build_argv(["npm", "test"], limits, "/work", "devagent-abc")

        assert argv == [
            "docker", "run", "--rm",
            "--name", "devagent-abc",
            "--memory=256m",
            "--cpus=0.5",
            "--network=none",
            "-v", "/work:/workspace",
            "-w", "/workspace",
            "-e", "NODE_ENV=test",
            "node:20-alpine",
            "npm", "test",
        ]

    def test_default_image(self):
        assert DockerExecutor().image == "node:20-alpine"

    def test_unavailable_without_binary(self):
        executor = DockerExecutor(docker_binary="definitely-not-a-docker-binary")
        assert asyncio.run(executor.is_available()) is False

    def test_configured_mounts_follow_workspace(self):
        executor = DockerExecutor(mounts=[
            MountSpec("/home/me/.npm", "/root/.npm", "rw"),
            MountSpec("/opt/shared", "/shared"),
        ])
        limits = ResourceLimits(memory_mb=256, cpu_percent=100, timeout_seconds=10)

        argv = executor.build_argv(["npm", "ci"], limits, "/work", "devagent-abc")

        volumes = [argv[i + 1] for i, arg in enumerate(argv) if arg == "-v"]
        assert volumes == [
            "/work:/workspace",
            "/home/me/.npm:/root/.npm:rw",
            "/opt/shared:/shared:ro",
        ]
        assert argv.index("node:20-alpine") > argv.index("/opt/shared:/shared:ro")

    def test_mounts_from_config(self):
        config = SandboxConfig(mounts=[{"host_path": "/data", "container_path": "/data"}])
        executor = DevAgentApp.build_executor(config)

        assert executor.mounts == [MountSpec("/data", "/data", "ro")]

    def test_mount_mode_validated(self):
        with pytest.raises(ValueError):
            MountSpec("/data", "/data", "rwx")


posix_only = pytest.mark.skipif(
    sys.platform == "win32" or shutil.which("sleep") is None,
    reason="needs POSIX processes",
)


@posix_only
class TestLocalProcessExecutor:
    """Tests for LocalProcessExecutor against real child processes."""

    def test_echo(self, temp_dir):
        output = asyncio.run(LocalProcessExecutor().run(["echo", "hi"], ResourceLimits(), str(temp_dir)))

        assert output.exit_code == 0
        assert output.stdout == "hi\n"

    def test_missing_binary_is_exit_127(self, temp_dir):
        output = asyncio.run(LocalProcessExecutor().run(
            ["devagent-no-such-binary"], ResourceLimits(), str(temp_dir)
        ))

        assert output.exit_code == 127
        assert "devagent-no-such-binary" in output.stderr

    def test_timeout_kills_child(self, temp_dir):
        config = SandboxConfig(timeout_seconds=0.3, forbidden_commands=[])
        gw = SandboxGateway(config, LocalProcessExecutor(), str(temp_dir))
        command = ["sh", "-c", "echo $$ > child.pid; exec sleep 20"]

        t0 = time.time()
        with pytest.raises(SandboxTimeoutError):
            asyncio.run(gw.execute(RUN_IN_TERMINAL_TOOL, {"command": command}, direct_marker()))

        assert time.time() - t0 < 5

        pid = int((temp_dir / "child.pid").read_text().strip())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)

    def test_executor_usable_after_timeout(self, temp_dir):
        config = SandboxConfig(timeout_seconds=0.3)
        gw = SandboxGateway(config, LocalProcessExecutor(), str(temp_dir))

        with pytest.raises(SandboxTimeoutError):
            asyncio.run(gw.execute(RUN_IN_TERMINAL_TOOL, {"command": "sleep 20"}, direct_marker()))

        result = asyncio.run(gw.execute(RUN_IN_TERMINAL_TOOL, {"command": "echo hi"}, direct_marker()))
        assert result.status == "success"
        assert result.stdout == "hi\n"
