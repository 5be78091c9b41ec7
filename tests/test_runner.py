"""Tests for the process runner."""

import asyncio
import sys
import time
from pathlib import Path

import pytest

from src.git_tools.errors import CommandFailed
from src.git_tools.runner import ProcessRunner


def script(code: str) -> list[str]:
    return ["-c", code]


class TestProcessRunner:
    """Test exit code mapping and output capture."""

    @pytest.mark.asyncio
    async def test_captures_output(self, tmp_path):
        runner = ProcessRunner()

        result = await runner.run(
            tmp_path,
            sys.executable,
            script("import sys; print('out'); print('err', file=sys.stderr)"),
        )

        assert result.ok
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"

    @pytest.mark.asyncio
    async def test_runs_in_working_directory(self, tmp_path):
        result = await ProcessRunner().run(
            tmp_path, sys.executable, script("import os; print(os.getcwd())")
        )

        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_with_stderr(self, tmp_path):
        with pytest.raises(CommandFailed) as excinfo:
            await ProcessRunner().run(
                tmp_path,
                sys.executable,
                script("import sys; sys.stderr.write('fatal: nope'); sys.exit(3)"),
            )

        assert excinfo.value.exit_code == 3
        assert str(excinfo.value) == "fatal: nope"

    @pytest.mark.asyncio
    async def test_falls_back_to_stdout_message(self, tmp_path):
        with pytest.raises(CommandFailed, match="only stdout"):
            await ProcessRunner().run(
                tmp_path,
                sys.executable,
                script("import sys; print('only stdout'); sys.exit(1)"),
            )

    @pytest.mark.asyncio
    async def test_allow_failure_returns_result(self, tmp_path):
        result = await ProcessRunner().run(
            tmp_path, sys.executable, script("raise SystemExit(2)"), allow_failure=True
        )

        assert result.exit_code == 2
        assert not result.ok

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        with pytest.raises(CommandFailed) as excinfo:
            await ProcessRunner().run(tmp_path, "definitely-not-a-real-binary-xyz", [])

        assert excinfo.value.exit_code == 127

    @pytest.mark.asyncio
    async def test_timeout_is_command_failure(self, tmp_path):
        runner = ProcessRunner(timeout=0.2)

        with pytest.raises(CommandFailed, match="timed out after 0.2s") as excinfo:
            await runner.run(tmp_path, sys.executable, script("import time; time.sleep(30)"))

        assert excinfo.value.exit_code == -1

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="process groups are POSIX only")
    async def test_timeout_kills_grandchildren(self, tmp_path):
        """A grandchild inheriting the pipes must not stretch the timeout."""
        code = (
            "import subprocess, sys, time; "
            "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)']); "
            "time.sleep(30)"
        )
        runner = ProcessRunner(timeout=0.5)
        started = time.monotonic()

        with pytest.raises(CommandFailed):
            await runner.run(tmp_path, sys.executable, script(code))

        assert time.monotonic() - started < 5

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, tmp_path):
        task = asyncio.create_task(
            ProcessRunner().run(tmp_path, sys.executable, script("import time; time.sleep(30)"))
        )
        await asyncio.sleep(0.2)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
