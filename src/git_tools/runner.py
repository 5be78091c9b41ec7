"""Process runner - executes external commands without blocking the loop."""

import asyncio
import contextlib
import os
import signal
from dataclasses import dataclass
from pathlib import Path

import structlog

from .errors import CommandFailed

logger = structlog.get_logger()


async def _kill_tree(proc: asyncio.subprocess.Process) -> None:
    """Kill the child's whole session so no grandchild holds the pipes open."""
    if hasattr(os, "killpg"):
        # The group may already be gone
        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(proc.pid, signal.SIGKILL)
    elif proc.returncode is None:
        proc.kill()
    await proc.wait()


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one external command."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessRunner:
    """Spawns one subprocess per call and maps exit codes to errors."""

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    async def run(
        self,
        cwd: str | Path,
        command: str,
        args: list[str],
        allow_failure: bool = False,
    ) -> CommandResult:
        """Run `command args` in `cwd` and capture its output.

        Raises CommandFailed on a nonzero exit unless allow_failure is set,
        and on timeout. The child and its descendants are killed and reaped
        if the caller is cancelled or the timeout elapses.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except FileNotFoundError as exc:
            raise CommandFailed(command, args, 127, str(exc)) from exc

        try:
            out, err = await asyncio.wait_for(proc.communicate(), self.timeout)
        except asyncio.TimeoutError as exc:
            await _kill_tree(proc)
            logger.warning("Command timed out", command=command, args=args, timeout=self.timeout)
            raise CommandFailed(
                command, args, -1, f"timed out after {self.timeout}s"
            ) from exc
        except BaseException:
            await _kill_tree(proc)
            raise

        result = CommandResult(
            exit_code=proc.returncode,
            stdout=out.decode("utf-8", errors="replace"),
            stderr=err.decode("utf-8", errors="replace"),
        )

        logger.debug(
            "Command finished",
            command=command,
            args=args,
            exit_code=result.exit_code,
        )

        if not result.ok and not allow_failure:
            raise CommandFailed(
                command,
                args,
                result.exit_code,
                result.stderr.strip() or result.stdout,
            )

        return result
