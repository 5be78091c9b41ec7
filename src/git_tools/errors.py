"""Errors raised by the tip lock engine."""


class TipLockError(Exception):
    """Base tiplock exception."""


class CommandFailed(TipLockError):
    """Raised when an external command exits nonzero."""

    def __init__(
        self,
        command: str,
        args: list[str],
        exit_code: int,
        output: str = "",
    ):
        self.command = command
        self.args_list = list(args)
        self.exit_code = exit_code
        self.output = output.strip()
        super().__init__(
            self.output
            or f"{command} {' '.join(self.args_list)} failed ({exit_code})"
        )


class PushRejected(CommandFailed):
    """Raised when the remote refuses a non-fast-forward push."""


class BlobNotFound(TipLockError):
    """Raised when a path has no object at a reference."""

    def __init__(self, ref: str, path: str):
        self.ref = ref
        self.path = path
        super().__init__(f"{path} does not exist at {ref}")


class MalformedResponse(TipLockError):
    """Raised when the lock service prints something that is not JSON."""


class WorktreeError(TipLockError):
    """Raised when an ephemeral worktree cannot be created."""


class BatchInProgress(TipLockError):
    """Raised when a batch is triggered while another one is running."""
