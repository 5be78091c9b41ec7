"""Git client - the subcommands the lock engine relies on."""

from pathlib import Path

import structlog

from .errors import CommandFailed, PushRejected
from .runner import CommandResult, ProcessRunner

logger = structlog.get_logger()

# Regular, non-executable file entry in a git tree
BLOB_MODE = "100644"

# Fragments git prints when the remote refuses a non-fast-forward update
_REJECTION_MARKERS = ("[rejected]", "non-fast-forward", "fetch first", "stale info")


class GitClient:
    """Thin async wrapper over the git and git-lfs command lines."""

    def __init__(
        self,
        runner: ProcessRunner,
        repo_path: str | Path,
        git_binary: str = "git",
    ):
        self.runner = runner
        self.repo_path = Path(repo_path)
        self.git_binary = git_binary

    async def _git(
        self,
        *args: str,
        cwd: str | Path | None = None,
        allow_failure: bool = False,
    ) -> CommandResult:
        """Run a git subcommand in the repository (or `cwd`)."""
        return await self.runner.run(
            cwd if cwd is not None else self.repo_path,
            self.git_binary,
            list(args),
            allow_failure=allow_failure,
        )

    # === Refs and objects ===

    async def fetch(self, remote: str, *refs: str) -> None:
        """Fetch refs from a remote quietly."""
        await self._git("fetch", "-q", remote, *refs)

    async def object_exists(self, ref: str, path: str) -> bool:
        result = await self._git("cat-file", "-e", f"{ref}:{path}", allow_failure=True)
        return result.ok

    async def resolve_object(self, ref: str, path: str) -> str | None:
        """Object id of `ref:path`, or None when it does not exist."""
        result = await self._git(
            "rev-parse", "--verify", "-q", f"{ref}:{path}", allow_failure=True
        )
        oid = result.stdout.strip()
        return oid if result.ok and oid else None

    async def current_branch(self) -> str:
        result = await self._git("rev-parse", "--abbrev-ref", "HEAD")
        return result.stdout.strip()

    async def short_head(self) -> str:
        result = await self._git("rev-parse", "--short", "HEAD")
        return result.stdout.strip()

    # === Working tree and index ===

    async def changed_paths(self, paths: list[str], staged: bool = False) -> list[str]:
        """List paths under `paths` with unstaged (or staged) modifications."""
        if not paths:
            return []
        args = ["diff", "--name-only", "-z"]
        if staged:
            args.append("--cached")
        result = await self._git(*args, "--", *paths)
        return [entry for entry in result.stdout.split("\0") if entry]

    async def checkout_paths(self, ref: str, paths: list[str]) -> None:
        await self._git("checkout", ref, "--", *paths)

    async def add(self, paths: list[str]) -> None:
        await self._git("add", "--", *paths)

    async def commit(
        self,
        subject: str,
        body: str = "",
        cwd: str | Path | None = None,
    ) -> None:
        args = ["commit", "-q", "-m", subject]
        if body:
            args += ["-m", body]
        await self._git(*args, cwd=cwd)

    async def update_index_blob(
        self,
        path: str,
        blob: str,
        mode: str = BLOB_MODE,
        cwd: str | Path | None = None,
    ) -> None:
        """Point an index entry at an existing blob without writing the file."""
        await self._git(
            "update-index", "--add", "--cacheinfo", f"{mode},{blob},{path}",
            cwd=cwd,
        )

    # === Worktrees and branches ===

    async def worktree_add_detached(self, directory: str | Path, ref: str) -> None:
        await self._git("worktree", "add", "-f", "--detach", str(directory), ref)

    async def worktree_remove(self, directory: str | Path) -> CommandResult:
        """Force-remove a worktree; a missing worktree is not an error."""
        return await self._git("worktree", "remove", "-f", str(directory), allow_failure=True)

    async def checkout_branch(
        self,
        branch: str,
        start_point: str,
        cwd: str | Path | None = None,
    ) -> None:
        """Create or reset `branch` to `start_point` and switch to it."""
        await self._git("checkout", "-q", "-B", branch, start_point, cwd=cwd)

    async def push(
        self,
        remote: str,
        branch: str,
        cwd: str | Path | None = None,
    ) -> None:
        """Push a branch; a non-fast-forward refusal raises PushRejected."""
        try:
            await self._git("push", "-q", remote, branch, cwd=cwd)
        except CommandFailed as exc:
            if any(marker in exc.output for marker in _REJECTION_MARKERS):
                logger.warning("Push rejected", remote=remote, branch=branch)
                raise PushRejected(
                    exc.command, exc.args_list, exc.exit_code, exc.output
                ) from exc
            raise

    # === LFS locks ===

    async def lfs_lock(self, path: str) -> str:
        result = await self._git("lfs", "lock", path, "--json")
        return result.stdout

    async def lfs_unlock(self, path: str, force: bool = False) -> str:
        args = ["lfs", "unlock", path, "--json"]
        if force:
            args.append("--force")
        result = await self._git(*args)
        return result.stdout

    async def lfs_locks(self, path: str | None = None) -> str:
        args = ["lfs", "locks", "--json"]
        if path:
            args += ["--path", path]
        result = await self._git(*args)
        return result.stdout

    async def lfs_tracked_files(self) -> list[str]:
        result = await self._git("lfs", "ls-files", "--name-only")
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]
