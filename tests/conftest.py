"""Shared fixtures - an in-memory git/git-lfs command line."""

import json
from pathlib import Path

import pytest

from src.coordination.batch import BatchCoordinator
from src.git_tools.client import GitClient
from src.git_tools.errors import CommandFailed
from src.git_tools.runner import CommandResult
from src.orchestrator.config import Settings

TIP_REF = "origin/assets-tip"


class FakeGit:
    """Scripted stand-in for ProcessRunner that answers git subcommands.

    `head` and `tip` map paths to blob ids; `unstaged`/`staged` hold dirty
    paths. Failures are keyed by the leading words of the command, e.g.
    "push", "worktree add" or "lfs lock a.bin".
    """

    def __init__(self, repo: Path, tip_ref: str = TIP_REF):
        self.repo = repo
        self.tip_ref = tip_ref
        self.head: dict[str, str] = {}
        self.tip: dict[str, str] = {}
        self.unstaged: set[str] = set()
        self.staged: set[str] = set()
        self.tracked: list[str] = []
        self.lock_listing: list[dict] = []
        self.lock_output: dict[str, str] = {}
        self.branch = "main"
        self.short = "abc1234"
        self.calls: list[tuple[Path, tuple[str, ...]]] = []
        self._failures: dict[str, list] = {}
        self._checked_out: dict[str, str] = {}
        self._index: dict[str, str] = {}

    # === Scenario setup ===

    def add_file(
        self,
        path: str,
        head: str | None = None,
        tip: str | None = None,
        on_disk: bool = True,
    ) -> None:
        if on_disk:
            target = self.repo / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(b"binary")
        if head:
            self.head[path] = head
        if tip:
            self.tip[path] = tip

    def fail(self, key: str, stderr: str = "boom", code: int = 1, times: int | None = None) -> None:
        self._failures[key] = [code, stderr, times]

    def commands(self, *prefix: str) -> list[tuple[str, ...]]:
        return [args for _, args in self.calls if args[: len(prefix)] == prefix]

    def calls_in(self, cwd: Path) -> list[tuple[str, ...]]:
        return [args for call_cwd, args in self.calls if call_cwd == cwd]

    # === ProcessRunner interface ===

    async def run(self, cwd, command, args, allow_failure=False) -> CommandResult:
        args = tuple(args)
        self.calls.append((Path(cwd), args))
        result = self._take_failure(args) or self._dispatch(Path(cwd), args)
        if not result.ok and not allow_failure:
            raise CommandFailed(
                command, list(args), result.exit_code, result.stderr.strip() or result.stdout
            )
        return result

    def _take_failure(self, args: tuple[str, ...]) -> CommandResult | None:
        for size in (3, 2, 1):
            key = " ".join(args[:size])
            failure = self._failures.get(key)
            if failure is None:
                continue
            code, stderr, times = failure
            if times is not None:
                if times <= 0:
                    continue
                failure[2] = times - 1
            return CommandResult(exit_code=code, stderr=stderr)
        return None

    def _ref(self, ref: str) -> dict[str, str]:
        if ref == "HEAD":
            return self.head
        if ref == self.tip_ref:
            return self.tip
        return {}

    def _dispatch(self, cwd: Path, args: tuple[str, ...]) -> CommandResult:
        match args[0]:
            case "cat-file":
                ref, _, path = args[2].partition(":")
                return CommandResult(exit_code=0 if path in self._ref(ref) else 1)
            case "rev-parse":
                if args[1] == "--abbrev-ref":
                    return CommandResult(0, self.branch + "\n")
                if args[1] == "--short":
                    return CommandResult(0, self.short + "\n")
                ref, _, path = args[-1].partition(":")
                blob = self._ref(ref).get(path)
                if blob is None:
                    return CommandResult(exit_code=1)
                return CommandResult(0, blob + "\n")
            case "diff":
                paths = args[args.index("--") + 1:]
                changed = self.staged if "--cached" in args else self.unstaged
                return CommandResult(0, "".join(f"{p}\0" for p in paths if p in changed))
            case "checkout" if "--" in args:
                source = self._ref(args[1])
                for path in args[args.index("--") + 1:]:
                    self._checked_out[path] = source[path]
            case "commit":
                if cwd == self.repo:
                    self.head.update(self._checked_out)
                    self._checked_out = {}
            case "update-index":
                _, blob, path = args[3].split(",", 2)
                self._index[path] = blob
            case "push":
                self.tip.update(self._index)
                self._index = {}
            case "lfs":
                return self._lfs(args)
        return CommandResult(exit_code=0)

    def _lfs(self, args: tuple[str, ...]) -> CommandResult:
        action = args[1]
        if action == "locks":
            return CommandResult(0, json.dumps(self.lock_listing))
        if action == "ls-files":
            return CommandResult(0, "".join(f"{path}\n" for path in self.tracked))
        path = args[2]
        if path in self.lock_output:
            return CommandResult(0, self.lock_output[path])
        if action == "lock":
            return CommandResult(
                0,
                json.dumps({
                    "id": str(len(self.commands("lfs", "lock"))),
                    "path": path,
                    "owner": {"name": "tester"},
                    "locked_at": "2024-05-01T10:00:00Z",
                }),
            )
        return CommandResult(0, json.dumps({"id": "1", "path": path, "unlocked": True}))


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    path = tmp_path / "repo"
    path.mkdir()
    return path.resolve()


@pytest.fixture
def fake_git(repo: Path) -> FakeGit:
    return FakeGit(repo)


@pytest.fixture
def settings() -> Settings:
    return Settings(remote="origin", tip_branch="assets-tip", log_level="DEBUG")


@pytest.fixture
def client(fake_git: FakeGit, repo: Path) -> GitClient:
    return GitClient(fake_git, repo)


@pytest.fixture
def coordinator(settings: Settings, repo: Path, fake_git: FakeGit) -> BatchCoordinator:
    return BatchCoordinator(settings, repo, runner=fake_git)
