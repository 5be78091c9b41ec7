"""Batch coordinator - lock and unlock many files with per-file outcomes."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

import structlog

from src.git_tools.blobs import BlobResolver
from src.git_tools.client import GitClient
from src.git_tools.errors import CommandFailed, MalformedResponse
from src.git_tools.paths import normalize, unique_paths
from src.git_tools.runner import ProcessRunner
from src.orchestrator.config import Settings
from src.orchestrator.state_machine import BatchKind, BatchStateMachine

from .file_locks import LockService
from .publisher import WorktreePublisher
from .tip_sync import SkipReason, TipSynchronizer

logger = structlog.get_logger()


class FileOutcome(str, Enum):
    """Tagged per-file outcome of a batch."""
    APPLIED = "applied"
    SKIPPED_DIRTY = "skipped_dirty"
    SKIPPED_MISSING = "skipped_missing"
    FAILED = "failed"
    NOT_REQUESTED = "not_requested"


_SKIP_OUTCOMES = {
    SkipReason.DIRTY: FileOutcome.SKIPPED_DIRTY,
    SkipReason.MISSING: FileOutcome.SKIPPED_MISSING,
}


@dataclass
class FileResult:
    """Outcome of one path within a batch."""
    path: str
    outcome: FileOutcome
    response: dict[str, Any] | None = None
    error: str | None = None


@dataclass
class BatchResult:
    """Partition of a batch's requested paths.

    `ok`, `errors` and `skipped` never share a key and only contain
    requested paths.
    """
    kind: BatchKind
    requested: list[str] = field(default_factory=list)
    ok: dict[str, dict[str, Any]] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    skipped: dict[str, SkipReason] = field(default_factory=dict)
    synced: list[str] = field(default_factory=list)
    published: list[str] = field(default_factory=list)
    unpublishable: list[str] = field(default_factory=list)

    def outcome(self, path: str) -> FileOutcome:
        key = normalize(path)
        if key in self.ok:
            return FileOutcome.APPLIED
        if key in self.errors:
            return FileOutcome.FAILED
        if key in self.skipped:
            return _SKIP_OUTCOMES[self.skipped[key]]
        return FileOutcome.NOT_REQUESTED

    def entry(self, path: str) -> FileResult:
        key = normalize(path)
        return FileResult(
            path=key,
            outcome=self.outcome(key),
            response=self.ok.get(key),
            error=self.errors.get(key),
        )


class BatchCoordinator:
    """Runs lock/unlock batches for one repository.

    The sync or publish commit always precedes the batch's per-file lock
    service calls. Setup failures propagate; per-file failures are recorded.
    """

    def __init__(
        self,
        settings: Settings,
        repo_path: str | Path,
        runner: ProcessRunner | None = None,
    ):
        self.settings = settings
        self.repo_path = Path(repo_path)
        if runner is None:
            runner = ProcessRunner(timeout=settings.command_timeout_seconds)
        self.client = GitClient(runner, self.repo_path, settings.git_binary)
        self.blobs = BlobResolver(self.client)
        self.locks = LockService(self.client)
        self.synchronizer = TipSynchronizer(
            self.client,
            self.blobs,
            default_remote=settings.remote,
            commit_body_limit=settings.commit_body_limit,
        )
        self.publisher = WorktreePublisher(
            self.client,
            self.blobs,
            remote=settings.remote,
            worktree_prefix=settings.worktree_prefix,
            create_attempts=settings.worktree_create_attempts,
            commit_body_limit=settings.commit_body_limit,
        )
        self.state_machine = BatchStateMachine(str(self.repo_path))

    @property
    def busy(self) -> bool:
        return self.state_machine.busy

    async def lock_many(
        self,
        paths: Iterable[str],
        tip_ref: str | None = None,
    ) -> BatchResult:
        """Sync candidates from the tip, then lock each one independently."""
        files = unique_paths(paths)
        result = BatchResult(kind=BatchKind.LOCK, requested=files)
        if not files:
            return result

        tip_ref = tip_ref or self.settings.tip_ref

        async with self.state_machine.running(BatchKind.LOCK):
            report = await self.synchronizer.synchronize(files, tip_ref)
            result.skipped = report.skipped
            result.synced = report.synced

            for path in report.candidates:
                try:
                    result.ok[path] = await self.locks.lock(path)
                except (CommandFailed, MalformedResponse) as exc:
                    result.errors[path] = str(exc)
                    logger.warning("Lock failed", path=path, error=str(exc))

        logger.info(
            "Lock batch finished",
            repo=str(self.repo_path),
            locked=len(result.ok),
            failed=len(result.errors),
            skipped=len(result.skipped),
        )
        return result

    async def unlock_many(
        self,
        paths: Iterable[str],
        tip_branch: str | None = None,
        force: bool = False,
    ) -> BatchResult:
        """Publish local-head content to the tip, then release each lock."""
        files = unique_paths(paths)
        result = BatchResult(kind=BatchKind.UNLOCK, requested=files)
        if not files:
            return result

        tip_branch = tip_branch or self.settings.tip_branch

        async with self.state_machine.running(BatchKind.UNLOCK):
            report = await self.publisher.publish(files, tip_branch)
            result.published = report.published
            result.unpublishable = report.unpublishable

            # Paths with nothing to publish are still released
            for path in files:
                try:
                    result.ok[path] = await self.locks.unlock(path, force=force)
                except (CommandFailed, MalformedResponse) as exc:
                    result.errors[path] = str(exc)
                    logger.warning("Unlock failed", path=path, error=str(exc))

        logger.info(
            "Unlock batch finished",
            repo=str(self.repo_path),
            released=len(result.ok),
            failed=len(result.errors),
            published=len(result.published),
            force=force,
        )
        return result

    async def lock_one(self, path: str, tip_ref: str | None = None) -> FileResult:
        result = await self.lock_many([path], tip_ref=tip_ref)
        return result.entry(path)

    async def unlock_one(
        self,
        path: str,
        tip_branch: str | None = None,
        force: bool = False,
    ) -> FileResult:
        result = await self.unlock_many([path], tip_branch=tip_branch, force=force)
        return result.entry(path)
