"""Command router - typed lock/unlock commands routed to per-repo coordinators."""

from dataclasses import dataclass, field
from pathlib import Path

import structlog

from src.coordination.batch import BatchCoordinator, BatchResult
from src.coordination.file_locks import LockRecord
from src.coordination.tracked_files import FileListing, TrackedFile, build_listing
from src.git_tools.errors import CommandFailed, MalformedResponse
from src.git_tools.runner import ProcessRunner

from .config import Settings
from .state_machine import BatchKind, BatchStatus

logger = structlog.get_logger()


@dataclass
class LockBatch:
    """Lock the given paths in a repository."""
    repo: str
    paths: list[str]
    tip_ref: str | None = None


@dataclass
class UnlockBatch:
    """Publish and unlock the given paths in a repository."""
    repo: str
    paths: list[str]
    force: bool = False
    tip_branch: str | None = None


@dataclass
class CommandOutcome:
    """Batch result plus the one-line (or short list) report for users."""
    result: BatchResult
    summary: str | None = None
    listing: list[TrackedFile] = field(default_factory=list)


def summarize_errors(kind: BatchKind, errors: dict[str, str], limit: int = 5) -> str | None:
    """Human-readable failure report, or None when everything went through."""
    if not errors:
        return None
    verb = "Lock" if kind == BatchKind.LOCK else "Unlock"
    if len(errors) == 1:
        path, message = next(iter(errors.items()))
        return f"{verb} failed for {path}: {message}"
    lines = [f"• {path}: {message}" for path, message in list(errors.items())[:limit]]
    return f"Some {verb.lower()}s failed:\n" + "\n".join(lines)


class CommandRouter:
    """Routes typed batch commands to the coordinator owning each repository."""

    def __init__(self, settings: Settings, runner: ProcessRunner | None = None):
        self.settings = settings
        self.runner = runner
        self._coordinators: dict[str, BatchCoordinator] = {}
        self._listings: dict[str, FileListing] = {}

    def _key(self, repo: str) -> str:
        return str(Path(repo).resolve())

    def coordinator(self, repo: str) -> BatchCoordinator:
        """Coordinator for a repository, created on first use."""
        key = self._key(repo)
        if key not in self._coordinators:
            self._coordinators[key] = BatchCoordinator(self.settings, key, runner=self.runner)
            self._listings[key] = FileListing()
        return self._coordinators[key]

    def listing(self, repo: str) -> FileListing:
        self.coordinator(repo)
        return self._listings[self._key(repo)]

    def is_busy(self, repo: str) -> bool:
        return self.coordinator(repo).busy

    def status(self, repo: str) -> BatchStatus:
        return self.coordinator(repo).state_machine.status()

    async def dispatch(self, command: LockBatch | UnlockBatch) -> CommandOutcome:
        """Run one batch command; setup failures propagate to the caller."""
        coordinator = self.coordinator(command.repo)

        match command:
            case LockBatch():
                result = await coordinator.lock_many(command.paths, tip_ref=command.tip_ref)
            case UnlockBatch():
                result = await coordinator.unlock_many(
                    command.paths,
                    tip_branch=command.tip_branch,
                    force=command.force,
                )
            case _:
                raise TypeError(f"Unknown command: {command!r}")

        listing = self.listing(command.repo)
        locks: dict[str, LockRecord] = {}
        if result.kind == BatchKind.LOCK and result.ok:
            locks = await self._current_locks(coordinator)
        listing.apply_batch(result, locks)

        summary = summarize_errors(result.kind, result.errors, self.settings.error_summary_limit)
        if summary:
            logger.warning("Batch had failures", repo=command.repo, summary=summary)

        return CommandOutcome(result=result, summary=summary, listing=list(listing.files))

    async def _current_locks(self, coordinator: BatchCoordinator) -> dict[str, LockRecord]:
        """Fresh lock records; the batch's own responses are used if listing fails."""
        try:
            records = await coordinator.locks.list_locks()
        except (CommandFailed, MalformedResponse) as exc:
            logger.warning("Could not list locks", error=str(exc))
            return {}
        return {record.path: record for record in records}

    async def refresh(self, repo: str) -> list[TrackedFile]:
        """Rebuild a repository's listing from LFS-tracked files and locks."""
        coordinator = self.coordinator(repo)
        tracked = await coordinator.client.lfs_tracked_files()
        locks = await coordinator.locks.list_locks()
        listing = self.listing(repo)
        listing.replace(build_listing(tracked, locks, coordinator.repo_path))
        logger.debug("Refreshed listing", repo=repo, files=len(listing.files))
        return list(listing.files)
