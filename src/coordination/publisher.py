"""Worktree publisher - push local-head content to the tip before unlocking."""

import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator

import structlog

from src.git_tools.blobs import BlobResolver
from src.git_tools.client import GitClient
from src.git_tools.errors import CommandFailed, WorktreeError
from src.git_tools.paths import join_repo

from .tip_sync import commit_message

logger = structlog.get_logger()


@dataclass
class PublishReport:
    """Outcome of publishing a path set to the tip branch."""
    published: list[str] = field(default_factory=list)
    unpublishable: list[str] = field(default_factory=list)
    commit_subject: str | None = None


def worktree_dir(repo_path: Path, prefix: str) -> Path:
    """A unique worktree location inside the repository."""
    stamp = int(time.time() * 1000)
    return repo_path / f"{prefix}-{stamp}-{uuid.uuid4().hex[:8]}"


class WorktreePublisher:
    """Builds one publish commit in a detached worktree and pushes it.

    Blobs are staged by id with `update-index --cacheinfo`, so no file bytes
    are written and the caller's working directory is never touched.
    """

    def __init__(
        self,
        client: GitClient,
        blobs: BlobResolver,
        remote: str = "origin",
        worktree_prefix: str = ".wt-assets-tip",
        create_attempts: int = 3,
        commit_body_limit: int = 50,
    ):
        self.client = client
        self.blobs = blobs
        self.remote = remote
        self.worktree_prefix = worktree_prefix
        self.create_attempts = create_attempts
        self.commit_body_limit = commit_body_limit

    @asynccontextmanager
    async def ephemeral_worktree(self, tip_ref: str) -> AsyncIterator[Path]:
        """Create a detached worktree at `tip_ref`; always remove it on exit."""
        last_error: CommandFailed | None = None
        for attempt in range(1, self.create_attempts + 1):
            wt = worktree_dir(self.client.repo_path, self.worktree_prefix)
            # Clears a leftover from a crashed run; usually a no-op
            await self.client.worktree_remove(wt)
            try:
                await self.client.worktree_add_detached(wt, tip_ref)
            except CommandFailed as exc:
                last_error = exc
                logger.warning(
                    "Worktree creation failed, retrying",
                    worktree=str(wt),
                    attempt=attempt,
                    error=str(exc),
                )
                await self.client.worktree_remove(wt)
                continue
            break
        else:
            raise WorktreeError(
                f"Could not create a worktree at {tip_ref} after "
                f"{self.create_attempts} attempts: {last_error}"
            ) from last_error

        logger.debug("Created worktree", worktree=str(wt), ref=tip_ref)
        try:
            yield wt
        finally:
            result = await self.client.worktree_remove(wt)
            if not result.ok:
                logger.warning(
                    "Worktree removal failed",
                    worktree=str(wt),
                    error=result.stderr.strip(),
                )

    async def plan(self, paths: list[str], tip_ref: str) -> tuple[list[tuple[str, str]], list[str]]:
        """Split paths into (path, head blob) pairs to publish and paths with no content."""
        to_publish: list[tuple[str, str]] = []
        unpublishable: list[str] = []
        for path in paths:
            head_blob = await self.blobs.blob_id_or_none("HEAD", path)
            if head_blob is None:
                unpublishable.append(path)
                continue
            if not await self.blobs.exists_at(tip_ref, path):
                to_publish.append((path, head_blob))
            elif await self.blobs.blob_id(tip_ref, path) != head_blob:
                to_publish.append((path, head_blob))
        return to_publish, unpublishable

    async def publish(self, paths: list[str], tip_branch: str) -> PublishReport:
        """Fetch the tip branch and publish every new or changed path in one commit.

        Any failure (including PushRejected) propagates after the worktree
        has been removed.
        """
        report = PublishReport()
        if not paths:
            return report

        tip_ref = f"{self.remote}/{tip_branch}"
        await self.client.fetch(self.remote, tip_branch)

        to_publish, report.unpublishable = await self.plan(paths, tip_ref)
        if report.unpublishable:
            logger.info("Nothing to publish for paths", paths=report.unpublishable)
        if not to_publish:
            return report

        published = [path for path, _ in to_publish]
        source_branch = await self.client.current_branch()
        source_short = await self.client.short_head()

        async with self.ephemeral_worktree(tip_ref) as wt:
            await self.client.checkout_branch(tip_branch, tip_ref, cwd=wt)

            for path, head_blob in to_publish:
                join_repo(wt, path).parent.mkdir(parents=True, exist_ok=True)
                await self.client.update_index_blob(path, head_blob, cwd=wt)

            subject, body = commit_message(
                published,
                single="Update {path} from {branch} @ {short}",
                plural="Update {count} asset(s) from {branch} @ {short}",
                limit=self.commit_body_limit,
                branch=source_branch,
                short=source_short,
            )
            await self.client.commit(subject, body, cwd=wt)
            await self.client.push(self.remote, tip_branch, cwd=wt)

        report.published = published
        report.commit_subject = subject
        logger.info(
            "Published assets to tip",
            tip_branch=tip_branch,
            count=len(published),
            source=f"{source_branch}@{source_short}",
        )
        return report
